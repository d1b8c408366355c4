"""
DEDUCE CLI - validate knowledge bases, inspect query plans, run consultations
"""
import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from deduce.knowledge_base import KnowledgeBase, load_knowledge_base
from deduce.reasoning import Fact, FactType, InferenceEngine
from deduce.settings import get_settings
from deduce.utils import DeduceError, get_logger, setup_logging

console = Console()
logger = get_logger(__name__)

SKIP = "skip"


# ═══════════════════════════════════════════════════════════════════
# MAIN CLI GROUP
# ═══════════════════════════════════════════════════════════════════

@click.group()
@click.version_option(version='0.1.0')
def main():
    """
    DEDUCE - rule-based expert system

    Derives facts from rules and asks only the questions still needed
    to determine the target variable.
    """
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_file)


def _load(source):
    """Load a knowledge base or exit with a readable error"""
    try:
        return load_knowledge_base(source)
    except DeduceError as e:
        console.print(f"\n[red]✗ Error: {escape(str(e))}[/red]")
        sys.exit(1)


def _parse_fact(kb: KnowledgeBase, assignment: str) -> Fact:
    name, sep, value_name = assignment.partition("=")
    if not sep:
        raise click.BadParameter(f"expected VAR=VALUE, got '{assignment}'")
    variable = kb.variable(name.strip())
    if variable is None:
        raise click.BadParameter(f"unknown variable '{name.strip()}'")
    value = variable.value(value_name.strip())
    if value is None:
        raise click.BadParameter(
            f"unknown value '{value_name.strip()}' for variable '{variable.name}'"
        )
    return Fact(variable, value, FactType.entered)


def _print_facts(engine: InferenceEngine) -> None:
    table = Table(title="Known Facts")
    table.add_column("Variable", style="cyan")
    table.add_column("Value", style="magenta")
    table.add_column("Source", style="green")
    for fact in engine.facts:
        table.add_row(fact.variable.label, fact.value.label, fact.type.value)
    console.print(table)


def _print_outcome(engine: InferenceEngine) -> None:
    value = engine.target_value
    if value is not None:
        console.print(
            f"\n[green]✓ {escape(engine.target.label)}: [bold]{escape(value.label)}[/bold][/green]"
        )
    elif not engine.plan_result.is_satisfiable:
        console.print(
            f"\n[yellow]{escape(engine.target.label)} cannot be determined "
            "from the known facts[/yellow]"
        )
    else:
        names = ", ".join(escape(v.label) for v in engine.variables_to_query)
        console.print(f"\n[bold blue]Still to ask:[/bold blue] {names}")


# ═══════════════════════════════════════════════════════════════════
# COMMANDS
# ═══════════════════════════════════════════════════════════════════

@main.command()
@click.argument('source', required=False)
def validate(source):
    """Load a knowledge base and summarize it"""
    kb = _load(source)

    table = Table(title=f"Variables ({kb.source})")
    table.add_column("Name", style="cyan")
    table.add_column("Type", style="magenta")
    table.add_column("Values")
    for variable in kb.variables:
        marker = " (target)" if variable is kb.target else ""
        table.add_row(
            variable.name + marker,
            variable.type.value,
            ", ".join(v.name for v in variable.possible_values),
        )
    console.print(table)
    console.print(f"\nRules: [cyan]{len(kb.rules)}[/cyan]")
    console.print("\n[green]✓ Knowledge base is valid[/green]")


@main.command()
@click.argument('source', required=False)
@click.option('--fact', '-f', 'assignments', multiple=True, metavar='VAR=VALUE',
              help='Fact entered before planning (repeatable)')
def plan(source, assignments):
    """Show what still needs to be asked to reach the target"""
    kb = _load(source)
    engine = InferenceEngine.from_knowledge_base(kb)

    for assignment in assignments:
        engine.assert_fact(_parse_fact(kb, assignment))

    if engine.facts:
        _print_facts(engine)
    _print_outcome(engine)


@main.command()
@click.argument('source', required=False)
def consult(source):
    """Answer questions until the target is known"""
    kb = _load(source)
    engine = InferenceEngine.from_knowledge_base(kb)
    console.print(f"\n[bold blue]Consultation:[/bold blue] {escape(kb.target.label)}")

    while engine.target_value is None and engine.variables_to_query:
        variable = engine.variables_to_query[0]
        choices = [v.name for v in variable.possible_values] + [SKIP]
        answer = click.prompt(
            variable.prompt,
            type=click.Choice(choices),
            show_choices=True,
        )
        if answer == SKIP:
            logger.info("Consultation stopped at %s", variable.name)
            break
        engine.assert_fact(Fact(variable, variable.value(answer), FactType.entered))

    _print_facts(engine)
    _print_outcome(engine)


if __name__ == '__main__':
    main()
