"""Backward-chaining query planner.

Starting from a goal variable, walks the rule graph backwards and collects the
still-unknown variables that must be asked before the goal can be determined.
The answer is a PlanResult: either Satisfiable with the (possibly empty) list
of variables to ask, or Unsatisfiable when no sequence of answers can settle
the goal along the explored path.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from deduce.reasoning.fact_store import FactStore
from deduce.reasoning.models import PossibleValue, Rule, Variable, VariableType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanResult:
    """Outcome of planning a goal.

    Use the ``satisfiable`` constructor or the ``UNSATISFIABLE`` value rather
    than building instances directly.
    """

    is_satisfiable: bool
    variables: tuple[Variable, ...] = ()

    @classmethod
    def satisfiable(cls, variables: Iterable[Variable] = ()) -> PlanResult:
        return cls(True, _unique(variables))

    def __bool__(self) -> bool:
        return self.is_satisfiable

    def __repr__(self) -> str:
        if not self.is_satisfiable:
            return "Unsatisfiable"
        names = ", ".join(v.name for v in self.variables)
        return f"Satisfiable([{names}])"


UNSATISFIABLE = PlanResult(False)


class QueryPlanner:
    """Plans which queryable variables remain to be asked.

    The planner reads the fact store but never mutates it. Alternatives are
    accumulated: when several rules can produce a goal, the variables needed
    by every rule that can still fire are all requested.
    """

    def __init__(self, rules: Sequence[Rule], store: FactStore) -> None:
        self._store = store
        self._rules_by_result: dict[int, list[Rule]] = {}
        for rule in rules:
            self._rules_by_result.setdefault(
                rule.result.variable.handle, []
            ).append(rule)

    def plan(
        self,
        variable: Variable,
        value: PossibleValue | None = None,
    ) -> PlanResult:
        """Plan the queries needed to learn ``variable`` (equal to ``value``).

        Args:
            variable: Goal variable.
            value: When given, only derivations producing this value count,
                and a known different value makes the goal unsatisfiable.

        Returns:
            PlanResult for the goal.
        """
        return self._plan(variable, value, frozenset())

    def _plan(
        self,
        variable: Variable,
        value: PossibleValue | None,
        path: frozenset[int],
    ) -> PlanResult:
        known = self._store.get(variable)
        if known is not None:
            if value is None or known.value.handle == value.handle:
                return PlanResult.satisfiable()
            return UNSATISFIABLE

        if variable.type is VariableType.queryable:
            return PlanResult.satisfiable([variable])

        rules = self._rules_by_result.get(variable.handle, [])
        if value is not None:
            rules = [r for r in rules if r.result.value.handle == value.handle]

        if not rules:
            if variable.type is VariableType.both:
                return PlanResult.satisfiable([variable])
            return UNSATISFIABLE

        if variable.handle in path:
            logger.debug("Cycle through %s, branch dropped", variable.name)
            return UNSATISFIABLE
        path = path | {variable.handle}

        needed: list[Variable] = []
        resolved = False
        for rule in rules:
            contribution = self._plan_rule(rule, path)
            if contribution is None:
                continue
            resolved = True
            needed.extend(contribution)

        if not resolved:
            return UNSATISFIABLE
        return PlanResult.satisfiable(needed)

    def _plan_rule(
        self, rule: Rule, path: frozenset[int]
    ) -> list[Variable] | None:
        """Variables needed for every reason of ``rule``, or None if one fails."""
        needed: list[Variable] = []
        for reason in rule.reasons:
            result = self._plan(reason.variable, reason.value, path)
            if not result.is_satisfiable:
                return None
            needed.extend(result.variables)
        return needed


def _unique(variables: Iterable[Variable]) -> tuple[Variable, ...]:
    """Drop repeated variables (by handle), keeping first-seen order."""
    seen: set[int] = set()
    unique: list[Variable] = []
    for variable in variables:
        if variable.handle not in seen:
            seen.add(variable.handle)
            unique.append(variable)
    return tuple(unique)
