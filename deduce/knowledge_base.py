"""Load knowledge base documents into the shared object graph.

A knowledge base document lists variables (with their possible values),
rules referencing variables and values by name, and the name of the target
variable. Documents are JSON or YAML, read from a local path or fetched over
HTTP. Loading resolves every name into the single Variable / PossibleValue
instance used everywhere else, since the engine compares them by handle.

Every failure (unreachable source, undecodable body, schema violation,
unknown name) is reported as a ConfigError.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from deduce.reasoning.models import (
    Fact,
    FactType,
    PossibleValue,
    Rule,
    Variable,
    VariableType,
)
from deduce.settings import DeduceSettings, get_settings
from deduce.utils import ConfigError, UnresolvedReferenceError

logger = logging.getLogger(__name__)

_YAML_SUFFIXES = (".yaml", ".yml")

# Numeric type codes found in older documents
_VARIABLE_TYPE_CODES = {
    0: VariableType.deductible,
    1: VariableType.queryable,
    2: VariableType.both,
}


# ---------------------------------------------------------------------------
# Document schema
# ---------------------------------------------------------------------------

class _Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PossibleValueDocument(_Document):
    name: str = Field(min_length=1)
    display_name: str = Field(default="", alias="displayName")
    description: str = ""
    value: float = 0


class VariableDocument(_Document):
    name: str = Field(min_length=1)
    display_name: str = Field(default="", alias="displayName")
    question: str = ""
    description: str = ""
    type: VariableType = VariableType.deductible
    possible_values: list[PossibleValueDocument] = Field(
        default_factory=list, alias="possibleValues"
    )

    @field_validator("type", mode="before")
    @classmethod
    def decode_type(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            if v not in _VARIABLE_TYPE_CODES:
                raise ValueError(f"unknown variable type code {v}")
            return _VARIABLE_TYPE_CODES[v]
        return v


class FactReference(_Document):
    variable_name: str = Field(alias="variableName")
    value_name: str = Field(alias="valueName")


class RuleDocument(_Document):
    id: str = ""
    reasons: list[FactReference] = Field(min_length=1)
    result: FactReference


class KnowledgeBaseDocument(_Document):
    target_name: str = Field(alias="targetName")
    variables: list[VariableDocument] = Field(min_length=1)
    rules: list[RuleDocument] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Resolved knowledge base
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class KnowledgeBase:
    """Variables, rules and target with every reference resolved."""

    variables: tuple[Variable, ...]
    rules: tuple[Rule, ...]
    target: Variable
    source: str = ""

    def variable(self, name: str) -> Variable | None:
        for variable in self.variables:
            if variable.name == name:
                return variable
        return None


def load_knowledge_base(
    source: str | Path | None = None,
    settings: DeduceSettings | None = None,
) -> KnowledgeBase:
    """Read, validate and resolve a knowledge base document.

    Args:
        source: Local path or http(s) URL. Defaults to the configured
            knowledge base.
        settings: Settings for HTTP timeouts and retries. Defaults to the
            global settings.

    Returns:
        The resolved KnowledgeBase.

    Raises:
        ConfigError: If the document cannot be read, decoded or resolved.
    """
    settings = settings or get_settings()
    source = str(source if source is not None else settings.knowledge_base)
    data = read_document(source, settings)
    kb = parse_knowledge_base(data, source=source)
    logger.info(
        "Loaded %d variables and %d rules from %s (target %s)",
        len(kb.variables), len(kb.rules), source, kb.target.name,
    )
    return kb


def read_document(source: str, settings: DeduceSettings | None = None) -> dict[str, Any]:
    """Fetch and decode the raw document at ``source``."""
    settings = settings or get_settings()
    if source.startswith(("http://", "https://")):
        data = _fetch(source, settings)
    else:
        data = _read_file(Path(source))
    if not isinstance(data, dict):
        raise ConfigError(f"Knowledge base {source} must be a mapping at top level")
    return data


def parse_knowledge_base(data: dict[str, Any], source: str = "") -> KnowledgeBase:
    """Validate a decoded document and resolve its name references."""
    try:
        document = KnowledgeBaseDocument.model_validate(data)
    except ValidationError as exc:
        where = f" {source}" if source else ""
        raise ConfigError(f"Invalid knowledge base{where}: {exc}") from exc

    variables = _build_variables(document.variables)
    by_name = {v.name: v for v in variables}

    rules: list[Rule] = []
    for index, rule_doc in enumerate(document.rules, start=1):
        rule_id = rule_doc.id or f"rule:{index}"
        reasons = tuple(
            _resolve_fact(ref, by_name, rule_id) for ref in rule_doc.reasons
        )
        result = _resolve_fact(rule_doc.result, by_name, rule_id)
        rules.append(Rule(reasons=reasons, result=result, rule_id=rule_id))

    target = by_name.get(document.target_name)
    if target is None:
        raise UnresolvedReferenceError("variable", document.target_name, "targetName")

    return KnowledgeBase(
        variables=tuple(variables),
        rules=tuple(rules),
        target=target,
        source=source,
    )


def _build_variables(documents: list[VariableDocument]) -> list[Variable]:
    variables: list[Variable] = []
    seen: set[str] = set()
    for doc in documents:
        if doc.name in seen:
            raise ConfigError(f"Duplicate variable name '{doc.name}'")
        seen.add(doc.name)

        value_names: set[str] = set()
        values: list[PossibleValue] = []
        for value_doc in doc.possible_values:
            if value_doc.name in value_names:
                raise ConfigError(
                    f"Duplicate value '{value_doc.name}' in variable '{doc.name}'"
                )
            value_names.add(value_doc.name)
            values.append(PossibleValue(
                name=value_doc.name,
                display_name=value_doc.display_name,
                description=value_doc.description,
                value=value_doc.value,
            ))

        variables.append(Variable(
            name=doc.name,
            possible_values=tuple(values),
            type=doc.type,
            display_name=doc.display_name,
            question=doc.question,
            description=doc.description,
        ))
    return variables


def _resolve_fact(
    ref: FactReference, by_name: dict[str, Variable], rule_id: str
) -> Fact:
    variable = by_name.get(ref.variable_name)
    if variable is None:
        raise UnresolvedReferenceError("variable", ref.variable_name, rule_id)
    value = variable.value(ref.value_name)
    if value is None:
        raise UnresolvedReferenceError(
            "value", ref.value_name, f"{rule_id} (variable '{variable.name}')"
        )
    return Fact(variable=variable, value=value, type=FactType.dedicated)


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------

def _read_file(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read knowledge base {path}: {exc}") from exc
    return _decode(text, yaml_format=path.suffix.lower() in _YAML_SUFFIXES, source=str(path))


def _fetch(url: str, settings: DeduceSettings) -> Any:
    """GET ``url`` with retry logic and decode the body."""
    last_exc: Exception | None = None

    for attempt in range(settings.http_max_retries):
        try:
            resp = httpx.get(url, timeout=settings.http_timeout, follow_redirects=True)
            resp.raise_for_status()
            content_type = resp.headers.get("content-type", "")
            yaml_format = (
                "yaml" in content_type or url.lower().endswith(_YAML_SUFFIXES)
            )
            return _decode(resp.text, yaml_format=yaml_format, source=url)
        except (httpx.HTTPStatusError, httpx.RequestError) as exc:
            last_exc = exc
            logger.warning(
                "Request to %s failed (attempt %d/%d): %s",
                url, attempt + 1, settings.http_max_retries, exc,
            )
            if attempt < settings.http_max_retries - 1:
                time.sleep(settings.http_retry_delay * (attempt + 1))

    raise ConfigError(
        f"Failed to fetch knowledge base {url} after "
        f"{settings.http_max_retries} attempts"
    ) from last_exc


def _decode(text: str, yaml_format: bool, source: str) -> Any:
    try:
        if yaml_format:
            return yaml.safe_load(text)
        return json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot decode knowledge base {source}: {exc}") from exc
