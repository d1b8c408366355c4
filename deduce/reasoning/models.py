"""Data model for the inference engine.

Variables and possible values carry an integer handle that is their identity:
two objects are the same variable only if their handles are equal, no matter
what their names say. Handles are assigned once by the knowledge-base loader,
or drawn from a process-wide counter when objects are built directly in code.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from enum import Enum

_handles = itertools.count(1)


def next_handle() -> int:
    """Return a fresh handle, unique within this process."""
    return next(_handles)


class VariableType(str, Enum):
    """How a variable can obtain its value.

    deductible: only through rule derivation.
    queryable: only by asking the user.
    both: derived when possible, asked otherwise.
    """
    deductible = "deductible"
    queryable = "queryable"
    both = "both"


class FactType(str, Enum):
    """Provenance of a fact."""
    dedicated = "dedicated"
    entered = "entered"


@dataclass(frozen=True, eq=False)
class PossibleValue:
    """One value a variable may take.

    Attributes:
        name: Name used by rules and documents to reference the value
        display_name: Label shown to users
        description: Free-form description
        value: Numeric value attached to the option
        handle: Identity of the value
    """

    name: str
    display_name: str = ""
    description: str = ""
    value: float = 0
    handle: int = field(default_factory=next_handle)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PossibleValue):
            return NotImplemented
        return self.handle == other.handle

    def __hash__(self) -> int:
        return hash(("value", self.handle))

    @property
    def label(self) -> str:
        return self.display_name or self.name


@dataclass(frozen=True, eq=False)
class Variable:
    """A typed variable of the knowledge base.

    Attributes:
        name: Unique name within a knowledge base
        possible_values: Values the variable may take, in document order
        type: Whether the variable is deduced, asked, or both
        display_name: Label shown to users
        question: Question asked when the variable is queried
        description: Free-form description
        handle: Identity of the variable
    """

    name: str
    possible_values: tuple[PossibleValue, ...] = ()
    type: VariableType = VariableType.deductible
    display_name: str = ""
    question: str = ""
    description: str = ""
    handle: int = field(default_factory=next_handle)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Variable):
            return NotImplemented
        return self.handle == other.handle

    def __hash__(self) -> int:
        return hash(("variable", self.handle))

    @property
    def label(self) -> str:
        return self.display_name or self.name

    @property
    def prompt(self) -> str:
        """Text used when asking the user for this variable."""
        return self.question or self.label

    def value(self, name: str) -> PossibleValue | None:
        """Return the possible value called ``name``, if any."""
        for possible_value in self.possible_values:
            if possible_value.name == name:
                return possible_value
        return None

    def owns(self, value: PossibleValue) -> bool:
        """True when ``value`` is one of this variable's possible values."""
        return any(v.handle == value.handle for v in self.possible_values)


@dataclass(frozen=True)
class Fact:
    """A variable bound to one of its values, tagged with provenance."""

    variable: Variable
    value: PossibleValue
    type: FactType = FactType.dedicated

    def matches(self, other: Fact) -> bool:
        """True when both facts bind the same variable to the same value."""
        return (
            self.variable.handle == other.variable.handle
            and self.value.handle == other.value.handle
        )

    @property
    def is_entered(self) -> bool:
        return self.type is FactType.entered

    def __str__(self) -> str:
        return f"{self.variable.name}={self.value.name}"


@dataclass(frozen=True)
class Rule:
    """IF every reason holds THEN the result holds."""

    reasons: tuple[Fact, ...]
    result: Fact
    rule_id: str = ""

    def uses(self, fact: Fact) -> bool:
        """True when ``fact`` is one of this rule's reasons."""
        return any(reason.matches(fact) for reason in self.reasons)

    def __str__(self) -> str:
        reasons = " AND ".join(str(r) for r in self.reasons)
        return f"IF {reasons} THEN {self.result}"
