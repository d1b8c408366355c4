"""Store of the currently known facts, at most one per variable."""

from __future__ import annotations

from typing import Iterator

from deduce.reasoning.models import Fact, Variable


class FactStore:
    """Mapping from variable handle to the single fact known about it.

    Insertion order is kept so listings follow the order facts became known.
    The store knows nothing about rules.
    """

    def __init__(self) -> None:
        self._facts: dict[int, Fact] = {}

    def get(self, variable: Variable) -> Fact | None:
        return self._facts.get(variable.handle)

    def put(self, fact: Fact) -> None:
        """Insert ``fact``, replacing any fact held for the same variable."""
        # Replacement moves the fact to the end of the insertion order
        self._facts.pop(fact.variable.handle, None)
        self._facts[fact.variable.handle] = fact

    def remove(self, variable: Variable) -> Fact | None:
        return self._facts.pop(variable.handle, None)

    def holds(self, fact: Fact) -> bool:
        """True when the store binds ``fact.variable`` to ``fact.value``."""
        known = self._facts.get(fact.variable.handle)
        return known is not None and known.value.handle == fact.value.handle

    def facts(self) -> tuple[Fact, ...]:
        return tuple(self._facts.values())

    def clear(self) -> None:
        self._facts.clear()

    def __contains__(self, variable: object) -> bool:
        return isinstance(variable, Variable) and variable.handle in self._facts

    def __iter__(self) -> Iterator[Fact]:
        return iter(self.facts())

    def __len__(self) -> int:
        return len(self._facts)

    def __repr__(self) -> str:
        inner = ", ".join(str(f) for f in self._facts.values())
        return f"FactStore({inner})"
