"""Rule-based inference engine over typed variables.

Supports forward chaining (asserting a fact derives every conclusion it
enables, up to a fixpoint), cascading retraction (removing a fact removes the
derived facts that depended on it, user-entered facts excepted) and backward
query planning towards a target variable through the QueryPlanner.

One engine instance belongs to one consultation session. Calls run
synchronously to completion and no locking is done.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import TYPE_CHECKING, Sequence

from deduce.reasoning.fact_store import FactStore
from deduce.reasoning.models import (
    Fact,
    PossibleValue,
    Rule,
    Variable,
)
from deduce.reasoning.query_planner import PlanResult, QueryPlanner
from deduce.utils import ForeignObjectError

if TYPE_CHECKING:
    from deduce.knowledge_base import KnowledgeBase

logger = logging.getLogger(__name__)


class InferenceEngine:
    """Forward/backward chaining engine bound to one target variable.

    Usage:
        engine = InferenceEngine(variables, rules, target)
        engine.assert_fact(Fact(smoker, yes, FactType.entered))
        engine.variables_to_query   # what to ask next
        engine.target_value         # set once the target is known
    """

    def __init__(
        self,
        variables: Sequence[Variable],
        rules: Sequence[Rule],
        target: Variable,
    ) -> None:
        self._variables: dict[int, Variable] = {v.handle: v for v in variables}
        self._rules: tuple[Rule, ...] = tuple(rules)
        self._target = target
        self._check_references()

        self._store = FactStore()
        self._planner = QueryPlanner(self._rules, self._store)
        self._plan_result: PlanResult = PlanResult.satisfiable()
        self._variables_to_query: tuple[Variable, ...] = ()
        self.refresh_query_plan()

    @classmethod
    def from_knowledge_base(cls, kb: KnowledgeBase) -> InferenceEngine:
        return cls(kb.variables, kb.rules, kb.target)

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    @property
    def target(self) -> Variable:
        return self._target

    @property
    def variables(self) -> tuple[Variable, ...]:
        return tuple(self._variables.values())

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules

    @property
    def facts(self) -> tuple[Fact, ...]:
        """Snapshot of the known facts, in the order they became known."""
        return self._store.facts()

    @property
    def target_value(self) -> PossibleValue | None:
        fact = self._store.get(self._target)
        return fact.value if fact is not None else None

    @property
    def variables_to_query(self) -> tuple[Variable, ...]:
        return self._variables_to_query

    @property
    def plan_result(self) -> PlanResult:
        """Result of the last planning pass for the target."""
        return self._plan_result

    def fact_for(self, variable: Variable) -> Fact | None:
        return self._store.get(variable)

    def variable(self, name: str) -> Variable | None:
        for variable in self._variables.values():
            if variable.name == name:
                return variable
        return None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def assert_fact(self, fact: Fact) -> tuple[Fact, ...]:
        """Assert ``fact`` and forward-chain until no rule adds anything.

        Any fact previously known about a variable touched here is retracted
        first, together with its derived consequences. A derived conclusion
        never overwrites a user-entered fact holding a different value, and
        each variable takes at most one value per call. A conclusion is
        re-checked against its rule before it is stored, and once the queue
        drains every rule is rescanned so that conclusions cascaded away by
        a later replacement in the same call are derived again.

        Returns the facts stored by this call, the asserted one first.
        """
        self._check_fact(fact)
        queue: deque[tuple[Rule | None, Fact]] = deque([(None, fact)])
        batch: set[int] = {fact.variable.handle}
        pending: set[int] = {fact.variable.handle}
        stored: list[Fact] = []

        while queue:
            while queue:
                rule, current = queue.popleft()
                pending.discard(current.variable.handle)
                if rule is not None and not self._fires(rule):
                    logger.debug("Rule %s no longer holds, %s dropped",
                                 rule.rule_id or rule, current)
                    continue

                self._retract(current.variable)
                self._store.put(current)
                stored.append(current)
                logger.debug("Stored %s (%s)", current, current.type.value)

                for candidate in self._rules:
                    if candidate.uses(current):
                        self._enqueue(candidate, queue, batch, pending)

            for candidate in self._rules:
                self._enqueue(candidate, queue, batch, pending)

        self.refresh_query_plan()
        return tuple(stored)

    def retract(self, variable: Variable) -> Fact | None:
        """Forget what is known about ``variable`` and everything derived from it.

        Derived facts depending on the removed fact are removed transitively;
        user-entered facts survive the cascade and must be retracted on their
        own. Returns the removed fact, or None if nothing was known.
        """
        removed = self._retract(variable)
        self.refresh_query_plan()
        return removed

    def reset(self) -> None:
        """Forget every fact."""
        self._store.clear()
        self.refresh_query_plan()

    def refresh_query_plan(self) -> PlanResult:
        """Recompute which variables still need to be asked for the target."""
        self._variables_to_query = ()
        self._plan_result = self._planner.plan(self._target)
        if self._plan_result.is_satisfiable:
            self._variables_to_query = self._plan_result.variables
        else:
            logger.debug("Target %s is unreachable", self._target.name)
        return self._plan_result

    def plan(
        self, variable: Variable, value: PossibleValue | None = None
    ) -> PlanResult:
        """Plan the queries for any goal, without touching the exposed plan."""
        return self._planner.plan(variable, value)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _retract(
        self,
        variable: Variable,
        value: PossibleValue | None = None,
        cascade_only_derived: bool = False,
    ) -> Fact | None:
        fact = self._store.get(variable)
        if fact is None:
            return None
        if value is not None and fact.value.handle != value.handle:
            return None
        if cascade_only_derived and fact.is_entered:
            return None

        self._store.remove(variable)
        logger.debug("Retracted %s", fact)

        for rule in self._rules:
            if rule.uses(fact):
                self._retract(
                    rule.result.variable,
                    rule.result.value,
                    cascade_only_derived=True,
                )
        return fact

    def _fires(self, rule: Rule) -> bool:
        return all(self._store.holds(reason) for reason in rule.reasons)

    def _enqueue(
        self,
        rule: Rule,
        queue: deque[tuple[Rule | None, Fact]],
        batch: set[int],
        pending: set[int],
    ) -> None:
        if not self._fires(rule):
            return
        conclusion = rule.result
        if not self._accepts(conclusion, batch, pending):
            return
        batch.add(conclusion.variable.handle)
        pending.add(conclusion.variable.handle)
        queue.append((rule, conclusion))
        logger.debug("Rule %s derives %s", rule.rule_id or rule, conclusion)

    def _accepts(self, conclusion: Fact, batch: set[int], pending: set[int]) -> bool:
        handle = conclusion.variable.handle
        if handle in pending:
            return False
        known = self._store.get(conclusion.variable)
        if known is None:
            return True
        # A variable already set in this call keeps its value
        if handle in batch:
            return False
        if known.value.handle == conclusion.value.handle:
            # Kept as is, so an identical entered fact stays entered
            return False
        return not known.is_entered

    def _check_fact(self, fact: Fact) -> None:
        if fact.variable.handle not in self._variables:
            raise ForeignObjectError(
                f"Variable '{fact.variable.name}' is not part of this engine"
            )
        if not fact.variable.owns(fact.value):
            raise ForeignObjectError(
                f"Value '{fact.value.name}' does not belong to "
                f"variable '{fact.variable.name}'"
            )

    def _check_references(self) -> None:
        if self._target.handle not in self._variables:
            raise ForeignObjectError(
                f"Target '{self._target.name}' is not among the engine variables"
            )
        for rule in self._rules:
            for fact in (*rule.reasons, rule.result):
                self._check_fact(fact)
