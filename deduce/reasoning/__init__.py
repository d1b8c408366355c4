"""Inference core for DEDUCE.

Holds the fact store, the forward/backward chaining engine and the backward
query planner. Nothing in this package performs I/O.
"""

from deduce.reasoning.models import (
    Fact,
    FactType,
    PossibleValue,
    Rule,
    Variable,
    VariableType,
)
from deduce.reasoning.fact_store import FactStore
from deduce.reasoning.query_planner import PlanResult, QueryPlanner, UNSATISFIABLE
from deduce.reasoning.inference_engine import InferenceEngine

__all__ = [
    "Fact",
    "FactType",
    "PossibleValue",
    "Rule",
    "Variable",
    "VariableType",
    "FactStore",
    "PlanResult",
    "QueryPlanner",
    "UNSATISFIABLE",
    "InferenceEngine",
]
