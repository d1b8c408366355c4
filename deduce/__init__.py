"""
DEDUCE - rule-based expert system core

Forward chaining on asserted facts, cascading retraction and backward
query planning towards a target variable.
"""

__version__ = "0.1.0"
__author__ = "DEDUCE Team"

from deduce.knowledge_base import KnowledgeBase, load_knowledge_base
from deduce.reasoning import (
    Fact,
    FactType,
    InferenceEngine,
    PlanResult,
    PossibleValue,
    Rule,
    Variable,
    VariableType,
)
from deduce.settings import DeduceSettings, get_settings
from deduce.utils import ConfigError, DeduceError

__all__ = [
    "KnowledgeBase",
    "load_knowledge_base",
    "Fact",
    "FactType",
    "InferenceEngine",
    "PlanResult",
    "PossibleValue",
    "Rule",
    "Variable",
    "VariableType",
    "DeduceSettings",
    "get_settings",
    "ConfigError",
    "DeduceError",
]
