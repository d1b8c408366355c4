"""Shared test fixtures for DEDUCE test suite."""

import os

import pytest

from deduce.reasoning.models import (
    Fact,
    FactType,
    PossibleValue,
    Rule,
    Variable,
    VariableType,
)


# Keep tests independent of any developer .env
os.environ.setdefault("DEDUCE_LOG_LEVEL", "WARNING")
os.environ.setdefault("DEDUCE_HTTP_RETRY_DELAY", "0")


@pytest.fixture
def make_variable():
    """Factory building a variable with the given value names."""
    def _make(name, var_type=VariableType.queryable, values=("yes", "no")):
        return Variable(
            name=name,
            type=var_type,
            possible_values=tuple(PossibleValue(name=v) for v in values),
        )
    return _make


@pytest.fixture
def entered():
    """Factory for user-entered facts: entered(var, "yes")."""
    def _entered(variable, value_name):
        return Fact(variable, variable.value(value_name), FactType.entered)
    return _entered


@pytest.fixture
def derived():
    """Factory for rule facts: derived(var, "yes")."""
    def _derived(variable, value_name):
        return Fact(variable, variable.value(value_name), FactType.dedicated)
    return _derived


@pytest.fixture
def abt(make_variable, derived):
    """A, B queryable; T deductible target; A=yes AND B=yes -> T=yes."""
    a = make_variable("A")
    b = make_variable("B")
    t = make_variable("T", VariableType.deductible)
    rule = Rule(
        reasons=(derived(a, "yes"), derived(b, "yes")),
        result=derived(t, "yes"),
        rule_id="rule:1",
    )
    return {"A": a, "B": b, "T": t, "rules": [rule]}


@pytest.fixture
def kb_document():
    """A well-formed knowledge base document in the camelCase layout."""
    return {
        "targetName": "diagnosis",
        "variables": [
            {
                "name": "fever",
                "question": "Does the patient have a fever?",
                "type": "queryable",
                "possibleValues": [
                    {"name": "yes", "displayName": "Yes", "value": 1},
                    {"name": "no", "displayName": "No", "value": 0},
                ],
            },
            {
                "name": "cough",
                "question": "Does the patient cough?",
                "type": 1,
                "possibleValues": [{"name": "yes"}, {"name": "no"}],
            },
            {
                "name": "infection",
                "type": "both",
                "question": "Was an infection confirmed?",
                "possibleValues": [{"name": "yes"}, {"name": "no"}],
            },
            {
                "name": "diagnosis",
                "displayName": "Diagnosis",
                "type": 0,
                "possibleValues": [{"name": "flu"}, {"name": "healthy"}],
            },
        ],
        "rules": [
            {
                "reasons": [
                    {"variableName": "fever", "valueName": "yes"},
                    {"variableName": "cough", "valueName": "yes"},
                ],
                "result": {"variableName": "infection", "valueName": "yes"},
            },
            {
                "id": "flu",
                "reasons": [{"variableName": "infection", "valueName": "yes"}],
                "result": {"variableName": "diagnosis", "valueName": "flu"},
            },
            {
                "reasons": [{"variableName": "fever", "valueName": "no"}],
                "result": {"variableName": "diagnosis", "valueName": "healthy"},
            },
        ],
    }
