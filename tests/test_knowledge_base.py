"""Tests for knowledge base loading and name resolution.

All HTTP access goes through unittest.mock - no real requests are made.
"""

from __future__ import annotations

import copy
import json
from unittest.mock import MagicMock, patch

import httpx
import pytest
import yaml

from deduce.knowledge_base import (
    load_knowledge_base,
    parse_knowledge_base,
    read_document,
)
from deduce.reasoning.inference_engine import InferenceEngine
from deduce.reasoning.models import FactType, VariableType
from deduce.settings import DeduceSettings
from deduce.utils import ConfigError, UnresolvedReferenceError


@pytest.fixture
def settings() -> DeduceSettings:
    return DeduceSettings(http_max_retries=2, http_retry_delay=0, http_timeout=5)


def _make_mock_response(
    text: str = "",
    status_code: int = 200,
    content_type: str = "application/json",
) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    resp.headers = {"content-type": content_type}
    if status_code >= 400:
        resp.raise_for_status.side_effect = httpx.HTTPStatusError(
            f"{status_code}", request=MagicMock(), response=MagicMock()
        )
    return resp


# ---------------------------------------------------------------------------
# 1. Resolution
# ---------------------------------------------------------------------------

class TestParseKnowledgeBase:
    def test_variables_and_types(self, kb_document):
        kb = parse_knowledge_base(kb_document)
        assert [v.name for v in kb.variables] == ["fever", "cough", "infection", "diagnosis"]
        assert kb.variable("fever").type is VariableType.queryable
        assert kb.variable("cough").type is VariableType.queryable
        assert kb.variable("infection").type is VariableType.both
        assert kb.variable("diagnosis").type is VariableType.deductible
        assert kb.target is kb.variable("diagnosis")

    def test_value_metadata(self, kb_document):
        kb = parse_knowledge_base(kb_document)
        fever = kb.variable("fever")
        assert fever.question == "Does the patient have a fever?"
        assert fever.value("yes").display_name == "Yes"
        assert fever.value("yes").value == 1
        assert kb.target.label == "Diagnosis"

    def test_rule_references_share_instances(self, kb_document):
        kb = parse_knowledge_base(kb_document)
        fever = kb.variable("fever")
        first = kb.rules[0]
        assert first.reasons[0].variable is fever
        assert first.reasons[0].value is fever.value("yes")
        assert first.result.variable is kb.variable("infection")
        assert first.result.type is FactType.dedicated

    def test_rule_ids(self, kb_document):
        kb = parse_knowledge_base(kb_document)
        assert [r.rule_id for r in kb.rules] == ["rule:1", "flu", "rule:3"]

    def test_handles_are_unique(self, kb_document):
        kb = parse_knowledge_base(kb_document)
        handles = [v.handle for v in kb.variables]
        handles += [pv.handle for v in kb.variables for pv in v.possible_values]
        assert len(handles) == len(set(handles))

    def test_reparse_gives_distinct_objects(self, kb_document):
        first = parse_knowledge_base(kb_document)
        second = parse_knowledge_base(kb_document)
        assert first.variable("fever") != second.variable("fever")

    def test_snake_case_keys_accepted(self):
        document = {
            "target_name": "T",
            "variables": [
                {"name": "A", "type": "queryable", "possible_values": [{"name": "yes"}]},
                {"name": "T", "possible_values": [{"name": "yes"}], "display_name": "Target"},
            ],
            "rules": [{
                "reasons": [{"variable_name": "A", "value_name": "yes"}],
                "result": {"variable_name": "T", "value_name": "yes"},
            }],
        }
        kb = parse_knowledge_base(document)
        assert kb.target.display_name == "Target"
        assert kb.target.type is VariableType.deductible
        assert len(kb.rules) == 1

    def test_engine_runs_on_loaded_base(self, kb_document):
        kb = parse_knowledge_base(kb_document)
        engine = InferenceEngine.from_knowledge_base(kb)
        assert [v.name for v in engine.variables_to_query] == ["fever", "cough"]

        fever, cough = kb.variable("fever"), kb.variable("cough")
        from deduce.reasoning.models import Fact

        engine.assert_fact(Fact(fever, fever.value("yes"), FactType.entered))
        engine.assert_fact(Fact(cough, cough.value("yes"), FactType.entered))
        assert engine.target_value.name == "flu"


class TestResolutionErrors:
    def test_unknown_target(self, kb_document):
        kb_document["targetName"] = "prognosis"
        with pytest.raises(UnresolvedReferenceError, match="prognosis"):
            parse_knowledge_base(kb_document)

    def test_unknown_variable_in_rule(self, kb_document):
        doc = copy.deepcopy(kb_document)
        doc["rules"][0]["reasons"][0]["variableName"] = "rash"
        with pytest.raises(UnresolvedReferenceError) as exc_info:
            parse_knowledge_base(doc)
        assert exc_info.value.kind == "variable"
        assert exc_info.value.name == "rash"
        assert "rule:1" in str(exc_info.value)

    def test_unknown_value_in_rule(self, kb_document):
        doc = copy.deepcopy(kb_document)
        doc["rules"][1]["result"]["valueName"] = "measles"
        with pytest.raises(UnresolvedReferenceError, match="measles"):
            parse_knowledge_base(doc)

    def test_unresolved_reference_is_config_error(self):
        assert issubclass(UnresolvedReferenceError, ConfigError)

    def test_duplicate_variable(self, kb_document):
        kb_document["variables"].append({"name": "fever"})
        with pytest.raises(ConfigError, match="Duplicate variable"):
            parse_knowledge_base(kb_document)

    def test_duplicate_value(self, kb_document):
        kb_document["variables"][0]["possibleValues"].append({"name": "yes"})
        with pytest.raises(ConfigError, match="Duplicate value"):
            parse_knowledge_base(kb_document)

    def test_schema_violation(self, kb_document):
        del kb_document["targetName"]
        with pytest.raises(ConfigError, match="Invalid knowledge base"):
            parse_knowledge_base(kb_document)

    def test_unknown_type_code(self, kb_document):
        kb_document["variables"][0]["type"] = 7
        with pytest.raises(ConfigError):
            parse_knowledge_base(kb_document)

    def test_rule_without_reasons(self, kb_document):
        kb_document["rules"][0]["reasons"] = []
        with pytest.raises(ConfigError):
            parse_knowledge_base(kb_document)


# ---------------------------------------------------------------------------
# 2. Local files
# ---------------------------------------------------------------------------

class TestLocalFiles:
    def test_load_json(self, tmp_path, kb_document, settings):
        path = tmp_path / "kb.json"
        path.write_text(json.dumps(kb_document), encoding="utf-8")
        kb = load_knowledge_base(path, settings)
        assert kb.source == str(path)
        assert kb.target.name == "diagnosis"

    def test_load_yaml(self, tmp_path, kb_document, settings):
        path = tmp_path / "kb.yaml"
        path.write_text(yaml.safe_dump(kb_document), encoding="utf-8")
        kb = load_knowledge_base(path, settings)
        assert len(kb.rules) == 3

    def test_default_source_from_settings(self, tmp_path, kb_document):
        path = tmp_path / "default.json"
        path.write_text(json.dumps(kb_document), encoding="utf-8")
        kb = load_knowledge_base(settings=DeduceSettings(knowledge_base=str(path)))
        assert kb.source == str(path)

    def test_missing_file(self, tmp_path, settings):
        with pytest.raises(ConfigError, match="Cannot read"):
            load_knowledge_base(tmp_path / "absent.json", settings)

    def test_malformed_json(self, tmp_path, settings):
        path = tmp_path / "kb.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="Cannot decode"):
            load_knowledge_base(path, settings)

    def test_top_level_must_be_mapping(self, tmp_path, settings):
        path = tmp_path / "kb.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(ConfigError, match="mapping"):
            read_document(str(path), settings)


# ---------------------------------------------------------------------------
# 3. HTTP sources
# ---------------------------------------------------------------------------

class TestHttpSources:
    URL = "https://example.com/kb.json"

    def test_fetch_json(self, kb_document, settings):
        resp = _make_mock_response(json.dumps(kb_document))
        with patch("deduce.knowledge_base.httpx.get", return_value=resp) as get:
            kb = load_knowledge_base(self.URL, settings)
        get.assert_called_once_with(self.URL, timeout=5, follow_redirects=True)
        assert kb.source == self.URL

    def test_fetch_yaml_by_content_type(self, kb_document, settings):
        resp = _make_mock_response(yaml.safe_dump(kb_document), content_type="application/yaml")
        with patch("deduce.knowledge_base.httpx.get", return_value=resp):
            kb = load_knowledge_base("https://example.com/kb", settings)
        assert kb.target.name == "diagnosis"

    def test_retries_then_succeeds(self, kb_document, settings):
        ok = _make_mock_response(json.dumps(kb_document))
        with patch(
            "deduce.knowledge_base.httpx.get",
            side_effect=[httpx.ConnectError("refused"), ok],
        ) as get:
            kb = load_knowledge_base(self.URL, settings)
        assert get.call_count == 2
        assert kb.target.name == "diagnosis"

    def test_gives_up_after_max_retries(self, settings):
        with patch(
            "deduce.knowledge_base.httpx.get",
            side_effect=httpx.ConnectError("refused"),
        ) as get:
            with pytest.raises(ConfigError, match="after 2 attempts") as exc_info:
                load_knowledge_base(self.URL, settings)
        assert get.call_count == 2
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    def test_http_error_status(self, settings):
        resp = _make_mock_response("not found", status_code=404)
        with patch("deduce.knowledge_base.httpx.get", return_value=resp):
            with pytest.raises(ConfigError):
                load_knowledge_base(self.URL, settings)

    def test_undecodable_body(self, settings):
        resp = _make_mock_response("<html>oops</html>")
        with patch("deduce.knowledge_base.httpx.get", return_value=resp):
            with pytest.raises(ConfigError, match="Cannot decode"):
                load_knowledge_base(self.URL, settings)
