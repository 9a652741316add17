"""Tests for analysis output parsing."""

from __future__ import annotations

import json

import pytest

from visitwise.exceptions import MalformedResponseError
from visitwise.models import ActionItemCategory
from visitwise.parsing.response_parser import extract_payload, parse


class TestExtractPayload:
    def test_plain_json(self):
        assert extract_payload('{"a": 1}') == {"a": 1}

    def test_fenced_json(self):
        content = 'Here you go:\n```json\n{"a": 1}\n```\nThanks!'
        assert extract_payload(content) == {"a": 1}

    def test_bare_fence(self):
        assert extract_payload('```\n{"a": 2}\n```') == {"a": 2}

    def test_object_inside_prose(self):
        content = 'The summary is {"a": {"b": "x}y"}} as requested.'
        assert extract_payload(content) == {"a": {"b": "x}y"}}

    def test_trailing_commas_repaired(self):
        assert extract_payload('{"a": [1, 2,], "b": 3,}') == {"a": [1, 2], "b": 3}

    def test_citation_markers_stripped(self):
        assert extract_payload('{"a": "normal"}【4:0†source】') == {"a": "normal"}

    @pytest.mark.parametrize("content", ["", "   ", "no json here", "[1, 2, 3]", '"just a string"', "{broken"])
    def test_no_object(self, content):
        assert extract_payload(content) is None


class TestParse:
    def test_full_result(self, sample_output):
        result = parse(sample_output)
        assert result.maternal_status.startswith("Blood pressure")
        assert len(result.action_items) == 2
        assert result.action_items[0].category == ActionItemCategory.APPOINTMENT
        assert result.learning_modules[0].sections[0].heading == "Why"
        assert result.provider_name == "Dr. Rivera"

    def test_partial_result_defaults(self):
        result = parse('{"maternal_status": "Fine"}')
        assert result.maternal_status == "Fine"
        assert result.fetal_status == ""
        assert result.action_items == []
        assert result.flags == []

    def test_null_narrative_becomes_empty(self):
        result = parse('{"maternal_status": null, "advocacy_notes": null}')
        assert result.maternal_status == ""
        assert result.advocacy_notes == ""

    def test_null_nested_text_becomes_empty(self):
        payload = {
            "action_items": [{"title": "Book test", "description": None}],
            "glossary": [{"term": "Fundal height", "definition": None}],
            "diagnoses": [{"name": "Anemia", "explanation": None}],
            "learning_modules": [
                {"title": "Iron", "description": None, "sections": [{"heading": None, "body": None}]}
            ],
        }
        result = parse(json.dumps(payload))
        assert result.action_items[0].description == ""
        assert result.glossary[0].definition == ""
        assert result.diagnoses[0].explanation == ""
        module = result.learning_modules[0]
        assert module.description == ""
        assert (module.sections[0].heading, module.sections[0].body) == ("", "")

    @pytest.mark.parametrize("value, expected", [(2, "second"), (3, "third"), (4, "4"), ("first", "first"), (None, None)])
    def test_trimester_number_coerced(self, value, expected):
        result = parse(json.dumps({"learning_modules": [{"title": "X", "trimester": value}]}))
        assert result.learning_modules[0].trimester == expected

    def test_unknown_category_coerced(self):
        payload = {"action_items": [{"title": "Call clinic", "category": "Urgent-ish"}]}
        result = parse(json.dumps(payload))
        assert result.action_items[0].category == ActionItemCategory.OTHER

    def test_category_case_insensitive(self):
        payload = {"action_items": [{"title": "Walk daily", "category": " Lifestyle "}]}
        result = parse(json.dumps(payload))
        assert result.action_items[0].category == ActionItemCategory.LIFESTYLE

    def test_not_json_raises_with_raw(self):
        with pytest.raises(MalformedResponseError) as exc_info:
            parse("I could not read the document.")
        assert exc_info.value.raw_response == "I could not read the document."

    def test_wrong_structure_raises(self):
        payload = {"action_items": [{"description": "missing title"}]}
        with pytest.raises(MalformedResponseError, match="expected structure"):
            parse(json.dumps(payload))

    def test_wrong_type_raises(self):
        with pytest.raises(MalformedResponseError):
            parse('{"next_steps": "should be a list"}')

    def test_empty_raises(self):
        with pytest.raises(MalformedResponseError):
            parse("")
