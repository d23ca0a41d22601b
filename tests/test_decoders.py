"""Tests for decoding untyped model output into typed records."""

import pytest

from agentforge.decoders import (
    DEFAULT_CONFIDENCE,
    DEFAULT_GOAL,
    DEFAULT_SUMMARY,
    DEFAULT_TARGET,
    clamp_confidence,
    decode_artifact,
    decode_intent,
    decode_module_map,
    decode_questions,
    decode_refinement,
    new_artifact_id,
    text_field,
    text_list,
)
from agentforge.parser import extract_json
from agentforge.types import ArtifactKind, ExpertRole, QuestionKind


# ── Field helpers ────────────────────────────────────────────────────


class TestFieldHelpers:
    def test_text_field_strips(self):
        assert text_field("  hi ") == "hi"

    def test_text_field_blank_uses_default(self):
        assert text_field("   ", "fallback") == "fallback"

    def test_text_field_numbers_stringified(self):
        assert text_field(3) == "3"

    def test_text_field_rejects_containers_and_bools(self):
        assert text_field({"a": 1}, "d") == "d"
        assert text_field(True, "d") == "d"

    def test_text_list_from_string(self):
        assert text_list("Mobile first") == ["Mobile first"]

    def test_text_list_drops_blanks(self):
        assert text_list(["a", "", None, " b "]) == ["a", "b"]

    @pytest.mark.parametrize(
        "value,expected",
        [(0.5, 0.5), (1.7, 1.0), (-2, 0.0), ("high", DEFAULT_CONFIDENCE), (None, DEFAULT_CONFIDENCE),
         (float("nan"), DEFAULT_CONFIDENCE), (True, DEFAULT_CONFIDENCE)],
    )
    def test_clamp_confidence(self, value, expected):
        assert clamp_confidence(value) == expected


# ── Questions ────────────────────────────────────────────────────────


class TestDecodeQuestions:
    def test_object_with_questions(self):
        raw = {"questions": [{"id": "aud", "text": "Who?"}, {"id": "biz", "text": "Money?"}]}
        questions = decode_questions(raw)
        assert [q.id for q in questions] == ["aud", "biz"]
        assert all(q.kind == QuestionKind.TEXT for q in questions)

    def test_bare_list_of_strings(self):
        questions = decode_questions(["Who?", "Why?"])
        assert [(q.id, q.text) for q in questions] == [("q1", "Who?"), ("q2", "Why?")]

    def test_choice_with_options(self):
        raw = {"questions": [{"text": "Pricing?", "type": "choice", "options": ["Free", "Paid"]}]}
        (q,) = decode_questions(raw)
        assert q.kind == QuestionKind.CHOICE
        assert q.options == ["Free", "Paid"]

    def test_choice_without_options_becomes_text(self):
        (q,) = decode_questions({"questions": [{"text": "Pricing?", "kind": "choice"}]})
        assert q.kind == QuestionKind.TEXT
        assert q.options is None

    def test_question_key_alias(self):
        (q,) = decode_questions({"questions": [{"question": "Who?"}]})
        assert q.text == "Who?"

    def test_duplicate_ids_are_made_unique(self):
        raw = {"questions": [{"id": "a", "text": "1"}, {"id": "a", "text": "2"}, {"id": "q2", "text": "3"}]}
        ids = [q.id for q in decode_questions(raw)]
        assert len(set(ids)) == 3
        assert ids[0] == "a"

    def test_missing_questions_key(self):
        assert decode_questions({}) == []
        assert decode_questions({"questions": "nope"}) == []

    def test_non_object_items_skipped(self):
        assert len(decode_questions([42, "Real question?"])) == 1


# ── Foundations ──────────────────────────────────────────────────────


class TestDecodeIntent:
    def test_full(self):
        intent = decode_intent({"goal": "Share", "target": "Cooks", "constraints": ["Fast"]})
        assert (intent.goal, intent.target, intent.constraints) == ("Share", "Cooks", ["Fast"])

    def test_empty_uses_defaults(self):
        intent = decode_intent({})
        assert intent.goal == DEFAULT_GOAL
        assert intent.target == DEFAULT_TARGET
        assert intent.constraints == []

    def test_wrapped_in_list(self):
        assert decode_intent([{"goal": "Share"}]).goal == "Share"

    def test_garbage(self):
        assert decode_intent("text").goal == DEFAULT_GOAL


class TestDecodeModuleMap:
    def test_object(self):
        app_map = decode_module_map(
            {"modules": [{"name": "Recipes", "description": "CRUD", "features": ["Editor"]}]}
        )
        assert app_map.modules[0].name == "Recipes"
        assert app_map.modules[0].features == ["Editor"]

    def test_bare_list_of_modules(self):
        app_map = decode_module_map([{"name": "Recipes"}, {"name": "Social"}])
        assert [m.name for m in app_map.modules] == ["Recipes", "Social"]

    def test_list_wrapping_object(self):
        app_map = decode_module_map([{"modules": [{"name": "Recipes"}]}])
        assert [m.name for m in app_map.modules] == ["Recipes"]

    def test_string_modules_and_unnamed(self):
        app_map = decode_module_map({"modules": ["Recipes", {"description": "No name"}]})
        assert [m.name for m in app_map.modules] == ["Recipes", "Module 2"]

    def test_empty(self):
        assert decode_module_map({}).modules == []


# ── Artifacts ────────────────────────────────────────────────────────


class TestDecodeArtifact:
    def test_full_object(self):
        raw = {
            "title": "Market Analysis",
            "summary": "Crowded but open",
            "content": "# Market",
            "confidence": 0.75,
            "vitals": {"tam": "2B"},
            "variants": [{"label": "A", "content": "B2C"}, "B2B"],
        }
        artifact = decode_artifact(raw, ExpertRole.MARKET, "raw")
        assert artifact.title == "Market Analysis"
        assert artifact.kind == ArtifactKind.MARKET_ANALYSIS
        assert artifact.confidence == 0.75
        assert artifact.vitals == {"tam": "2B"}
        assert artifact.audit is None
        assert [v.label for v in artifact.variants] == ["A", "Variant B"]

    def test_defaults_for_missing_fields(self):
        artifact = decode_artifact({"content": "x"}, ExpertRole.ARCHITECT, "raw")
        assert artifact.title == "System Architect"
        assert artifact.summary == DEFAULT_SUMMARY
        assert artifact.confidence == DEFAULT_CONFIDENCE

    def test_no_json_keeps_raw_text_with_zero_confidence(self, caplog):
        with caplog.at_level("WARNING", logger="agentforge.decoders"):
            artifact = decode_artifact({}, ExpertRole.QA, "  Plain prose answer.  ")
        assert artifact.content == "Plain prose answer."
        assert artifact.confidence == 0.0
        assert "no usable JSON" in caplog.text

    def test_confidence_clamped(self):
        artifact = decode_artifact({"title": "T", "confidence": 5}, ExpertRole.QA, "")
        assert artifact.confidence == 1.0

    def test_empty_objects_are_dropped(self):
        artifact = decode_artifact({"title": "T", "audit": {}}, ExpertRole.AUDITOR, "")
        assert artifact.audit is None

    def test_missing_content_keeps_raw_reply(self):
        raw = '{"title": "Market", "summary": "S", "analysis": "the real body"}'
        artifact = decode_artifact(extract_json(raw), ExpertRole.MARKET, raw)
        assert artifact.title == "Market"
        assert artifact.content == raw
        assert "the real body" in artifact.content

    def test_content_indentation_preserved(self):
        body = "    $ agentforge new\n\nIndented code block first."
        artifact = decode_artifact({"title": "T", "content": body}, ExpertRole.WRITER, "")
        assert artifact.content == body


class TestNewArtifactId:
    def test_prefixed_by_role(self):
        assert new_artifact_id(ExpertRole.MARKET).startswith("market_")

    def test_unique_within_same_millisecond(self):
        ids = {new_artifact_id(ExpertRole.UX) for _ in range(50)}
        assert len(ids) == 50


class TestDecodeRefinement:
    def test_only_returned_fields(self):
        assert decode_refinement({"content": "new", "title": " "}) == {"content": "new"}

    def test_content_kept_verbatim(self):
        body = "    indented block\n"
        assert decode_refinement({"content": body, "title": "  New  "}) == {
            "content": body,
            "title": "New",
        }

    def test_ignores_other_fields(self):
        assert decode_refinement({"confidence": 0.1, "role": "qa"}) == {}

    def test_garbage(self):
        assert decode_refinement([]) == {}
