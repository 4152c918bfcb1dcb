"""
Tests for the core Pydantic data models.

Generator output is parsed directly into these models, so their validation
is the data contract with the language model.
"""

import pytest
from pocket_polyglot.models import (
    ASSISTANT_ROLE,
    FEEDBACK_ROLE,
    SYSTEM_ROLE,
    USER_ROLE,
    CEFRLevel,
    ConversationMessage,
    ConversationPhase,
    FeedbackResult,
    Language,
    OrchestratorState,
    ScenarioDocument,
    ScenarioSpec,
)
from pydantic import ValidationError


class TestConversationMessage:
    def test_valid_roles(self):
        for role in (SYSTEM_ROLE, USER_ROLE, ASSISTANT_ROLE, FEEDBACK_ROLE):
            msg = ConversationMessage(role=role, text="hello")
            assert msg.role == role
            assert msg.speaker is None

    def test_invalid_role_rejected(self):
        with pytest.raises(ValidationError):
            ConversationMessage(role="tool", text="nope")

    def test_ids_are_unique(self):
        ids = {ConversationMessage(role=USER_ROLE, text="x").id for _ in range(100)}
        assert len(ids) == 100

    def test_timestamp_is_timezone_aware(self):
        msg = ConversationMessage(role=USER_ROLE, text="x")
        assert msg.timestamp.tzinfo is not None

    def test_messages_are_immutable(self):
        """Messages cannot change once they are in the transcript."""
        msg = ConversationMessage(role=USER_ROLE, text="Original")
        with pytest.raises(ValidationError):
            msg.text = "Modified"


class TestScenarioSpec:
    def test_accepts_messages_alias(self):
        spec = ScenarioSpec.model_validate(
            {
                "participants": ["Ana", "Ben"],
                "messages": [{"speaker": "Ana", "text": "Hola"}],
            }
        )
        assert spec.lines[0].text == "Hola"

    def test_unknown_speaker_is_a_contract_failure(self):
        with pytest.raises(ValidationError, match="not one of the participants"):
            ScenarioSpec.model_validate(
                {
                    "participants": ["Ana", "Ben"],
                    "lines": [{"speaker": "Carla", "text": "Hola"}],
                }
            )

    def test_participant_count_is_not_enforced(self):
        """Three participants parse; the orchestrator applies its fallback."""
        spec = ScenarioSpec(
            participants=["A", "B", "C"],
            lines=[{"speaker": "C", "text": "hi"}],
        )
        assert len(spec.participants) == 3

    def test_json_schema_names_lines(self):
        schema = ScenarioSpec.model_json_schema()
        assert schema["title"] == "ScenarioSpec"
        assert "lines" in schema["properties"]


class TestFeedbackResult:
    def test_camel_case_aliases(self):
        result = FeedbackResult.model_validate(
            {"grammarPhrase": "Good.", "suggestedRewrite": "Better."}
        )
        assert result.grammar_phrase == "Good."
        assert result.suggested_rewrite == "Better."

    def test_field_names_accepted(self):
        result = FeedbackResult(grammar_phrase="Good.", suggested_rewrite="Better.")
        assert result.grammar_phrase == "Good."

    @pytest.mark.parametrize("blank", ["", "   "])
    def test_blank_feedback_rejected(self, blank):
        with pytest.raises(ValidationError):
            FeedbackResult(grammar_phrase=blank, suggested_rewrite="ok")


class TestLanguageAndLevel:
    def test_language_codes(self):
        assert Language.ITALIAN.code == "it-IT"
        assert Language.SPANISH.code == "es-ES"
        assert Language.FRENCH.code == "fr-FR"
        assert Language.FRENCH.iso_code == "fr"

    def test_display_names(self):
        assert Language.ITALIAN.display_name == "Italiano"
        assert Language.SPANISH.display_name == "Español"

    def test_levels_are_ordered(self):
        ranks = [level.rank for level in CEFRLevel]
        assert ranks == sorted(ranks)
        assert CEFRLevel.A1.rank < CEFRLevel.C2.rank

    def test_level_descriptions_start_with_code(self):
        for level in CEFRLevel:
            assert level.description.startswith(level.value)
        assert CEFRLevel.B2.description == "B2 - Upper Intermediate"


class TestOrchestratorState:
    def test_idle_flags(self):
        state = OrchestratorState()
        assert not state.has_started_conversation
        assert not state.is_generating_scenario
        assert not state.is_processing_feedback

    def test_flags_follow_phase(self):
        generating = OrchestratorState(phase=ConversationPhase.GENERATING_SCENARIO)
        assert generating.has_started_conversation
        assert generating.is_generating_scenario
        assert not generating.is_processing_feedback

        awaiting = OrchestratorState(phase=ConversationPhase.AWAITING_FEEDBACK)
        assert awaiting.is_processing_feedback
        assert not awaiting.is_generating_scenario


class TestScenarioDocument:
    def test_empty_document(self):
        assert ScenarioDocument.model_validate_json('{"scenarios": []}').scenarios == []

    def test_missing_key_rejected(self):
        with pytest.raises(ValidationError):
            ScenarioDocument.model_validate_json('{"categories": []}')
