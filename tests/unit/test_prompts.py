"""Tests for the prompt builders."""

import json

from pocket_polyglot.models import CEFRLevel, Language
from pocket_polyglot.prompts import (
    build_feedback_context,
    build_feedback_prompt,
    build_scenario_prompt,
    build_translation_prompt,
    with_json_schema,
)


class TestScenarioPrompt:
    def test_wording(self):
        prompt = build_scenario_prompt(Language.SPANISH, CEFRLevel.B1, "Buying train tickets")
        assert prompt == (
            "Create a realistic Spanish conversation at B1 level for this setting: "
            "Buying train tickets\n\n"
            "Generate natural dialogue appropriate for language learners."
        )


class TestFeedbackContext:
    def test_labels_and_filtering(self, mixed_transcript):
        """Assistant lines keep their speaker, learner lines become "You"."""
        context = build_feedback_context(mixed_transcript, "Io sono andato al mercato.")
        assert context == "Marco: Ciao, come stai?\nYou: Bene, grazie."

    def test_feedback_never_leaks_into_context(self, mixed_transcript):
        context = build_feedback_context(mixed_transcript, "something else")
        assert "UNIQUE-FEEDBACK-MARKER" not in context
        assert "YOUR TURN" not in context
        assert "You: Io sono andato al mercato." in context

    def test_empty_transcript(self):
        assert build_feedback_context([], "Ciao") == ""


class TestFeedbackPrompt:
    def test_contains_context_and_response(self):
        prompt = build_feedback_prompt(
            Language.ITALIAN, "Marco: Ciao", "Io sta bene", CEFRLevel.A2
        )
        assert "expert Italian language teacher" in prompt
        assert "CONVERSATION CONTEXT:\nMarco: Ciao" in prompt
        assert prompt.endswith('STUDENT\'S RESPONSE: "Io sta bene" (at A2 level)')


class TestTranslationPrompt:
    def test_wording(self):
        assert build_translation_prompt("Bonjour", Language.FRENCH) == (
            'Translate this French text to English: "Bonjour"'
        )


class TestWithJsonSchema:
    def test_schema_is_appended(self):
        schema = {"title": "FeedbackResult", "type": "object"}
        prompt = with_json_schema("Assess this.", schema)
        assert prompt.startswith("Assess this.\n\n")
        assert prompt.endswith(json.dumps(schema))
        assert "Respond ONLY with a JSON object" in prompt
