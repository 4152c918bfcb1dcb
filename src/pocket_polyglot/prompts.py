"""Prompt builders shared by the orchestrator and the generators.

Keeping them in one place stops prompt wording from getting scattered across
the codebase.
"""

import json
from typing import Any, Dict, Iterable

from .models import (
    ASSISTANT_ROLE,
    FEEDBACK_ROLE,
    SYSTEM_ROLE,
    USER_ROLE,
    CEFRLevel,
    ConversationMessage,
    Language,
)

SESSION_INSTRUCTIONS = (
    "You are a helpful language learning assistant who creates realistic "
    "conversation scenarios and provides detailed feedback for language learners."
)

TRANSLATION_INSTRUCTIONS = "You are a helpful translation assistant."

LEARNER_LABEL = "You"
ASSISTANT_FALLBACK_LABEL = "Assistant"


def build_scenario_prompt(language: Language, level: CEFRLevel, scenario: str) -> str:
    return (
        f"Create a realistic {language.value} conversation at {level.value} level "
        f"for this setting: {scenario}\n"
        "\n"
        "Generate natural dialogue appropriate for language learners."
    )


def build_feedback_context(
    transcript: Iterable[ConversationMessage], utterance: str
) -> str:
    """Render the conversation so far as ``"<speaker>: <text>"`` lines.

    System and feedback messages are dropped, and so is the learner's own
    entry for the utterance being assessed.
    """
    lines = []
    for msg in transcript:
        if msg.role in (SYSTEM_ROLE, FEEDBACK_ROLE):
            continue
        if msg.role == USER_ROLE and msg.text == utterance:
            continue
        if msg.role == USER_ROLE:
            label = LEARNER_LABEL
        elif msg.role == ASSISTANT_ROLE:
            label = msg.speaker or ASSISTANT_FALLBACK_LABEL
        else:
            continue
        lines.append(f"{label}: {msg.text}")
    return "\n".join(lines)


def build_feedback_prompt(
    language: Language, context: str, utterance: str, level: CEFRLevel
) -> str:
    return (
        f"You are an expert {language.value} language teacher. Provide detailed, "
        "educational feedback on this student's response.\n"
        "\n"
        "CONVERSATION CONTEXT:\n"
        f"{context}\n"
        "\n"
        f'STUDENT\'S RESPONSE: "{utterance}" (at {level.value} level)'
    )


def build_translation_prompt(text: str, language: Language) -> str:
    return f'Translate this {language.value} text to English: "{text}"'


def with_json_schema(prompt: str, schema: Dict[str, Any]) -> str:
    """Append strict JSON output rules so small models behave."""
    return (
        f"{prompt}\n"
        "\n"
        "Respond ONLY with a JSON object matching this JSON schema. "
        "No markdown fences, no commentary.\n"
        f"{json.dumps(schema, ensure_ascii=False)}"
    )
