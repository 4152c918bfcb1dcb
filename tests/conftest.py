"""
Core pytest configuration and fixtures for Pocket Polyglot testing.

Generators are replaced by small scripted fakes so the orchestrator can be
exercised without any model. Async code is driven with ``asyncio.run`` from
ordinary synchronous tests.
"""

import asyncio
import json
from pathlib import Path
from typing import List, Optional
from unittest.mock import MagicMock

import pytest
from pocket_polyglot.generators import FeedbackGenerator, ScenarioGenerator, Translator
from pocket_polyglot.models import (
    ASSISTANT_ROLE,
    FEEDBACK_ROLE,
    SYSTEM_ROLE,
    USER_ROLE,
    ConversationMessage,
    FeedbackResult,
    ScenarioLine,
    ScenarioSpec,
)
from pocket_polyglot.orchestrator import ConversationOrchestrator
from pocket_polyglot.scenarios import ScenarioCatalog
from pocket_polyglot.speech import QueueSpeechInput

# ===== SCRIPTED COLLABORATORS =====


class ScriptedScenarioGenerator(ScenarioGenerator):
    """Returns (or raises) the scripted result and records every prompt."""

    def __init__(self, result=None, error: Optional[Exception] = None):
        self.result = result
        self.error = error
        self.prompts: List[str] = []
        self.gate: Optional[asyncio.Event] = None

    async def generate(self, prompt: str) -> ScenarioSpec:
        self.prompts.append(prompt)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.result


class ScriptedFeedbackGenerator(FeedbackGenerator):
    def __init__(self, result=None, error: Optional[Exception] = None):
        self.result = result
        self.error = error
        self.prompts: List[str] = []
        self.gate: Optional[asyncio.Event] = None

    async def generate(self, prompt: str) -> FeedbackResult:
        self.prompts.append(prompt)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.result


class ScriptedTranslator(Translator):
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls = []

    async def translate(self, text, language):
        self.calls.append((text, language))
        if self.error is not None:
            raise self.error
        return f"[en] {text}"


# ===== TEST DATA FIXTURES =====


@pytest.fixture
def restaurant_scenario() -> ScenarioSpec:
    """Two participants, four alternating lines; Luca is the learner."""
    return ScenarioSpec(
        participants=["Giulia", "Luca"],
        lines=[
            ScenarioLine(speaker="Giulia", text="Buonasera! Avete prenotato?"),
            ScenarioLine(speaker="Luca", text="Sì, un tavolo per due."),
            ScenarioLine(speaker="Giulia", text="Prego, da questa parte."),
            ScenarioLine(speaker="Luca", text="Grazie mille."),
        ],
    )


@pytest.fixture
def sample_feedback() -> FeedbackResult:
    return FeedbackResult(
        grammar_phrase="A local speaker would understand you. Good job.",
        suggested_rewrite="Vorrei un caffè, per favore.",
    )


@pytest.fixture
def mixed_transcript() -> List[ConversationMessage]:
    """One message of every role, in a realistic order."""
    return [
        ConversationMessage(role=ASSISTANT_ROLE, text="Ciao, come stai?", speaker="Marco"),
        ConversationMessage(role=USER_ROLE, text="Bene, grazie.", speaker="Anna"),
        ConversationMessage(role=SYSTEM_ROLE, text="YOUR TURN: respond"),
        ConversationMessage(role=USER_ROLE, text="Io sono andato al mercato."),
        ConversationMessage(role=FEEDBACK_ROLE, text="Grammar/Phrase:\nUNIQUE-FEEDBACK-MARKER"),
    ]


@pytest.fixture
def restaurant_catalog() -> ScenarioCatalog:
    return ScenarioCatalog.from_mapping(
        {"Restaurant": ["Order dinner at a trattoria"], "Empty": []}
    )


@pytest.fixture
def scenario_generator(restaurant_scenario) -> ScriptedScenarioGenerator:
    return ScriptedScenarioGenerator(result=restaurant_scenario)


@pytest.fixture
def feedback_generator(sample_feedback) -> ScriptedFeedbackGenerator:
    return ScriptedFeedbackGenerator(result=sample_feedback)


@pytest.fixture
def speech_input() -> QueueSpeechInput:
    return QueueSpeechInput()


@pytest.fixture
def orchestrator(
    scenario_generator, feedback_generator, restaurant_catalog, speech_input
) -> ConversationOrchestrator:
    return ConversationOrchestrator(
        scenario_generator=scenario_generator,
        feedback_generator=feedback_generator,
        catalog=restaurant_catalog,
        speech=speech_input,
        translator=ScriptedTranslator(),
    )


# ===== FILE FIXTURES =====


@pytest.fixture
def scenarios_file(tmp_path) -> Path:
    """A valid scenarios document on disk."""
    path = tmp_path / "scenarios.json"
    path.write_text(
        json.dumps(
            {
                "scenarios": [
                    {"category": "Restaurant", "scenarios": ["Order food", "Ask about wine"]},
                    {"category": "Travel", "scenarios": ["Buy a ticket", "Ask for directions"]},
                ]
            }
        )
    )
    return path


# ===== MOCK FIXTURES =====


@pytest.fixture
def mock_llm():
    """Mock LLM provider whose completion is set per test."""
    mock = MagicMock()
    mock.complete.return_value = "{}"
    return mock


# ===== CONFIGURATION =====


def pytest_configure(config):
    """Pytest configuration."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on location."""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
