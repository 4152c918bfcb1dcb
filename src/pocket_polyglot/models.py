"""
Defines the core Pydantic data models for the application.

These models are the validated data contract between the orchestrator, the
generators and the presentation layer. Generator output is parsed straight
into them, so a model validation failure is a data-contract failure.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

# --- Constants ---
SYSTEM_ROLE = "system"
USER_ROLE = "user"
ASSISTANT_ROLE = "assistant"
FEEDBACK_ROLE = "feedback"
Role = Literal[SYSTEM_ROLE, USER_ROLE, ASSISTANT_ROLE, FEEDBACK_ROLE]


class Language(str, Enum):
    ITALIAN = "Italian"
    SPANISH = "Spanish"
    FRENCH = "French"

    @property
    def code(self) -> str:
        """Locale identifier used by speech recognizers."""
        return {
            Language.ITALIAN: "it-IT",
            Language.SPANISH: "es-ES",
            Language.FRENCH: "fr-FR",
        }[self]

    @property
    def iso_code(self) -> str:
        return self.code.split("-")[0]

    @property
    def display_name(self) -> str:
        return {
            Language.ITALIAN: "Italiano",
            Language.SPANISH: "Español",
            Language.FRENCH: "Français",
        }[self]


class CEFRLevel(str, Enum):
    A1 = "A1"
    A2 = "A2"
    B1 = "B1"
    B2 = "B2"
    C1 = "C1"
    C2 = "C2"

    @property
    def description(self) -> str:
        return {
            CEFRLevel.A1: "A1 - Beginner",
            CEFRLevel.A2: "A2 - Elementary",
            CEFRLevel.B1: "B1 - Intermediate",
            CEFRLevel.B2: "B2 - Upper Intermediate",
            CEFRLevel.C1: "C1 - Advanced",
            CEFRLevel.C2: "C2 - Proficient",
        }[self]

    @property
    def rank(self) -> int:
        return list(CEFRLevel).index(self)


class ConversationPhase(str, Enum):
    IDLE = "idle"
    GENERATING_SCENARIO = "generating_scenario"
    ACTIVE = "active"
    AWAITING_FEEDBACK = "awaiting_feedback"


# --- Models ---
class ConversationMessage(BaseModel):
    """A single, immutable entry of the transcript."""

    model_config = ConfigDict(frozen=True)

    role: Role
    text: str
    speaker: Optional[str] = None
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ScenarioLine(BaseModel):
    speaker: str = Field(
        description="Must be one of the participants from the participants array"
    )
    text: str = Field(
        description="Natural conversational text appropriate for the target language and level"
    )


class ScenarioSpec(BaseModel):
    """A generated role-play: two participants and their alternating lines.

    The second participant is the learner. The participant count itself is
    not enforced here; the orchestrator has a fallback for other counts.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    participants: List[str] = Field(
        description="Exactly 2 participants with appropriate names. Second participant is the learner."
    )
    lines: List[ScenarioLine] = Field(
        validation_alias=AliasChoices("lines", "messages"),
        description="4-6 alternating conversation exchanges. Each participant speaks 2-3 times.",
    )

    @model_validator(mode="after")
    def _speakers_are_participants(self) -> "ScenarioSpec":
        known = set(self.participants)
        for line in self.lines:
            if line.speaker not in known:
                raise ValueError(
                    f"line speaker {line.speaker!r} is not one of the participants {self.participants}"
                )
        return self


class FeedbackResult(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    grammar_phrase: str = Field(
        alias="grammarPhrase",
        min_length=1,
        description=(
            "If you were a local language speaker, would you understand the speaker? "
            "If not, then tell them why not. If so, then tell them that they did a good job. "
            "Write at least 3 sentences."
        ),
    )
    suggested_rewrite: str = Field(
        alias="suggestedRewrite",
        min_length=1,
        description=(
            "If you were a local language speaker and you were told this phrase, "
            "what would you suggest they rewrite it as? Write at least 3 sentences."
        ),
    )

    @field_validator("grammar_phrase", "suggested_rewrite")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("feedback text must not be blank")
        return value.strip()


class ScenarioCategory(BaseModel):
    category: str
    scenarios: List[str]

    @property
    def name(self) -> str:
        return self.category


class ScenarioDocument(BaseModel):
    """Shape of the scenarios JSON document."""

    scenarios: List[ScenarioCategory]


class OrchestratorState(BaseModel):
    """Read-only snapshot of everything the presentation layer renders."""

    model_config = ConfigDict(frozen=True)

    selected_category: str = ""
    selected_scenario_prompt: str = ""
    language: Language = Language.ITALIAN
    level: CEFRLevel = CEFRLevel.A1
    phase: ConversationPhase = ConversationPhase.IDLE
    is_recording: bool = False
    audio_level: float = 0.0
    interim_transcript: str = ""
    last_error: Optional[str] = None
    transcript: List[ConversationMessage] = Field(default_factory=list)

    @property
    def has_started_conversation(self) -> bool:
        return self.phase != ConversationPhase.IDLE

    @property
    def is_generating_scenario(self) -> bool:
        return self.phase == ConversationPhase.GENERATING_SCENARIO

    @property
    def is_processing_feedback(self) -> bool:
        return self.phase == ConversationPhase.AWAITING_FEEDBACK
