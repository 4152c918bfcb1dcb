"""The conversation orchestrator.

Owns the transcript and the conversation phase, drives scenario generation,
routes learner utterances (typed or spoken) into feedback generation, and
exposes a small read-only state surface for a presentation layer.

All state belongs to the event loop the orchestrator is used from. Mutations
happen in synchronous stretches of code between awaits, so an observer on
that loop never sees a half-applied update. Generator calls are serialized
through a FIFO lock, and every call carries the generation token (epoch) it
started under: ``reset_conversation`` and each new ``start_conversation``
bump the token, and late results from an older token are dropped.
"""

import asyncio
import logging
import random
from typing import List, Optional, Set

from .generators import FeedbackGenerator, ScenarioGenerator, Translator
from .models import (
    ASSISTANT_ROLE,
    FEEDBACK_ROLE,
    SYSTEM_ROLE,
    USER_ROLE,
    CEFRLevel,
    ConversationMessage,
    ConversationPhase,
    Language,
    OrchestratorState,
    ScenarioSpec,
)
from .prompts import build_feedback_context, build_feedback_prompt, build_scenario_prompt
from .scenarios import ScenarioCatalog
from .speech import SpeechEventKind, SpeechInput

logger = logging.getLogger(__name__)

YOUR_TURN_TEXT = "YOUR TURN: Respond to continue the conversation naturally."
GRAMMAR_LABEL = "Grammar/Phrase:"
REWRITE_LABEL = "Suggested rewrite:"


def describe_error(error: BaseException) -> str:
    return str(error) or error.__class__.__name__


def scenario_to_messages(scenario: ScenarioSpec) -> List[ConversationMessage]:
    """Map scenario lines onto transcript messages.

    With exactly two participants the second one is the learner and their
    lines are shown as ``user`` bubbles. Any other participant count shows
    every line as ``assistant``.
    """
    learner = scenario.participants[1] if len(scenario.participants) == 2 else None
    messages = []
    for line in scenario.lines:
        role = USER_ROLE if learner is not None and line.speaker == learner else ASSISTANT_ROLE
        messages.append(ConversationMessage(role=role, text=line.text, speaker=line.speaker))
    return messages


class ConversationOrchestrator:
    """
    Sequences scenario generation, transcript construction, speech/text intake
    and feedback generation.

    Parameters
    ----------
    scenario_generator : ScenarioGenerator
        Produces the role-play for a new conversation.
    feedback_generator : FeedbackGenerator
        Produces grammar feedback for each learner utterance.
    catalog : ScenarioCatalog, optional
        Category to prompt mapping. Defaults to the built-in catalog.
    speech : SpeechInput, optional
        Push-to-talk source. Recording is unavailable without one.
    translator : Translator, optional
        Used by ``translate_message``.
    language, level : Language, CEFRLevel
        Target language and proficiency used in every prompt.
    rng : random.Random, optional
        Source for random scenario selection.
    """

    def __init__(
        self,
        scenario_generator: ScenarioGenerator,
        feedback_generator: FeedbackGenerator,
        catalog: Optional[ScenarioCatalog] = None,
        speech: Optional[SpeechInput] = None,
        translator: Optional[Translator] = None,
        language: Language = Language.ITALIAN,
        level: CEFRLevel = CEFRLevel.A1,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.scenario_generator = scenario_generator
        self.feedback_generator = feedback_generator
        self.catalog = catalog if catalog is not None else ScenarioCatalog()
        self.speech = speech
        self.translator = translator
        self.language = language
        self.level = level
        self._rng = rng or random.Random()

        self._selected_category = ""
        self._selected_scenario_prompt = ""
        self._phase = ConversationPhase.IDLE
        self._is_recording = False
        self._interim_transcript = ""
        self._last_error: Optional[str] = None
        self._transcript: List[ConversationMessage] = []

        self._epoch = 0
        self._lock = asyncio.Lock()
        self._pending: Set[asyncio.Task] = set()
        self._listener: Optional[asyncio.Task] = None

    # --- State surface ---
    @property
    def transcript(self) -> List[ConversationMessage]:
        return list(self._transcript)

    @property
    def phase(self) -> ConversationPhase:
        return self._phase

    @property
    def has_started_conversation(self) -> bool:
        return self._phase != ConversationPhase.IDLE

    @property
    def is_generating_scenario(self) -> bool:
        return self._phase == ConversationPhase.GENERATING_SCENARIO

    @property
    def is_processing_feedback(self) -> bool:
        return self._phase == ConversationPhase.AWAITING_FEEDBACK

    @property
    def is_recording(self) -> bool:
        return self._is_recording

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def selected_category(self) -> str:
        return self._selected_category

    @property
    def selected_scenario_prompt(self) -> str:
        return self._selected_scenario_prompt

    @property
    def interim_transcript(self) -> str:
        return self._interim_transcript

    @property
    def categories(self) -> List[str]:
        return self.catalog.categories

    @property
    def available_scenarios(self) -> List[str]:
        return self.catalog.prompts_for(self._selected_category)

    def snapshot(self) -> OrchestratorState:
        """Copy of the full state, safe to hand to another thread."""
        return OrchestratorState(
            selected_category=self._selected_category,
            selected_scenario_prompt=self._selected_scenario_prompt,
            language=self.language,
            level=self.level,
            phase=self._phase,
            is_recording=self._is_recording,
            audio_level=self.speech.level if self.speech is not None else 0.0,
            interim_transcript=self._interim_transcript,
            last_error=self._last_error,
            transcript=list(self._transcript),
        )

    # --- Selection ---
    def select_category(self, category: str) -> None:
        """Select a category; any previously chosen scenario prompt is cleared."""
        self._selected_category = category or ""
        self._selected_scenario_prompt = ""

    def select_scenario(self, scenario_prompt: str) -> None:
        self._selected_scenario_prompt = scenario_prompt or ""

    def set_language(self, language: Language) -> None:
        self.language = Language(language)

    def set_level(self, level: CEFRLevel) -> None:
        self.level = CEFRLevel(level)

    # --- Conversation flow ---
    async def start_conversation(
        self, category: Optional[str] = None, scenario_prompt: Optional[str] = None
    ) -> None:
        """Generate a new scenario and replace the transcript with it.

        Without arguments the selected category and scenario prompt are used.
        An empty scenario prompt picks one at random from the category. An
        empty category, or a category without prompts, does nothing.
        """
        if category is None:
            category = self._selected_category
            if scenario_prompt is None:
                scenario_prompt = self._selected_scenario_prompt
        if not category:
            return
        scenario = scenario_prompt or self.catalog.random_prompt(category, self._rng)
        if not scenario:
            logger.info("No scenarios registered for category %r", category)
            return

        self._epoch += 1
        epoch = self._epoch
        self._cancel_recording()
        if category != self._selected_category:
            self.select_category(category)
        self._transcript = []
        self._interim_transcript = ""
        self._phase = ConversationPhase.GENERATING_SCENARIO
        prompt = build_scenario_prompt(self.language, self.level, scenario)

        async with self._lock:
            if epoch != self._epoch:
                return
            logger.info("Generating %s scenario for %r", self.language.value, category)
            try:
                result = await self.scenario_generator.generate(prompt)
            except Exception as e:
                if epoch != self._epoch:
                    logger.info("Discarding scenario failure from a superseded conversation")
                    return
                logger.error("Scenario generation failed: %r", e)
                self._last_error = f"LLM Error: {describe_error(e)}"
                self._transcript.append(
                    ConversationMessage(
                        role=SYSTEM_ROLE,
                        text=f"Error generating conversation: {describe_error(e)}",
                    )
                )
            else:
                if epoch != self._epoch:
                    logger.info("Discarding scenario from a superseded conversation")
                    return
                self._transcript.extend(scenario_to_messages(result))
                self._transcript.append(
                    ConversationMessage(role=SYSTEM_ROLE, text=YOUR_TURN_TEXT)
                )
                self._last_error = None
            finally:
                if epoch == self._epoch:
                    self._phase = ConversationPhase.ACTIVE

    def submit_user_utterance(self, text: str) -> Optional[asyncio.Task]:
        """Append the learner's utterance and schedule feedback for it.

        Must be called on the orchestrator's event loop. Returns the feedback
        task without waiting for it, or ``None`` for blank input.
        """
        if not text or not text.strip():
            return None
        self._transcript.append(ConversationMessage(role=USER_ROLE, text=text))
        task = asyncio.get_running_loop().create_task(self.provide_feedback(text))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def provide_feedback(self, utterance: str) -> None:
        """Ask for feedback on ``utterance`` and append it to the transcript."""
        epoch = self._epoch
        async with self._lock:
            if epoch != self._epoch:
                logger.info("Skipping feedback for a superseded conversation")
                return
            resume_phase = (
                ConversationPhase.IDLE
                if self._phase == ConversationPhase.IDLE
                else ConversationPhase.ACTIVE
            )
            self._phase = ConversationPhase.AWAITING_FEEDBACK
            context = build_feedback_context(self._transcript, utterance)
            prompt = build_feedback_prompt(self.language, context, utterance, self.level)
            try:
                feedback = await self.feedback_generator.generate(prompt)
            except Exception as e:
                if epoch != self._epoch:
                    logger.info("Discarding feedback failure from a superseded conversation")
                    return
                logger.error("Feedback generation failed: %r", e)
                self._last_error = f"LLM Error: {describe_error(e)}"
                self._transcript.append(
                    ConversationMessage(
                        role=FEEDBACK_ROLE,
                        text=f"Error generating feedback: {describe_error(e)}",
                    )
                )
            else:
                if epoch != self._epoch:
                    logger.info("Discarding feedback from a superseded conversation")
                    return
                self._transcript.append(
                    ConversationMessage(
                        role=FEEDBACK_ROLE,
                        text=f"{GRAMMAR_LABEL}\n{feedback.grammar_phrase}",
                    )
                )
                self._transcript.append(
                    ConversationMessage(
                        role=FEEDBACK_ROLE,
                        text=f"{REWRITE_LABEL}\n{feedback.suggested_rewrite}",
                    )
                )
                self._last_error = None
            finally:
                if epoch == self._epoch:
                    self._phase = resume_phase

    def reset_conversation(self) -> None:
        """Return to idle with an empty transcript and no error. Keeps the selected category."""
        self._epoch += 1
        self._transcript = []
        self._interim_transcript = ""
        self._last_error = None
        self._phase = ConversationPhase.IDLE
        self._cancel_recording()

    async def wait_idle(self) -> None:
        """Wait until every scheduled feedback task has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # --- Speech ---
    async def start_recording(self) -> None:
        if self.speech is None or self._is_recording:
            return
        await self.speech.start(self.language)
        self._is_recording = True
        self._interim_transcript = ""
        self._listener = asyncio.get_running_loop().create_task(self._listen(self._epoch))

    async def stop_recording(self) -> None:
        """Stop recording and wait for the final transcription to be submitted."""
        if self.speech is None or not self._is_recording:
            return
        listener = self._listener
        await self.speech.stop()
        if listener is not None:
            await asyncio.wait([listener])
        self._is_recording = False

    async def _listen(self, epoch: int) -> None:
        async for event in self.speech.events():
            if event.is_terminal:
                self._is_recording = False
                self._interim_transcript = ""
            if epoch != self._epoch:
                logger.info("Ignoring speech event from a superseded conversation")
                continue
            if event.kind is SpeechEventKind.INTERIM:
                self._interim_transcript = event.text
            elif event.kind is SpeechEventKind.FINAL:
                self.submit_user_utterance(event.text)
            else:
                reason = describe_error(event.error)
                logger.error("Speech input failed: %s", reason)
                self._last_error = f"Speech Error: {reason}"
                self._transcript.append(
                    ConversationMessage(role=SYSTEM_ROLE, text=f"Speech input failed: {reason}")
                )

    def _cancel_recording(self) -> None:
        """Drop the current recording session without submitting anything."""
        if not self._is_recording:
            return
        self._is_recording = False
        self._interim_transcript = ""
        if self._listener is not None:
            self._listener.cancel()
            self._listener = None
        if self.speech is not None:
            self.speech.cancel()

    # --- Translation ---
    async def translate_message(self, message_id: str) -> Optional[str]:
        """English translation of a transcript message, or ``None`` for an unknown id."""
        message = next((m for m in self._transcript if m.id == message_id), None)
        if message is None:
            return None
        if self.translator is None:
            return "Translation failed: no translator configured"
        try:
            return await self.translator.translate(message.text, self.language)
        except Exception as e:
            logger.error("Translation failed: %r", e)
            return f"Translation failed: {describe_error(e)}"
