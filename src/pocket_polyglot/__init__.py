"""
The main entrypoint for the Pocket Polyglot package.

This module contains the PocketPolyglot Dash application, which wires the
pluggable pillars (LLM, generators, speech input, scenario catalog, layout)
around a single ConversationOrchestrator.
"""

import logging
from typing import Optional

from dash import Dash

from . import generators, layout, llm, scenarios, speech
from .config import Settings, configure_logging
from .orchestrator import ConversationOrchestrator
from .runtime import EventLoopThread

logger = logging.getLogger(__name__)

__all__ = ["PocketPolyglot", "ConversationOrchestrator", "Settings"]


class PocketPolyglot(Dash):
    """
    The Dash application for language-learning conversation practice.

    The orchestrator lives on a private event loop thread; Dash callbacks
    marshal their calls onto it. Every pillar can be injected, and concrete
    defaults are built from ``Settings`` otherwise.
    """

    def __init__(
        self,
        layout: Optional["layout.Layout"] = None,
        llm: Optional["llm.LLM"] = None,
        scenario_generator: Optional[generators.ScenarioGenerator] = None,
        feedback_generator: Optional[generators.FeedbackGenerator] = None,
        translator: Optional[generators.Translator] = None,
        speech: Optional["speech.SpeechInput"] = None,
        catalog: Optional[scenarios.ScenarioCatalog] = None,
        settings: Optional[Settings] = None,
        **kwargs,
    ) -> None:
        """
        Initialize the application with configurable pillars.

        Parameters
        ----------
        layout : layout.Layout, optional
            Layout builder. Defaults to layout.Bootstrap().
        llm : llm.LLM, optional
            Provider backing the default generators. Defaults to the provider
            named by ``settings.llm_provider``; falls back to llm.Echo() with
            a warning when its SDK or API key is missing.
        scenario_generator, feedback_generator, translator : optional
            Override the LLM-backed generators.
        speech : speech.SpeechInput, optional
            Speech source. Defaults to the backend named by
            ``settings.speech_backend`` (speech.QueueSpeechInput unless set).
        catalog : scenarios.ScenarioCatalog, optional
            Defaults to the catalog at ``settings.scenarios_path`` or the
            packaged one.
        settings : Settings, optional
            Defaults to Settings() read from the environment.
        **kwargs
            Additional arguments passed to the Dash constructor.

        Raises
        ------
        ValueError
            If the layout is missing component IDs the callbacks need, or the
            configured LLM provider or speech backend is unknown.
        """
        self.settings = settings if settings is not None else Settings()
        configure_logging(self.settings.log_level)

        llm_module = globals()["llm"]
        layout_module = globals()["layout"]
        speech_module = globals()["speech"]

        self.catalog = (
            catalog
            if catalog is not None
            else scenarios.ScenarioCatalog.load(self.settings.scenarios_path)
        )

        if llm is not None:
            self.llm = llm
        else:
            try:
                self.llm = llm_module.create_llm(
                    self.settings.llm_provider, self.settings.llm_model
                )
            except (ImportError, KeyError) as e:
                import warnings

                warnings.warn(
                    f"Pocket Polyglot is running with the offline Echo LLM because the "
                    f"'{self.settings.llm_provider}' provider could not be created ({e!r}). "
                    'Install it with: pip install "pocket-polyglot[openai]" and set its API key.',
                    UserWarning,
                )
                self.llm = llm_module.Echo()

        self.layout_builder = (
            layout
            if layout is not None
            else layout_module.Bootstrap(
                categories=self.catalog.categories,
                poll_interval_ms=self.settings.poll_interval_ms,
            )
        )

        if "external_stylesheets" not in kwargs:
            kwargs["external_stylesheets"] = []
        kwargs["external_stylesheets"].extend(
            self.layout_builder.get_external_stylesheets()
        )
        if "external_scripts" not in kwargs:
            kwargs["external_scripts"] = []
        kwargs["external_scripts"].extend(self.layout_builder.get_external_scripts())

        super().__init__(**kwargs)

        self.orchestrator = ConversationOrchestrator(
            scenario_generator=scenario_generator
            or generators.LLMScenarioGenerator(self.llm),
            feedback_generator=feedback_generator
            or generators.LLMFeedbackGenerator(self.llm),
            translator=translator or generators.LLMTranslator(self.llm),
            speech=speech if speech is not None else self._default_speech(speech_module),
            catalog=self.catalog,
            language=self.settings.language,
            level=self.settings.level,
        )

        self.layout = self.layout_builder.build_layout()
        self._validate_layout()
        self.runtime = EventLoopThread()
        self._register_callbacks()

    def _default_speech(self, speech_module):
        backend = self.settings.speech_backend.strip().lower()
        if backend == "whisper":
            return speech_module.WhisperSpeechInput(
                model_size=self.settings.whisper_model,
                device=self.settings.whisper_device,
                compute_type=self.settings.whisper_compute_type,
            )
        if backend != "queue":
            raise ValueError(
                f"Unsupported speech backend: '{self.settings.speech_backend}'. "
                "Supported backends are: queue, whisper"
            )
        return speech_module.QueueSpeechInput()

    def _validate_layout(self) -> None:
        present = layout.collect_ids(self.layout)
        missing = layout.REQUIRED_COMPONENT_IDS - present
        if missing:
            raise ValueError(
                f"Layout is missing required component IDs: {', '.join(sorted(missing))}"
            )

    def _register_callbacks(self) -> None:
        """Registers all the callbacks that orchestrate the pillars."""
        from .callbacks import register_callbacks

        register_callbacks(self)
