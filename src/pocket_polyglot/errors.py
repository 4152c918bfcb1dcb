"""Exception hierarchy shared by every pillar.

The orchestrator catches all of these at its boundary and turns them into
transcript entries, so callers of its public operations never see them.
"""

from typing import Optional


class PolyglotError(Exception):
    """Base class for all Pocket Polyglot errors."""


class GeneratorError(PolyglotError):
    """Base class for failures of a scenario, feedback or translation generator."""


class GeneratorUnavailable(GeneratorError):
    """The backing model cannot be used (SDK missing, no API key, ...)."""


class GeneratorFailed(GeneratorError):
    """The backing model was called but the call failed."""

    def __init__(self, description: str, cause: Optional[BaseException] = None):
        super().__init__(description)
        self.description = description
        self.cause = cause


class MalformedGeneratorOutput(GeneratorError):
    """The model answered, but not with something matching the expected schema."""

    def __init__(self, description: str, raw: str = ""):
        super().__init__(description)
        self.raw = raw


class SpeechInputFailed(PolyglotError):
    """A speech session ended without a usable transcription."""

    NIL_RECOGNIZER = "Can't initialize speech recognizer"
    NOT_AUTHORIZED = "Not authorized to recognize speech"
    NOT_PERMITTED = "Not permitted to record audio"
    UNAVAILABLE = "Recognizer is unavailable"


class ResourceLoadFailed(PolyglotError):
    """The scenario catalog document is missing or malformed."""
