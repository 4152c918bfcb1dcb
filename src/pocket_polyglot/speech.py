"""Speech input sources.

A speech source is owned by one orchestrator and hands its results over a
per-session ``asyncio.Queue``: zero or more interim hypotheses followed by
exactly one terminal event (final text or failure).
"""

from __future__ import annotations

import asyncio
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum, auto
from typing import AsyncIterator, List, Optional

import numpy as np

from .errors import SpeechInputFailed
from .models import Language

logger = logging.getLogger(__name__)

SILENCE_FLOOR_DB = -60.0


class SpeechEventKind(Enum):
    INTERIM = auto()
    FINAL = auto()
    FAILED = auto()


@dataclass(frozen=True)
class SpeechEvent:
    kind: SpeechEventKind
    text: str = ""
    error: Optional[SpeechInputFailed] = None

    @property
    def is_terminal(self) -> bool:
        return self.kind is not SpeechEventKind.INTERIM

    @classmethod
    def interim(cls, text: str) -> "SpeechEvent":
        return cls(SpeechEventKind.INTERIM, text=text)

    @classmethod
    def final(cls, text: str) -> "SpeechEvent":
        return cls(SpeechEventKind.FINAL, text=text)

    @classmethod
    def failed(cls, reason: str) -> "SpeechEvent":
        return cls(SpeechEventKind.FAILED, error=SpeechInputFailed(reason))


def audio_level(samples) -> float:
    """Normalised input level in [0, 1] for a level meter.

    RMS of float samples in [-1, 1], converted to dBFS and mapped linearly
    from the -60 dB floor to full scale. Silence gives 0.
    """
    data = np.asarray(samples, dtype=np.float32)
    if data.size == 0:
        return 0.0
    rms = float(np.sqrt(np.mean(np.square(data))))
    if rms <= 0.0:
        return 0.0
    db = 20.0 * math.log10(rms)
    return float(min(1.0, max(0.0, (db - SILENCE_FLOOR_DB) / -SILENCE_FLOOR_DB)))


def pcm16_to_float(pcm16_le: bytes) -> np.ndarray:
    return np.frombuffer(pcm16_le, dtype="<i2").astype(np.float32) / 32768.0


class SpeechInput(ABC):
    """Interface for a push-to-talk transcription source.

    ``transcribes_audio`` tells the host whether the source turns fed audio
    into text itself, or only meters it and expects recognizer results.
    """

    transcribes_audio = False

    def __init__(self) -> None:
        self.language: Language = Language.ITALIAN
        self.level: float = 0.0
        self.is_active: bool = False
        self._queue: "asyncio.Queue[SpeechEvent]" = asyncio.Queue()
        self._terminated = False

    @abstractmethod
    async def start(self, language: Language) -> None:
        """Begins a recording session in ``language``."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Ends the session; the terminal event follows on the channel."""
        pass

    def cancel(self) -> None:
        """Ends the session at once. No terminal event is published."""
        self.is_active = False
        self.level = 0.0
        self._terminated = True

    def feed(self, pcm16_le: bytes) -> None:
        """Meters a frame of mono PCM16 little-endian audio."""
        if self.is_active:
            self.level = audio_level(pcm16_to_float(pcm16_le))

    def push_failure(self, reason: str) -> None:
        self._publish(SpeechEvent.failed(reason))

    def _open_session(self, language: Language) -> None:
        self.language = language
        self.level = 0.0
        self.is_active = True
        self._terminated = False
        self._queue = asyncio.Queue()

    def _publish(self, event: SpeechEvent) -> None:
        if self._terminated:
            logger.debug("Dropping %s event after terminal event", event.kind.name)
            return
        if event.is_terminal:
            self._terminated = True
            self.is_active = False
            self.level = 0.0
        self._queue.put_nowait(event)

    async def events(self) -> AsyncIterator[SpeechEvent]:
        """Yields the current session's events up to and including the terminal one."""
        queue = self._queue
        while True:
            event = await queue.get()
            yield event
            if event.is_terminal:
                return


class QueueSpeechInput(SpeechInput):
    """Speech source fed by the host (a browser recognizer, a test, ...).

    Pushes must happen on the event loop that owns the orchestrator.
    """

    def __init__(self) -> None:
        super().__init__()
        self._last_interim = ""

    async def start(self, language: Language) -> None:
        self._open_session(language)
        self._last_interim = ""

    async def stop(self) -> None:
        # no explicit final from the host: the latest hypothesis is the result
        if self.is_active:
            self._publish(SpeechEvent.final(self._last_interim))

    def push_interim(self, text: str) -> None:
        self._last_interim = text
        self._publish(SpeechEvent.interim(text))

    def push_final(self, text: str) -> None:
        self._publish(SpeechEvent.final(text))


class WhisperSpeechInput(SpeechInput):
    """Buffers PCM16 audio while recording and transcribes it with faster-whisper on stop."""

    transcribes_audio = True

    def __init__(
        self,
        model_size: str = "small",
        device: str = "cpu",
        compute_type: str = "int8",
        sample_rate_hz: int = 16000,
        model=None,
    ) -> None:
        super().__init__()
        self.model_size = model_size
        self.device = device
        self.compute_type = compute_type
        self.sample_rate_hz = sample_rate_hz
        self._model = model
        self._chunks: List[np.ndarray] = []

    async def start(self, language: Language) -> None:
        self._open_session(language)
        self._chunks = []

    def feed(self, pcm16_le: bytes) -> None:
        """Adds a frame of mono PCM16 little-endian audio to the session."""
        if not self.is_active:
            return
        frame = pcm16_to_float(pcm16_le)
        self._chunks.append(frame)
        self.level = audio_level(frame)

    def cancel(self) -> None:
        super().cancel()
        self._chunks = []

    async def stop(self) -> None:
        if not self.is_active:
            return
        self.is_active = False
        audio = np.concatenate(self._chunks) if self._chunks else np.zeros(0, np.float32)
        self._chunks = []
        if audio.size == 0:
            self._publish(SpeechEvent.final(""))
            return
        try:
            text = await asyncio.to_thread(self._transcribe, audio)
        except ImportError:
            logger.error("faster-whisper is not installed")
            self._publish(SpeechEvent.failed(SpeechInputFailed.UNAVAILABLE))
        except Exception as e:
            logger.error("Transcription failed: %r", e)
            self._publish(SpeechEvent.failed(str(e) or SpeechInputFailed.NIL_RECOGNIZER))
        else:
            self._publish(SpeechEvent.final(text))

    def _load_model(self):
        if self._model is None:
            from faster_whisper import WhisperModel

            self._model = WhisperModel(
                self.model_size, device=self.device, compute_type=self.compute_type
            )
        return self._model

    def _transcribe(self, audio: np.ndarray) -> str:
        segments, info = self._load_model().transcribe(
            audio, language=self.language.iso_code, word_timestamps=False
        )
        return " ".join(seg.text.strip() for seg in segments).strip()


# Web Speech API error codes reported by the browser recognizer
RECOGNIZER_ERRORS = {
    "not-allowed": SpeechInputFailed.NOT_PERMITTED,
    "service-not-allowed": SpeechInputFailed.NOT_AUTHORIZED,
    "audio-capture": SpeechInputFailed.NIL_RECOGNIZER,
    "unsupported": SpeechInputFailed.UNAVAILABLE,
}


def apply_recognizer_result(source: SpeechInput, result) -> None:
    """Forward one message from the browser recognizer to ``source``.

    ``result`` is ``{"text": str, "final": bool}`` or ``{"error": code}``.
    Errors end any source's session. Text only reaches sources that do not
    transcribe audio themselves.
    """
    if not result:
        return
    error = result.get("error")
    if error:
        source.push_failure(RECOGNIZER_ERRORS.get(error, f"Speech recognition error: {error}"))
        return
    if not isinstance(source, QueueSpeechInput):
        return
    text = result.get("text") or ""
    if result.get("final"):
        source.push_final(text)
    else:
        source.push_interim(text)
