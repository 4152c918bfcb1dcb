"""Application settings, read from the environment (and an optional .env file)."""

import logging
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import CEFRLevel, Language

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class Settings(BaseSettings):
    # LLM backend: openai, anthropic, gemini, ollama, openrouter or echo
    llm_provider: str = Field(default="openai")
    # Model override; each provider has its own default
    llm_model: Optional[str] = Field(default=None)

    language: Language = Field(default=Language.ITALIAN)
    level: CEFRLevel = Field(default=CEFRLevel.A1)

    # Scenario catalog JSON; the packaged document is used when unset
    scenarios_path: Optional[str] = Field(default=None)

    # Push-to-talk source: "queue" (browser speech recognition) or
    # "whisper" (browser audio transcribed on the server)
    speech_backend: str = Field(default="queue")
    whisper_model: str = Field(default="small")
    whisper_device: str = Field(default="cpu")
    whisper_compute_type: str = Field(default="int8")

    # Refresh period of the presentation layer
    poll_interval_ms: int = Field(default=1000, ge=100)

    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(
        env_prefix="POLYGLOT_", env_file=".env", extra="ignore"
    )


def configure_logging(level: str = "INFO") -> None:
    """Install a basic root handler unless the host application already did."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
