"""Tests for settings and logging configuration."""

import pytest
from pocket_polyglot.config import Settings
from pocket_polyglot.models import CEFRLevel, Language
from pydantic import ValidationError


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("POLYGLOT_LLM_PROVIDER", "POLYGLOT_LANGUAGE", "POLYGLOT_LEVEL"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings(_env_file=None)

        assert settings.llm_provider == "openai"
        assert settings.llm_model is None
        assert settings.language is Language.ITALIAN
        assert settings.level is CEFRLevel.A1
        assert settings.speech_backend == "queue"
        assert settings.poll_interval_ms == 1000

    def test_environment_prefix(self, monkeypatch):
        monkeypatch.setenv("POLYGLOT_LLM_PROVIDER", "anthropic")
        monkeypatch.setenv("POLYGLOT_LANGUAGE", "Spanish")
        monkeypatch.setenv("POLYGLOT_LEVEL", "C1")
        settings = Settings(_env_file=None)

        assert settings.llm_provider == "anthropic"
        assert settings.language is Language.SPANISH
        assert settings.level is CEFRLevel.C1

    def test_env_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("POLYGLOT_WHISPER_MODEL", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("POLYGLOT_WHISPER_MODEL=medium\nUNRELATED=1\n")

        assert Settings(_env_file=env_file).whisper_model == "medium"

    def test_invalid_level(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, level="D4")

    def test_poll_interval_floor(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, poll_interval_ms=10)
