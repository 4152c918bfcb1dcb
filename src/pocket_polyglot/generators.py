"""Scenario, feedback and translation generators.

The orchestrator only sees the abstract interfaces. The LLM-backed
implementations run the (blocking) provider SDK call in a worker thread and
parse the answer into the pydantic models, mapping every failure onto the
``GeneratorError`` hierarchy.
"""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from typing import Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import (
    GeneratorError,
    GeneratorFailed,
    GeneratorUnavailable,
    MalformedGeneratorOutput,
)
from .llm import LLM
from .models import FeedbackResult, Language, ScenarioSpec
from .prompts import (
    SESSION_INSTRUCTIONS,
    TRANSLATION_INSTRUCTIONS,
    build_translation_prompt,
    with_json_schema,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)


def strip_fences(text: str) -> str:
    """Strip markdown code fences from LLM output if present."""
    match = _FENCE_RE.search(text)
    return match.group(1).strip() if match else text.strip()


def parse_structured(text: Optional[str], model: Type[ModelT]) -> ModelT:
    """Best-effort extraction of a JSON object from LLM output into ``model``.

    Raises
    ------
    MalformedGeneratorOutput
        If no JSON object can be found or it does not validate.
    """
    if not text or not text.strip():
        raise MalformedGeneratorOutput("Empty response", raw=text or "")
    s = strip_fences(text)

    # tolerate chatter around the object
    if not (s.startswith("{") and s.endswith("}")):
        start = s.find("{")
        end = s.rfind("}")
        if start == -1 or end <= start:
            raise MalformedGeneratorOutput("No JSON object in response", raw=text)
        s = s[start : end + 1]

    try:
        return model.model_validate_json(s)
    except ValidationError as e:
        raise MalformedGeneratorOutput(
            f"Response does not match {model.__name__}: {e.error_count()} error(s)",
            raw=text,
        ) from e


class ScenarioGenerator(ABC):
    """Produces a structured scenario from a natural-language prompt."""

    @abstractmethod
    async def generate(self, prompt: str) -> ScenarioSpec:
        pass


class FeedbackGenerator(ABC):
    """Produces structured grammar feedback from a prompt."""

    @abstractmethod
    async def generate(self, prompt: str) -> FeedbackResult:
        pass


class Translator(ABC):
    """Translates a transcript message into English."""

    @abstractmethod
    async def translate(self, text: str, language: Language) -> str:
        pass


class _LLMBacked:
    def __init__(self, llm: Optional[LLM], instructions: str = SESSION_INSTRUCTIONS):
        self.llm = llm
        self.instructions = instructions

    async def _complete(self, prompt: str, schema=None) -> str:
        if self.llm is None:
            raise GeneratorUnavailable("No language model is configured")
        try:
            return await asyncio.to_thread(
                self.llm.complete, prompt, self.instructions, schema
            )
        except GeneratorError:
            raise
        except ImportError as e:
            raise GeneratorUnavailable(f"Language model unavailable: {e}") from e
        except Exception as e:
            logger.error("LLM call failed: %r", e)
            raise GeneratorFailed(str(e), cause=e) from e

    async def _generate_model(self, prompt: str, model: Type[ModelT]) -> ModelT:
        schema = model.model_json_schema()
        raw = await self._complete(with_json_schema(prompt, schema), schema)
        return parse_structured(raw, model)


class LLMScenarioGenerator(_LLMBacked, ScenarioGenerator):
    async def generate(self, prompt: str) -> ScenarioSpec:
        return await self._generate_model(prompt, ScenarioSpec)


class LLMFeedbackGenerator(_LLMBacked, FeedbackGenerator):
    async def generate(self, prompt: str) -> FeedbackResult:
        return await self._generate_model(prompt, FeedbackResult)


class LLMTranslator(_LLMBacked, Translator):
    def __init__(self, llm: Optional[LLM], instructions: str = TRANSLATION_INSTRUCTIONS):
        super().__init__(llm, instructions)

    async def translate(self, text: str, language: Language) -> str:
        answer = await self._complete(build_translation_prompt(text, language))
        if not answer or not answer.strip():
            raise MalformedGeneratorOutput("Empty translation", raw=answer or "")
        return answer.strip()
