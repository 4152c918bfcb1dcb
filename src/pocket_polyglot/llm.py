"""Concrete implementations for LLM providers."""

import json
import os
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class LLM(ABC):
    """Abstract Base Class for all LLM providers."""

    default_model: str = ""

    @abstractmethod
    def generate_response(
        self, messages: List[Dict[str, Any]], model: Optional[str] = None, **kwargs: Any
    ) -> Any:
        """Generates a response from the LLM provider.

        This method should return the provider's native, rich response object
        directly from their SDK.

        Parameters
        ----------
        messages : List[Dict[str, Any]]
            A list of message dictionaries with ``role`` and ``content`` keys.
            A leading ``system`` message carries the session instructions.
        model : str, optional
            The specific model to use. Falls back to the provider default.
        **kwargs : Any
            Provider-specific parameters passed directly to the SDK.

        Returns
        -------
        Any
            The provider's native, rich response object.
        """
        pass

    @abstractmethod
    def extract_content(self, response: Any) -> str:
        """Extracts the text content from the provider's native response object."""
        pass

    def structured_output_kwargs(self, schema: Dict[str, Any]) -> Dict[str, Any]:
        """SDK parameters asking the provider for JSON output.

        Providers without native JSON support return no extra parameters and
        rely on the instructions embedded in the prompt.
        """
        return {}

    def complete(
        self,
        prompt: str,
        instructions: Optional[str] = None,
        schema: Optional[Dict[str, Any]] = None,
        model: Optional[str] = None,
    ) -> str:
        """Single-turn completion returning plain text.

        Parameters
        ----------
        prompt : str
            The user prompt.
        instructions : str, optional
            System instructions for the session.
        schema : dict, optional
            JSON schema the answer should follow. When given, the provider is
            asked for JSON output where it supports it.
        model : str, optional
            Model override.
        """
        messages: List[Dict[str, Any]] = []
        if instructions:
            messages.append({"role": "system", "content": instructions})
        messages.append({"role": "user", "content": prompt})
        kwargs = self.structured_output_kwargs(schema) if schema else {}
        response = self.generate_response(messages, model=model, **kwargs)
        return self.extract_content(response)


class OpenAI(LLM):
    default_model = "gpt-4o-mini"

    def __init__(self, default_model: Optional[str] = None):
        from openai import OpenAI

        self.client = OpenAI()
        self.model = default_model or self.default_model

    def generate_response(self, messages, model=None, **kwargs):
        return self.client.chat.completions.create(
            messages=messages, model=model or self.model, **kwargs
        )

    def extract_content(self, response: Any) -> str:
        return response.choices[0].message.content

    def structured_output_kwargs(self, schema):
        return {"response_format": {"type": "json_object"}}


class Gemini(LLM):
    default_model = "gemini-2.0-flash"

    def __init__(self, default_model: Optional[str] = None):
        from google import genai

        self.client = genai.Client(api_key=os.environ["GEMINI_API_KEY"])
        self.model = default_model or self.default_model

    def generate_response(self, messages, model=None, **kwargs):
        system = [m["content"] for m in messages if m["role"] == "system"]
        contents = [m["content"] for m in messages if m["role"] != "system"]
        config: Dict[str, Any] = dict(kwargs)
        if system:
            config["system_instruction"] = "\n".join(system)
        return self.client.models.generate_content(
            model=model or self.model, contents=contents, config=config or None
        )

    def extract_content(self, response: Any) -> str:
        return response.text

    def structured_output_kwargs(self, schema):
        return {"response_mime_type": "application/json"}


class Anthropic(LLM):
    default_model = "claude-3-5-sonnet-20241022"

    def __init__(self, default_model: Optional[str] = None):
        from anthropic import Anthropic

        self.client = Anthropic(api_key=os.environ["ANTHROPIC_API_KEY"])
        self.model = default_model or self.default_model

    def generate_response(self, messages, model=None, **kwargs):
        if "max_tokens" not in kwargs:
            kwargs["max_tokens"] = 4096
        system = [m["content"] for m in messages if m["role"] == "system"]
        if system:
            kwargs["system"] = "\n".join(system)
        return self.client.messages.create(
            model=model or self.model,
            messages=[m for m in messages if m["role"] != "system"],
            **kwargs,
        )

    def extract_content(self, response: Any) -> str:
        return response.content[0].text


class Ollama(LLM):
    default_model = "llama3.1"

    def __init__(self, default_model: Optional[str] = None):
        from ollama import Client

        self.client = Client()
        self.model = default_model or self.default_model

    def generate_response(self, messages, model=None, **kwargs):
        return self.client.chat(model=model or self.model, messages=messages, **kwargs)

    def extract_content(self, response: Any) -> str:
        return response["message"]["content"]

    def structured_output_kwargs(self, schema):
        return {"format": schema}


class OpenRouter(LLM):
    default_model = "openai/gpt-4o-mini"

    def __init__(self, default_model: Optional[str] = None):
        from openai import OpenAI

        self.client = OpenAI(
            base_url="https://openrouter.ai/api/v1",
            api_key=os.environ["OPENROUTER_API_KEY"],
        )
        self.model = default_model or self.default_model

    def generate_response(self, messages, model=None, **kwargs):
        return self.client.chat.completions.create(
            model=model or self.model,
            messages=messages,
            extra_headers={"X-Title": "Pocket Polyglot"},
            **kwargs,
        )

    def extract_content(self, response: Any) -> str:
        return response.choices[0].message.content


class Echo(LLM):
    """Offline provider returning canned answers shaped like the requested schema."""

    default_model = "echo-v1"

    def __init__(self, default_model: Optional[str] = None, delay: float = 0.8):
        self.model = default_model or self.default_model
        self.delay = delay

    def generate_response(self, messages, model=None, **kwargs):
        if self.delay:
            time.sleep(self.delay)
        user_prompt = messages[-1]["content"] if messages else "No message provided"
        schema = kwargs.get("schema") or {}
        title = schema.get("title")

        if title == "ScenarioSpec":
            content = json.dumps(
                {
                    "participants": ["Echo", "Learner"],
                    "lines": [
                        {"speaker": "Echo", "text": "Ciao! Echo LLM - static scenario for testing."},
                        {"speaker": "Learner", "text": "Ciao! Come stai?"},
                        {"speaker": "Echo", "text": "Bene, grazie. E tu?"},
                        {"speaker": "Learner", "text": "Molto bene, grazie."},
                    ],
                }
            )
        elif title == "FeedbackResult":
            content = json.dumps(
                {
                    "grammarPhrase": "Echo LLM - static feedback for testing.",
                    "suggestedRewrite": f"Your prompt was:\n\n{user_prompt}",
                }
            )
        else:
            content = f"Echo LLM - static response for testing\n\n{user_prompt}"

        return {"content": content, "model": model or self.model}

    def extract_content(self, response: Any) -> str:
        if isinstance(response, dict) and "content" in response:
            return response["content"]
        return str(response)

    def structured_output_kwargs(self, schema):
        return {"schema": schema}


PROVIDERS = {
    "openai": OpenAI,
    "gemini": Gemini,
    "anthropic": Anthropic,
    "ollama": Ollama,
    "openrouter": OpenRouter,
    "echo": Echo,
}


def create_llm(provider: str = "openai", model: Optional[str] = None) -> LLM:
    """Factory function to create an LLM provider by name.

    Raises
    ------
    ValueError
        If the provider name is not supported.
    """
    name = provider.strip().lower()
    if name not in PROVIDERS:
        raise ValueError(
            f"Unsupported LLM provider: '{provider}'. "
            f"Supported providers are: {', '.join(sorted(PROVIDERS))}"
        )
    return PROVIDERS[name](default_model=model)
