"""LiteLLM-backed provider used for goal extraction and summarization."""

import os
from typing import Any

import litellm
from litellm import acompletion
from loguru import logger

from chatcompact.providers.base import LLMProvider, LLMResponse

# Model-name marker -> env var LiteLLM reads the key from
_KEY_ENV = (
    ("anthropic", "ANTHROPIC_API_KEY"),
    ("claude", "ANTHROPIC_API_KEY"),
    ("openai", "OPENAI_API_KEY"),
    ("gpt", "OPENAI_API_KEY"),
    ("gemini", "GEMINI_API_KEY"),
)


def _normalize_model(model: str) -> str:
    if "gemini" in model.lower() and "/" not in model:
        return f"gemini/{model}"
    return model


class LiteLLMProvider(LLMProvider):
    """
    Provider that routes through LiteLLM, so any model it knows works.

    An explicit api_key is exported to the matching provider env var
    unless one is already set.
    """

    def __init__(
        self,
        api_key: str | None = None,
        default_model: str = "anthropic/claude-sonnet-4-5",
    ):
        super().__init__(api_key)
        self.default_model = default_model

        if api_key:
            lowered = default_model.lower()
            for marker, env_var in _KEY_ENV:
                if marker in lowered:
                    os.environ.setdefault(env_var, api_key)
                    break

        litellm.suppress_debug_info = True

    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        prompt_id: str | None = None,
    ) -> LLMResponse:
        """Call the model. Failures come back as a response with finish_reason 'error'."""
        model = _normalize_model(model or self.default_model)
        request: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": self.default_max_tokens if max_tokens is None else max_tokens,
            "temperature": self.default_temperature if temperature is None else temperature,
        }
        if prompt_id:
            request["metadata"] = {"prompt_id": prompt_id}

        try:
            response = await acompletion(**request)
        except Exception as e:
            logger.debug(f"LiteLLM call to {model} failed: {e}")
            return LLMResponse(content=f"Error calling LLM: {e}", finish_reason="error")

        choice = response.choices[0]
        usage = getattr(response, "usage", None)
        return LLMResponse(
            content=choice.message.content,
            finish_reason=choice.finish_reason or "stop",
            usage={
                "prompt_tokens": usage.prompt_tokens,
                "completion_tokens": usage.completion_tokens,
                "total_tokens": usage.total_tokens,
            } if usage else {},
        )

    def get_default_model(self) -> str:
        return self.default_model
