"""Base LLM provider interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from chatcompact.errors import ProviderError


@dataclass
class LLMResponse:
    """Response from an LLM provider."""
    content: str | None
    finish_reason: str = "stop"
    usage: dict[str, int] = field(default_factory=dict)

    @property
    def is_error(self) -> bool:
        return self.finish_reason == "error"


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Implementations should handle the specifics of each provider's API
    while maintaining a consistent interface.
    """

    def __init__(self, api_key: str | None = None):
        self.api_key = api_key
        self.default_temperature: float = 0.3
        self.default_max_tokens: int = 4096

    @abstractmethod
    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        prompt_id: str | None = None,
    ) -> LLMResponse:
        """
        Send a chat completion request.

        Args:
            messages: List of message dicts with 'role' and 'content'.
            model: Model identifier (provider-specific).
            max_tokens: Maximum tokens in response (uses provider default if None).
            temperature: Sampling temperature (uses provider default if None).
            prompt_id: Identifier of the user prompt this call belongs to.

        Returns:
            LLMResponse with content.
        """
        pass

    @abstractmethod
    def get_default_model(self) -> str:
        """Get the default model for this provider."""
        pass

    async def generate(
        self,
        model: str,
        system_instruction: str,
        contents: list[dict[str, Any]],
        prompt_id: str,
    ) -> str:
        """
        Run a single text generation with a system instruction.

        Returns:
            The response text ("" when the model returned nothing).

        Raises:
            ProviderError: If the provider reported a failed call.
        """
        messages = [{"role": "system", "content": system_instruction}, *contents]
        response = await self.chat(messages=messages, model=model, prompt_id=prompt_id)
        if response.is_error:
            raise ProviderError(response.content or "LLM call failed")
        return response.content or ""
