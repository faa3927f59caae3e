"""Abstract base class for completion-model service providers.

Defines the contract for the chat engine's answer generation and for the
vision adapter's page transcription.  Implementations may wrap OpenAI or
any OpenAI-compatible endpoint.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from rag_feeder.models.rag import ChatTurn
from rag_feeder.utils.deadline import Deadline


# Concrete implementation: OpenAILLMProvider (rag_feeder/providers/llm/)
class ILLMProvider(ABC):
    """Contract for completion models used by chat and vision extraction."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        history: list[ChatTurn] | None = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        deadline: Deadline | None = None,
    ) -> str:
        """Generate a text completion.

        Parameters
        ----------
        system_prompt:
            The instruction message; for chat it embeds the retrieved context.
        user_prompt:
            The current user message.
        history:
            Prior conversation turns, sent between the system message and
            *user_prompt* in the order given.
        temperature:
            Sampling temperature.
        max_tokens:
            Upper bound on the response length.
        deadline:
            Bounds the provider call.

        Returns
        -------
        str
            The model's text response.

        Raises
        ------
        rag_feeder.utils.errors.CompletionProviderError
            If the API call fails.
        rag_feeder.utils.errors.ProviderTimeoutError
            If *deadline* expires first.
        """

    @abstractmethod
    async def vision_extract(
        self,
        image_bytes: bytes,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 2000,
        deadline: Deadline | None = None,
    ) -> str:
        """Describe or transcribe one image with the multimodal model.

        Raises
        ------
        rag_feeder.utils.errors.CompletionProviderError
            If the provider has no vision model or the call fails.
        """

    @abstractmethod
    def supports_vision(self) -> bool:
        """Return ``True`` if this provider can process image inputs."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"openai"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials are present."""
