"""OpenAI-compatible completion provider adapter.

Wraps the ``openai`` async client to implement :class:`ILLMProvider`.
Supports both chat completion (answer generation) and vision (page
transcription).  When a custom ``openai_base_url`` is configured the
client points at that URL instead of the default OpenAI endpoint.
"""

from __future__ import annotations

# The vision endpoint takes images as base64 data URIs.
import base64

import httpx
import openai
import structlog

from rag_feeder.config.settings import Settings
from rag_feeder.interfaces.llm_provider import ILLMProvider
from rag_feeder.models.rag import ChatTurn
from rag_feeder.utils.deadline import Deadline
from rag_feeder.utils.errors import CompletionProviderError, ProviderTimeoutError

logger = structlog.get_logger(logger_name=__name__)


def _detect_media_type(image_bytes: bytes) -> str:
    """Detect the MIME type of an image from its magic bytes.

    PNG starts with 89 50 4E 47, WEBP with RIFF....WEBP, JPEG with FF D8.
    """
    if image_bytes[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"


class OpenAILLMProvider(ILLMProvider):
    """Completion provider backed by an OpenAI-compatible API.

    Uses ``gpt-4o-mini`` for both chat answers and page transcription by
    default.  Both models can be overridden via settings.
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None) -> None:
        self._settings = settings
        self._api_key = settings.openai_api_key

        client_kwargs: dict = {
            "api_key": self._api_key,
            "max_retries": 0,
            "timeout": openai.Timeout(
                settings.provider_timeout_seconds,
                connect=settings.provider_connect_timeout_seconds,
            ),
        }
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url
        if http_client is not None:
            client_kwargs["http_client"] = http_client

        # The SDK refuses an empty key; without one the provider reports
        # itself unavailable and every call fails with a provider error.
        self._client: openai.AsyncOpenAI | None = (
            openai.AsyncOpenAI(**client_kwargs) if self._api_key else None
        )
        self._text_model = settings.openai_text_model or "gpt-4o-mini"
        self._vision_model = settings.openai_vision_model or "gpt-4o-mini"
        # Custom endpoints may lack a multimodal model unless one is named.
        self._has_vision = bool(settings.openai_vision_model) or not settings.openai_base_url
        self._call_timeout = settings.provider_timeout_seconds
        self._provider_label = "openai-compatible" if settings.openai_base_url else "openai"

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        history: list[ChatTurn] | None = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        deadline: Deadline | None = None,
    ) -> str:
        """Generate a chat completion: system, then history, then the user turn."""
        messages: list[dict] = [{"role": "system", "content": system_prompt}]
        for turn in history or []:
            messages.append({"role": turn.role, "content": turn.content})
        messages.append({"role": "user", "content": user_prompt})

        response = await self._create(
            model=self._text_model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            deadline=deadline,
        )
        content = response.choices[0].message.content if response.choices else None
        if content is None:
            raise CompletionProviderError(
                message=f"{self._provider_label} returned empty response",
                provider_name=self._provider_label,
            )
        logger.info(
            "openai_completion",
            model=self._text_model,
            provider=self._provider_label,
            history_turns=len(history or []),
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return content

    async def vision_extract(
        self,
        image_bytes: bytes,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 2000,
        deadline: Deadline | None = None,
    ) -> str:
        """Transcribe one image with the configured vision model."""
        if not self._has_vision:
            raise CompletionProviderError(
                message="Vision not supported by this provider configuration",
                provider_name=self._provider_label,
            )
        b64 = base64.b64encode(image_bytes).decode("utf-8")
        media_type = _detect_media_type(image_bytes)

        messages: list[dict] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append(
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:{media_type};base64,{b64}", "detail": "high"},
                    },
                ],
            }
        )

        response = await self._create(
            model=self._vision_model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            deadline=deadline,
        )
        content = response.choices[0].message.content if response.choices else None
        logger.info(
            "openai_vision_extract",
            model=self._vision_model,
            provider=self._provider_label,
            chars=len(content or ""),
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return content or ""

    def supports_vision(self) -> bool:
        return self._has_vision

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured (doesn't verify it works)."""
        return bool(self._api_key)

    def get_provider_name(self) -> str:
        """Return 'openai' or 'openai-compatible' depending on configuration."""
        return self._provider_label

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _get_client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            raise CompletionProviderError(
                message="OPENAI_API_KEY is not set", provider_name=self._provider_label
            )
        return self._client

    async def _create(self, deadline: Deadline | None, **kwargs):  # noqa: ANN202
        deadline = deadline or Deadline.unbounded()
        try:
            return await deadline.run(
                self._get_client().chat.completions.create(**kwargs),
                call_timeout=self._call_timeout,
                provider_name=self._provider_label,
            )
        except openai.APITimeoutError as exc:
            raise ProviderTimeoutError(
                message=f"{self._provider_label} timed out after {self._call_timeout:.0f}s",
                provider_name=self._provider_label,
            ) from exc
        except openai.APIError as exc:
            raise CompletionProviderError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self._provider_label,
            ) from exc
