"""
Vision model client with provider abstraction.

The extractor only needs "send an image and an instruction, get text back".
OpenAI-compatible chat completions is the default provider; without an API key
the disabled provider is used and every call fails as an extraction failure.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import httpx
import structlog

from trippey.config import get_settings

logger = structlog.get_logger()


class VisionProviderError(Exception):
    """The vision capability was unreachable or returned an unusable response."""


class VisionTimeoutError(VisionProviderError):
    """The vision call exceeded its time budget."""


class BaseVisionProvider(ABC):
    """Abstract base class for image-understanding providers."""

    @abstractmethod
    async def describe(self, image_url: str, instruction: str, max_tokens: int = 1000) -> str:
        """Return the model's raw text answer for the image. Raises VisionProviderError."""
        ...


class OpenAIVisionProvider(BaseVisionProvider):
    """Chat-completions vision call over HTTP."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str,
        timeout_seconds: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def describe(self, image_url: str, instruction: str, max_tokens: int = 1000) -> str:
        payload = {
            "model": self.model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": instruction},
                        {"type": "image_url", "image_url": {"url": image_url}},
                    ],
                }
            ],
            "max_tokens": max_tokens,
        }
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout_seconds) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as e:
            logger.warning("vision_call_timeout", model=self.model, timeout=self.timeout_seconds)
            msg = f"Vision call timed out after {self.timeout_seconds}s"
            raise VisionTimeoutError(msg) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("vision_call_failed", model=self.model, error=str(e))
            msg = f"Vision call failed: {e}"
            raise VisionProviderError(msg) from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            msg = "Vision response has no message content"
            raise VisionProviderError(msg) from e
        if not isinstance(content, str) or not content.strip():
            msg = "Vision response content is empty"
            raise VisionProviderError(msg)
        return content


class DisabledVisionProvider(BaseVisionProvider):
    """Used when no vision API key is configured."""

    async def describe(self, image_url: str, instruction: str, max_tokens: int = 1000) -> str:
        msg = "Vision provider is not configured"
        raise VisionProviderError(msg)


def get_vision_provider() -> BaseVisionProvider:
    """Create the vision provider from configuration."""
    settings = get_settings()
    if not settings.vision_api_key:
        logger.warning("vision_provider_disabled", reason="no api key configured")
        return DisabledVisionProvider()
    return OpenAIVisionProvider(
        api_key=settings.vision_api_key,
        base_url=settings.vision_api_base_url,
        model=settings.vision_model,
        timeout_seconds=settings.extraction_timeout_seconds,
    )
