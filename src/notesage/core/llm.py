"""Completion provider abstraction for NoteSage.

Supports Anthropic (cloud) and OpenAI-compatible endpoints (OpenAI, or a
local Ollama server) behind one plain text-in/text-out interface.
Providers are created once from settings and passed to the chat service.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Protocol

from notesage.config import NoteSageSettings
from notesage.errors import CompletionProviderError

logger = logging.getLogger(__name__)


@dataclass
class ModerationResult:
    """Outcome of a moderation check."""
    flagged: bool = False
    categories: list[str] = field(default_factory=list)


class CompletionProvider(Protocol):
    """Protocol for completion providers."""

    def complete(self, system: str, messages: list[dict[str, str]]) -> str:
        """Return the model's reply to a list of {"role", "content"} messages."""
        ...

    def moderate(self, text: str) -> ModerationResult:
        """Check text against the provider's content policy."""
        ...


class AnthropicProvider:
    """Anthropic API provider using the anthropic SDK."""

    def __init__(
        self,
        model: str = "claude-sonnet-4-5-20250929",
        max_tokens: int = 1024,
        temperature: float = 0.0,
        api_key: str | None = None,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._api_key = api_key
        self._client: Any = None

    def _get_client(self) -> Any:
        """Lazy-create the Anthropic client on first use."""
        if self._client is None:
            import anthropic

            api_key = self._api_key or os.environ.get("ANTHROPIC_API_KEY")
            if not api_key:
                raise CompletionProviderError("ANTHROPIC_API_KEY is not set")
            self._client = anthropic.Anthropic(api_key=api_key)
        return self._client

    def complete(self, system: str, messages: list[dict[str, str]]) -> str:
        client = self._get_client()
        try:
            response = client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system=system,
                messages=messages,
            )
        except Exception as e:
            raise CompletionProviderError(f"Anthropic API error: {e}") from e

        return "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )

    def moderate(self, text: str) -> ModerationResult:
        # Anthropic has no standalone moderation endpoint
        return ModerationResult()


class OpenAICompatibleProvider:
    """OpenAI-compatible provider (works with OpenAI and Ollama).

    Ollama exposes an OpenAI-compatible endpoint at http://localhost:11434/v1.
    We use the openai Python SDK with a custom base_url.
    """

    OLLAMA_BASE_URL = "http://localhost:11434/v1"

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        max_tokens: int = 1024,
        temperature: float = 0.0,
        base_url: str | None = None,
        api_key: str | None = None,
        supports_moderation: bool = True,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._base_url = base_url
        self._api_key = api_key
        self.supports_moderation = supports_moderation
        self._client: Any = None

    def _get_client(self) -> Any:
        if self._client is None:
            from openai import OpenAI

            kwargs: dict[str, Any] = {}
            if self._base_url:
                kwargs["base_url"] = self._base_url
            kwargs["api_key"] = self._api_key or os.environ.get("OPENAI_API_KEY") or "ollama"
            self._client = OpenAI(**kwargs)
        return self._client

    def complete(self, system: str, messages: list[dict[str, str]]) -> str:
        client = self._get_client()
        oai_messages = [{"role": "system", "content": system}, *messages]
        try:
            response = client.chat.completions.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                messages=oai_messages,
            )
        except Exception as e:
            raise CompletionProviderError(f"OpenAI-compatible API error: {e}") from e

        choice = response.choices[0] if response.choices else None
        if choice is None or not choice.message.content:
            return ""
        return choice.message.content

    def moderate(self, text: str) -> ModerationResult:
        if not self.supports_moderation:
            return ModerationResult()

        client = self._get_client()
        try:
            response = client.moderations.create(input=text)
        except Exception as e:
            raise CompletionProviderError(f"Moderation failed: {e}") from e

        result = response.results[0]
        if not result.flagged:
            return ModerationResult()
        categories = [
            name for name, hit in result.categories.model_dump().items() if hit
        ]
        return ModerationResult(flagged=True, categories=categories)


def create_provider(settings: NoteSageSettings) -> CompletionProvider:
    """Factory function to create the configured completion provider."""
    if settings.provider == "ollama":
        return OpenAICompatibleProvider(
            model=settings.model,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
            base_url=settings.base_url or OpenAICompatibleProvider.OLLAMA_BASE_URL,
            supports_moderation=False,
        )
    if settings.provider == "openai":
        return OpenAICompatibleProvider(
            model=settings.model,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
            base_url=settings.base_url,
        )
    return AnthropicProvider(
        model=settings.model,
        max_tokens=settings.max_tokens,
        temperature=settings.temperature,
    )
