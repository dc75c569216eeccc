"""
OpenAI chat-completion provider for Nekovibe.

Wraps an ``AsyncOpenAI`` client behind a single ``complete()`` call that
returns the model's text, or None when the call fails. Callers turn None
into their own canned answer, so no model error ever reaches an HTTP client.

Services depend on the :class:`LanguageModel` protocol rather than on this
class, which keeps them testable with a stub model.

Usage:
    from nekovibe.openai_provider import ChatModel

    model = ChatModel(api_key=settings.openai_api_key, model=settings.openai_model)
    text = await model.complete(system_prompt, user_prompt, temperature=0.3)
"""

import logging
from typing import Optional, Protocol

from openai import AsyncOpenAI, OpenAIError

from .config import Settings

logger = logging.getLogger(__name__)


class LanguageModel(Protocol):
    """The model capability the services need."""

    model: str

    async def complete(
        self,
        system: str,
        user: str,
        temperature: float = 0.3,
        max_tokens: Optional[int] = None,
    ) -> Optional[str]:
        ...


class ChatModel:
    """Chat-completions client returning text or None."""

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", client: Optional[AsyncOpenAI] = None):
        self.model = model
        self.client = client or AsyncOpenAI(api_key=api_key)

    async def complete(
        self,
        system: str,
        user: str,
        temperature: float = 0.3,
        max_tokens: Optional[int] = None,
    ) -> Optional[str]:
        kwargs = {}
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                temperature=temperature,
                **kwargs,
            )
        except OpenAIError as e:
            logger.warning(f"OpenAI completion failed ({self.model}): {e}")
            return None

        if not response.choices:
            return None
        content = response.choices[0].message.content
        return content.strip() if content else None


def create_chat_model(settings: Settings) -> Optional[ChatModel]:
    """Build the chat model, or None when OPENAI_API_KEY is not configured."""
    if not settings.has_openai:
        logger.warning("OPENAI_API_KEY not set, language-model features disabled")
        return None
    return ChatModel(api_key=settings.openai_api_key, model=settings.openai_model)


def get_provider_info(settings: Settings) -> dict:
    """Return info about the language-model provider for health checks."""
    return {
        "provider": "openai" if settings.has_openai else "none",
        "available": settings.has_openai,
        "model": settings.openai_model,
    }
