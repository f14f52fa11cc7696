"""
Text-generation collaborator for the kitchen assistant.

The gate only needs something that takes a role-tagged message list and
returns text:

  • OpenAIChatGenerator – any OpenAI-compatible /chat/completions endpoint
  • EchoGenerator       – canned reply for local development without a key

Every upstream failure (HTTP error, timeout, malformed body) is raised as
TextGenerationError so the router can answer with one generic error that
is distinct from rate-limit and ban outcomes.
"""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from kitchen_gate.config import (
    OPENAI_API_KEY,
    OPENAI_BASE_URL,
    OPENAI_MAX_TOKENS,
    OPENAI_MODEL,
    OPENAI_TIMEOUT_SECONDS,
)
from kitchen_gate.exceptions import TextGenerationError
from kitchen_gate.models import ChatMessage

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "I couldn't generate a response just now. Try asking again in a moment."


class TextGenerator(Protocol):
    async def complete(self, messages: list[ChatMessage], *, temperature: float = 0.7) -> str:
        ...

    async def close(self) -> None:
        ...


class OpenAIChatGenerator:
    """Async HTTP client for an OpenAI-compatible chat completions API."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = OPENAI_BASE_URL,
        model: str = OPENAI_MODEL,
        max_tokens: int = OPENAI_MAX_TOKENS,
        timeout: float = OPENAI_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._model = model
        self._max_tokens = max_tokens
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def complete(self, messages: list[ChatMessage], *, temperature: float = 0.7) -> str:
        payload = {
            "model": self._model,
            "messages": [m.model_dump() for m in messages],
            "temperature": temperature,
            "max_tokens": self._max_tokens,
        }
        try:
            resp = await self._client.post("/chat/completions", json=payload)
            resp.raise_for_status()
            body = resp.json()
        except httpx.HTTPError as exc:
            logger.exception("Chat completion request failed")
            raise TextGenerationError(str(exc)) from exc
        except ValueError as exc:
            raise TextGenerationError("Chat completion returned a non-JSON body") from exc

        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            logger.warning("Chat completion reply had no content: %r", body)
            return FALLBACK_REPLY
        return (content or "").strip() or FALLBACK_REPLY


class EchoGenerator:
    """Answers without an upstream call so the chat UI works offline."""

    async def close(self) -> None:
        pass

    async def complete(self, messages: list[ChatMessage], *, temperature: float = 0.7) -> str:
        question = messages[-1].content if messages else ""
        return (
            f'Here\'s how I\'d keep it short and useful: "{question}". '
            "I'd give you one or two solid options and the key step to do next. "
            "Want more detail or keep it brief?"
        )


def build_generator() -> TextGenerator:
    if OPENAI_API_KEY:
        return OpenAIChatGenerator(OPENAI_API_KEY)
    logger.info("OPENAI_API_KEY not set; assistant replies are canned")
    return EchoGenerator()
