"""Grounded answer generation through the OpenAI chat completions API."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Sequence

from openai import OpenAI, OpenAIError

if TYPE_CHECKING:
    from docchat.index.search import SearchResult

DEFAULT_CHAT_MODEL = "gpt-4o"
FALLBACK_REPLY = "I couldn't generate a response."

SYSTEM_PROMPT = """You are a helpful AI assistant that answers questions based on the provided document context.

Guidelines:
- Always base your answers on the provided context
- If the context doesn't contain relevant information, say so clearly
- Provide specific, detailed answers when possible
- Include relevant quotes from the documents when appropriate
- Be concise but comprehensive
- If asked about something not in the context, explain that you can only answer based on the provided documents

Context from documents:
{context}"""

LOGGER = logging.getLogger(__name__)


class AnswerGenerationError(RuntimeError):
    """Raised when the language model cannot produce an answer."""


@dataclass(slots=True)
class ChatResponse:
    content: str
    sources: List[str] = field(default_factory=list)


def resolve_api_key() -> str | None:
    return os.getenv("OPENAI_API_KEY") or os.getenv("OPENAI_API_KEY_ENV_VAR") or None


def build_context_block(results: Sequence["SearchResult"]) -> str:
    """Format search results as numbered, labelled context blocks."""
    return "\n\n".join(
        f"[Source {index}: {result.document.name}]\n{result.text}"
        for index, result in enumerate(results, start=1)
    )


def unique_sources(results: Sequence["SearchResult"]) -> List[str]:
    """Document names of ``results`` without duplicates, in first-seen order."""
    return list(dict.fromkeys(result.document.name for result in results))


class AnswerGenerator:
    """Turns a question plus retrieved chunks into a chat reply."""

    def __init__(
        self,
        *,
        model: str = DEFAULT_CHAT_MODEL,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        history_limit: int = 6,
        client: OpenAI | None = None,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.history_limit = history_limit
        self._client = client

    def _get_client(self) -> OpenAI:
        if self._client is None:
            api_key = resolve_api_key()
            if not api_key:
                raise AnswerGenerationError("OpenAI API key not configured")
            self._client = OpenAI(api_key=api_key)
        return self._client

    def build_messages(
        self,
        query: str,
        results: Sequence["SearchResult"],
        history: Sequence[Dict[str, str]] = (),
    ) -> List[Dict[str, str]]:
        system_prompt = SYSTEM_PROMPT.format(context=build_context_block(results))
        recent = list(history)[-self.history_limit :] if self.history_limit > 0 else []
        return [
            {"role": "system", "content": system_prompt},
            *recent,
            {"role": "user", "content": query},
        ]

    def generate(
        self,
        query: str,
        results: Sequence["SearchResult"],
        history: Sequence[Dict[str, str]] = (),
    ) -> ChatResponse:
        """Ask the model to answer ``query`` from ``results``.

        ``history`` holds earlier turns as ``{"role", "content"}`` dicts.
        """
        client = self._get_client()
        messages = self.build_messages(query, results, history)
        try:
            response = client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except OpenAIError as exc:
            LOGGER.error("Chat completion failed: %s", exc)
            raise AnswerGenerationError(f"Failed to generate AI response: {exc}") from exc

        content = response.choices[0].message.content or FALLBACK_REPLY
        return ChatResponse(content=content, sources=unique_sources(results))
