"""Tests for grounded answer generation."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from openai import OpenAIError

from docchat.chat.answer import (
    FALLBACK_REPLY,
    AnswerGenerationError,
    AnswerGenerator,
    build_context_block,
    resolve_api_key,
    unique_sources,
)
from docchat.index.search import SearchResult


def _results(make_document):
    guide = make_document("guide", ["Install with pip.", "Run the server."])
    faq = make_document("faq", ["Ask anything."])
    return [
        SearchResult(document=guide, text=guide.chunks[1], chunk_index=1, score=0.3),
        SearchResult(document=faq, text=faq.chunks[0], chunk_index=0, score=0.2),
        SearchResult(document=guide, text=guide.chunks[0], chunk_index=0, score=0.1),
    ]


def _mock_client(content: str | None) -> MagicMock:
    client = MagicMock()
    choice = MagicMock()
    choice.message.content = content
    client.chat.completions.create.return_value.choices = [choice]
    return client


class TestContextHelpers:
    """Test context formatting helpers."""

    def test_build_context_block(self, make_document) -> None:
        """Should label each chunk with a 1-based source number."""
        block = build_context_block(_results(make_document))

        assert block == (
            "[Source 1: guide]\nRun the server.\n\n"
            "[Source 2: faq]\nAsk anything.\n\n"
            "[Source 3: guide]\nInstall with pip."
        )

    def test_build_context_block_empty(self) -> None:
        assert build_context_block([]) == ""

    def test_unique_sources(self, make_document) -> None:
        """Should deduplicate names keeping first-seen order."""
        assert unique_sources(_results(make_document)) == ["guide", "faq"]


class TestResolveApiKey:
    """Test API key lookup."""

    def test_primary_variable(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-primary")
        monkeypatch.setenv("OPENAI_API_KEY_ENV_VAR", "sk-secondary")
        assert resolve_api_key() == "sk-primary"

    def test_fallback_variable(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.setenv("OPENAI_API_KEY_ENV_VAR", "sk-secondary")
        assert resolve_api_key() == "sk-secondary"

    def test_missing(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.delenv("OPENAI_API_KEY_ENV_VAR", raising=False)
        assert resolve_api_key() is None


class TestAnswerGenerator:
    """Test AnswerGenerator."""

    def test_generate(self, make_document) -> None:
        """Should send system context, history and query to the model."""
        client = _mock_client("Use pip.")
        generator = AnswerGenerator(client=client)
        history = [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}]

        reply = generator.generate("How do I install?", _results(make_document), history)

        assert reply.content == "Use pip."
        assert reply.sources == ["guide", "faq"]
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["temperature"] == 0.7
        assert kwargs["max_tokens"] == 1000
        messages = kwargs["messages"]
        assert messages[0]["role"] == "system"
        assert "[Source 1: guide]" in messages[0]["content"]
        assert messages[1:3] == history
        assert messages[-1] == {"role": "user", "content": "How do I install?"}

    def test_history_trimmed(self) -> None:
        """Should keep only the most recent history turns."""
        generator = AnswerGenerator(client=MagicMock(), history_limit=2)
        history = [{"role": "user", "content": str(i)} for i in range(5)]

        messages = generator.build_messages("q", [], history)

        assert [m["content"] for m in messages[1:-1]] == ["3", "4"]

    def test_empty_completion(self) -> None:
        """Should fall back to a fixed reply when the model returns nothing."""
        generator = AnswerGenerator(client=_mock_client(None))

        reply = generator.generate("q", [])

        assert reply.content == FALLBACK_REPLY
        assert reply.sources == []

    def test_missing_api_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.delenv("OPENAI_API_KEY_ENV_VAR", raising=False)

        with pytest.raises(AnswerGenerationError, match="API key not configured"):
            AnswerGenerator().generate("q", [])

    def test_api_error_wrapped(self) -> None:
        client = MagicMock()
        client.chat.completions.create.side_effect = OpenAIError("rate limited")

        with pytest.raises(AnswerGenerationError, match="Failed to generate AI response"):
            AnswerGenerator(client=client).generate("q", [])
