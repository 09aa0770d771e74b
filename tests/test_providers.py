"""
Unit tests for the embedding and chat providers.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import numpy as np
import pytest

from knowledge.models import ConfigurationError, ContextItem, ProviderError
from response.providers import (
    HashingEmbeddingProvider,
    OpenAIChatProvider,
    OpenAIEmbeddingProvider,
    build_providers,
    format_context_items,
)
from retrieval.similarity import cosine_sim


def make_config(**overrides):
    values = dict(
        OPENAI_API_KEY="sk-test",
        OPENAI_BASE_URL="https://api.example.com/v1/",
        EMBEDDING_MODEL_NAME="text-embedding-3-small",
        CHAT_MODEL_NAME="gpt-3.5-turbo",
        MAX_TOKENS=256,
        TEMPERATURE=0.1,
        PROVIDER_TIMEOUT=5.0,
        USE_EMBEDDINGS=True,
        EMBEDDING_PROVIDER="openai",
        HASHING_EMBEDDING_DIM=64,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


class TestFormatContextItems:
    """Test cases for format_context_items."""

    def test_numbered_faqs(self):
        items = [
            ContextItem(question="Check-in?", answer="3pm", confidence=0.9),
            ContextItem(question="Wifi?", answer="Yes", confidence=0.4),
        ]
        assert format_context_items(items) == "FAQ 1: Check-in?\nAnswer: 3pm\n\nFAQ 2: Wifi?\nAnswer: Yes"

    def test_empty(self):
        assert format_context_items([]) == "No relevant information found."


class TestHashingEmbeddingProvider:
    """Test cases for the local hashing provider."""

    def test_hash_matches_java_string_hash(self):
        assert HashingEmbeddingProvider._hash("a") == 97
        assert HashingEmbeddingProvider._hash("hello") == 99162322
        # Wraps to a negative 32-bit value
        assert HashingEmbeddingProvider._hash("polygenelubricants") == -2147483648

    def test_unit_length_and_dimension(self):
        vector = HashingEmbeddingProvider(dim=32).vectorize("What time is check-in?")
        assert len(vector) == 32
        assert np.linalg.norm(vector) == pytest.approx(1.0)

    def test_empty_text_is_zero_vector(self):
        assert HashingEmbeddingProvider(dim=8).vectorize("") == [0.0] * 8

    @pytest.mark.asyncio
    async def test_similar_texts_score_higher(self):
        provider = HashingEmbeddingProvider()
        query = await provider.embed("what time is check-in")
        close = await provider.embed("What time is check-in?")
        far = await provider.embed("Is parking available?")
        assert cosine_sim(query, close) == pytest.approx(1.0)
        assert cosine_sim(query, far) < 0.5

    def test_invalid_dimension(self):
        with pytest.raises(ValueError):
            HashingEmbeddingProvider(dim=0)


class TestOpenAIProviders:
    """Test cases for the OpenAI adapters (HTTP layer mocked)."""

    @pytest.mark.asyncio
    async def test_embedding_requires_key(self):
        with pytest.raises(ConfigurationError):
            await OpenAIEmbeddingProvider(api_key="").embed("hello")

    @pytest.mark.asyncio
    async def test_embedding_request(self):
        provider = OpenAIEmbeddingProvider.from_config(make_config())
        with patch('response.providers._post_json', new=AsyncMock(
            return_value={"data": [{"embedding": [0.1, 0.2]}]}
        )) as post:
            assert await provider.embed("check-in") == [0.1, 0.2]

        url, api_key, payload, timeout = post.await_args.args
        assert url == "https://api.example.com/v1/embeddings"
        assert api_key == "sk-test"
        assert payload == {"input": "check-in", "model": "text-embedding-3-small"}
        assert timeout == 5.0

    @pytest.mark.asyncio
    async def test_embedding_bad_shape(self):
        provider = OpenAIEmbeddingProvider(api_key="sk-test")
        with patch('response.providers._post_json', new=AsyncMock(return_value={"data": []})):
            with pytest.raises(ProviderError):
                await provider.embed("check-in")

    def test_chat_is_configured(self):
        assert OpenAIChatProvider.from_config(make_config()).is_configured
        assert not OpenAIChatProvider.from_config(make_config(OPENAI_API_KEY="  ")).is_configured

    @pytest.mark.asyncio
    async def test_chat_request(self):
        provider = OpenAIChatProvider.from_config(make_config())
        items = [ContextItem(question="Check-in?", answer="3pm", confidence=0.9)]
        response = {"choices": [{"message": {"content": "  Check-in is at 3pm.  "}}]}
        with patch('response.providers._post_json', new=AsyncMock(return_value=response)) as post:
            answer = await provider.complete("You are helpful.", items, "when is check-in")

        assert answer == "Check-in is at 3pm."
        url, _, payload, _ = post.await_args.args
        assert url == "https://api.example.com/v1/chat/completions"
        assert payload["model"] == "gpt-3.5-turbo"
        assert payload["max_tokens"] == 256
        assert payload["messages"][0] == {"role": "system", "content": "You are helpful."}
        assert payload["messages"][1]["content"] == (
            "Context Information:\nFAQ 1: Check-in?\nAnswer: 3pm\n\nCustomer Question: when is check-in"
        )

    @pytest.mark.asyncio
    async def test_chat_requires_key(self):
        with pytest.raises(ConfigurationError):
            await OpenAIChatProvider(api_key=None).complete("system", [], "hello")


class TestBuildProviders:
    """Test cases for build_providers."""

    def test_openai(self):
        embedding, chat = build_providers(make_config())
        assert isinstance(embedding, OpenAIEmbeddingProvider)
        assert isinstance(chat, OpenAIChatProvider)

    def test_embeddings_disabled(self):
        embedding, chat = build_providers(make_config(USE_EMBEDDINGS=False))
        assert embedding is None
        assert isinstance(chat, OpenAIChatProvider)

    def test_hashing(self):
        embedding, _ = build_providers(make_config(EMBEDDING_PROVIDER="hashing"))
        assert isinstance(embedding, HashingEmbeddingProvider)
        assert embedding.dim == 64
