"""
Embedding and chat-completion providers.

The pipeline depends only on the two protocols below; the OpenAI adapters talk
to the REST API through aiohttp so an in-flight call is cancelled together with
the request that started it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional, Protocol, Sequence, runtime_checkable

import aiohttp
import numpy as np

from knowledge.models import ConfigurationError, ContextItem, ProviderError
from retrieval.tokenizer import tokenize

logger = logging.getLogger("Inap")


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Converts text to a dense vector."""

    async def embed(self, text: str) -> list[float]: ...


@runtime_checkable
class ChatProvider(Protocol):
    """Writes the customer-facing reply from FAQ grounding."""

    @property
    def is_configured(self) -> bool: ...

    async def complete(
        self,
        system_prompt: str,
        context_items: Sequence[ContextItem],
        user_message: str,
    ) -> str: ...


def format_context_items(context_items: Sequence[ContextItem]) -> str:
    """Render FAQ grounding the way the chat model is prompted with it."""
    if not context_items:
        return "No relevant information found."
    return "\n\n".join(
        f"FAQ {index}: {item.question}\nAnswer: {item.answer}"
        for index, item in enumerate(context_items, start=1)
    )


async def _post_json(url: str, api_key: str, payload: dict[str, Any], timeout: float) -> dict[str, Any]:
    """
    POST a JSON body to the OpenAI API.

    Raises:
        ProviderError: On transport errors, timeouts or non-200 responses
    """
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }
    try:
        timeout_obj = aiohttp.ClientTimeout(total=timeout)
        async with aiohttp.ClientSession(timeout=timeout_obj) as session:
            async with session.post(url, json=payload, headers=headers) as response:
                if response.status != 200:
                    detail = response.reason
                    try:
                        body = await response.json(content_type=None)
                        detail = (body or {}).get("error", {}).get("message") or detail
                    except (aiohttp.ContentTypeError, ValueError):
                        pass
                    raise ProviderError(f"OpenAI API error (HTTP {response.status}): {detail}")
                return await response.json(content_type=None)

    except aiohttp.ClientError as e:
        raise ProviderError(f"Request to {url} failed: {e}") from e
    except asyncio.TimeoutError as e:
        raise ProviderError(f"Timeout calling {url}") from e


class OpenAIEmbeddingProvider:
    """Embeddings from the OpenAI ``/embeddings`` endpoint."""

    def __init__(self, api_key: str, model: str = "text-embedding-3-small",
                 base_url: str = "https://api.openai.com/v1", timeout: float = 8.0):
        self.api_key = (api_key or "").strip()
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_config(cls, config) -> OpenAIEmbeddingProvider:
        return cls(
            api_key=config.OPENAI_API_KEY,
            model=config.EMBEDDING_MODEL_NAME,
            base_url=config.OPENAI_BASE_URL,
            timeout=config.PROVIDER_TIMEOUT,
        )

    async def embed(self, text: str) -> list[float]:
        if not self.api_key:
            raise ConfigurationError("OpenAI API key is required for embeddings")

        data = await _post_json(
            f"{self.base_url}/embeddings",
            self.api_key,
            {"input": text, "model": self.model},
            self.timeout,
        )
        try:
            return [float(x) for x in data["data"][0]["embedding"]]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise ProviderError(f"Unexpected embedding response shape: {e}") from e


class OpenAIChatProvider:
    """Chat completions from the OpenAI ``/chat/completions`` endpoint."""

    def __init__(self, api_key: str, model: str = "gpt-3.5-turbo",
                 base_url: str = "https://api.openai.com/v1", max_tokens: int = 512,
                 temperature: float = 0.2, timeout: float = 8.0):
        self.api_key = (api_key or "").strip()
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout

    @classmethod
    def from_config(cls, config) -> OpenAIChatProvider:
        return cls(
            api_key=config.OPENAI_API_KEY,
            model=config.CHAT_MODEL_NAME,
            base_url=config.OPENAI_BASE_URL,
            max_tokens=config.MAX_TOKENS,
            temperature=config.TEMPERATURE,
            timeout=config.PROVIDER_TIMEOUT,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def complete(self, system_prompt: str, context_items: Sequence[ContextItem], user_message: str) -> str:
        if not self.api_key:
            raise ConfigurationError("OpenAI API key is required for chat completions")

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {
                    "role": "user",
                    "content": (
                        f"Context Information:\n{format_context_items(context_items)}\n\n"
                        f"Customer Question: {user_message}"
                    ),
                },
            ],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "top_p": 1,
            "frequency_penalty": 0,
            "presence_penalty": 0,
        }
        data = await _post_json(f"{self.base_url}/chat/completions", self.api_key, payload, self.timeout)
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(f"Unexpected chat response shape: {e}") from e
        return (content or "").strip()


class HashingEmbeddingProvider:
    """
    Local bag-of-words hashing embeddings.

    No network and no key; useful for offline installs and for precomputing
    FAQ vectors that are compared against queries embedded the same way.
    """

    def __init__(self, dim: int = 256):
        if dim < 1:
            raise ValueError("dim must be positive")
        self.dim = dim

    @staticmethod
    def _hash(token: str) -> int:
        # 31-multiplier string hash wrapped to a signed 32-bit integer
        h = 0
        for ch in token:
            h = (h * 31 + ord(ch)) & 0xFFFFFFFF
        return h - 0x100000000 if h >= 0x80000000 else h

    def vectorize(self, text: str) -> list[float]:
        vector = np.zeros(self.dim, dtype=float)
        for token in tokenize(text):
            vector[abs(self._hash(token)) % self.dim] += 1.0
        norm = np.linalg.norm(vector) or 1.0
        return (vector / norm).tolist()

    async def embed(self, text: str) -> list[float]:
        return self.vectorize(text)


def build_providers(config) -> tuple[Optional[EmbeddingProvider], ChatProvider]:
    """Providers for the active configuration."""
    chat_provider = OpenAIChatProvider.from_config(config)
    if not config.USE_EMBEDDINGS:
        logger.info("Embedding search disabled by configuration")
        return None, chat_provider

    provider_name = getattr(config, "EMBEDDING_PROVIDER", "openai")
    if provider_name == "hashing":
        return HashingEmbeddingProvider(dim=config.HASHING_EMBEDDING_DIM), chat_provider
    if provider_name != "openai":
        logger.warning(f"Unknown embedding provider '{provider_name}', using OpenAI")
    return OpenAIEmbeddingProvider.from_config(config), chat_provider
