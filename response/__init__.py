"""
Response package: model providers and reply synthesis.
"""

from .providers import (
    ChatProvider,
    EmbeddingProvider,
    HashingEmbeddingProvider,
    OpenAIChatProvider,
    OpenAIEmbeddingProvider,
    build_providers,
    format_context_items,
)
from .generator import ResponseGenerator

__all__ = [
    'ChatProvider',
    'EmbeddingProvider',
    'HashingEmbeddingProvider',
    'OpenAIChatProvider',
    'OpenAIEmbeddingProvider',
    'build_providers',
    'format_context_items',
    'ResponseGenerator'
]
