"""
Knowledge base package: entities, result contract and the snapshot store.
"""

from .models import (
    AssistantException,
    Candidate,
    ConfigurationError,
    ContextItem,
    ConversationContext,
    ConversationMessage,
    DataError,
    FAQEntry,
    Homestay,
    KnowledgeSnapshot,
    ProcessingDetails,
    ProcessingResult,
    ProviderError,
    RerankedCandidate,
    RetrievalSettings,
    SignalBreakdown,
)
from .store import KnowledgeStore

__all__ = [
    'AssistantException',
    'Candidate',
    'ConfigurationError',
    'ContextItem',
    'ConversationContext',
    'ConversationMessage',
    'DataError',
    'FAQEntry',
    'Homestay',
    'KnowledgeSnapshot',
    'KnowledgeStore',
    'ProcessingDetails',
    'ProcessingResult',
    'ProviderError',
    'RerankedCandidate',
    'RetrievalSettings',
    'SignalBreakdown',
]
