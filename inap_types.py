"""
Type definitions and enums for the Inap assistant.
"""

from enum import Enum

class MatchMethod(Enum):
    """How a candidate's similarity score was produced."""
    TAG = "tag"                   # Curated tag keywords
    LEXICAL = "lexical"           # Jaccard overlap plus bonuses
    EMBEDDING = "embedding"       # Cosine similarity of stored embeddings

class SearchMethod(Enum):
    """Which search strategy was used for a whole query."""
    EMBEDDING = "embedding"                 # Query embedded; FAQs with stored vectors compared by cosine
    LEXICAL_FALLBACK = "lexical_fallback"   # Embedding unavailable, tag/lexical used instead
    NONE = "none"                           # Retrieval skipped

class DecisionState(Enum):
    """Outcome of the decision engine for one message."""
    GREETING = "greeting"
    MATCHED = "matched"
    NO_MATCH = "no_match"

class FinalDecision(Enum):
    """Human-readable decision labels shown in logs and the dashboard."""
    GREETING = "Greeting Response"
    CHAT_MODEL = "Chat Model Response"
    FALLBACK = "Fallback Response"
    CHAT_FAILED = "Chat model failed"
    API_KEY_REQUIRED = "No response - API key required"
    PROCESSING_ERROR = "Processing error"

class ConfidenceCategory(Enum):
    """Confidence buckets, for observability only."""
    HIGH = "High"       # >= 0.8
    MEDIUM = "Medium"   # >= 0.5
    LOW = "Low"         # < 0.5

    @classmethod
    def from_score(cls, score: float) -> "ConfidenceCategory":
        if score >= 0.8:
            return cls.HIGH
        if score >= 0.5:
            return cls.MEDIUM
        return cls.LOW
