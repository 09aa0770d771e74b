"""
Data models for the FAQ knowledge base and the retrieval pipeline.

Entities handed to the pipeline are frozen dataclasses so a snapshot can be
shared between requests without copying; the caller-facing result contract is
a Pydantic model so it validates and serialises with camelCase aliases.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from inap_types import ConfidenceCategory, MatchMethod


class AssistantException(Exception):
    """Base exception for assistant operations."""
    pass


class ConfigurationError(AssistantException):
    """Credentials or settings required for a provider are missing."""
    pass


class ProviderError(AssistantException):
    """An embedding or chat-completion provider call failed."""
    pass


class DataError(AssistantException):
    """A knowledge-base record is malformed."""
    pass


def _first_present(record: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in record and record[key] is not None:
            return record[key]
    return default


def _coerce_tags(raw: Any) -> tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str):
        raw = raw.split(',')
    return tuple(str(tag).strip() for tag in raw if str(tag).strip())


def _coerce_flag(raw: Any) -> bool:
    if isinstance(raw, str):
        return raw.strip().lower() in ("true", "1", "t", "yes")
    return bool(raw)


def _coerce_embedding(raw: Any) -> Optional[tuple[float, ...]]:
    if raw is None:
        return None
    if isinstance(raw, (str, bytes)) or not hasattr(raw, '__iter__'):
        raise DataError("embedding must be a sequence of numbers")
    try:
        vector = tuple(float(x) for x in raw)
    except (TypeError, ValueError) as e:
        raise DataError(f"embedding contains a non-numeric value: {e}") from e
    if any(not math.isfinite(x) for x in vector):
        raise DataError("embedding contains a non-finite value")
    return vector or None


@dataclass(frozen=True)
class FAQEntry:
    """A question/answer knowledge-base entry."""
    question: str
    answer: str
    tags: tuple[str, ...] = ()
    related_homestay: Optional[str] = None
    embedding: Optional[tuple[float, ...]] = None
    is_active: bool = True
    id: Optional[str] = None
    updated_at: Optional[str] = None
    updated_by: Optional[str] = None

    @property
    def corpus(self) -> str:
        """Text used for lexical and synonym matching."""
        return " ".join([self.question, self.answer, " ".join(self.tags)])

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)

    def validate(self) -> FAQEntry:
        """Raise DataError if the entry cannot take part in matching."""
        if not isinstance(self.question, str) or not self.question.strip():
            raise DataError(f"FAQ {self.id or '?'} has no question")
        if not isinstance(self.answer, str) or not self.answer.strip():
            raise DataError(f"FAQ {self.id or '?'} has no answer")
        return self

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> FAQEntry:
        """
        Build an entry from a stored record.

        Accepts the snake_case columns of the database export as well as the
        camelCase keys used by the admin UI.

        Raises:
            DataError: If the record is not a mapping, lacks a question or
                answer, or carries a malformed embedding
        """
        if not isinstance(record, Mapping):
            raise DataError(f"FAQ record must be a mapping, got {type(record).__name__}")

        entry = cls(
            question=str(_first_present(record, 'question', default='')).strip(),
            answer=str(_first_present(record, 'answer', default='')).strip(),
            tags=_coerce_tags(_first_present(record, 'tags')),
            related_homestay=_first_present(record, 'related_homestay', 'relatedHomestay', 'relatedEntity'),
            embedding=_coerce_embedding(_first_present(record, 'embedding')),
            is_active=_coerce_flag(_first_present(record, 'is_active', 'isActive', default=True)),
            id=_first_present(record, 'id'),
            updated_at=_first_present(record, 'updated_at', 'updatedAt'),
            updated_by=_first_present(record, 'updated_by', 'updatedBy'),
        )
        return entry.validate()

    @classmethod
    def coerce(cls, item: FAQEntry | Mapping[str, Any]) -> FAQEntry:
        if isinstance(item, cls):
            return item.validate()
        return cls.from_record(item)

    def to_record(self) -> dict[str, Any]:
        """Convert to a JSON-serialisable record (inverse of from_record)."""
        return {
            'id': self.id,
            'question': self.question,
            'answer': self.answer,
            'tags': list(self.tags),
            'related_homestay': self.related_homestay,
            'embedding': list(self.embedding) if self.embedding else None,
            'is_active': self.is_active,
            'updated_at': self.updated_at,
            'updated_by': self.updated_by,
        }


@dataclass(frozen=True)
class Homestay:
    """A property; a signal source for reranking and a prompt source for the LLM."""
    name: str
    city: str = ""
    amenities: tuple[str, ...] = ()
    address: str = ""
    phone: str = ""
    checkin_time: str = ""
    checkout_time: str = ""
    notes: str = ""

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Homestay:
        if not isinstance(record, Mapping):
            raise DataError(f"Homestay record must be a mapping, got {type(record).__name__}")
        name = str(_first_present(record, 'name', default='')).strip()
        if not name:
            raise DataError("Homestay record has no name")
        return cls(
            name=name,
            city=str(_first_present(record, 'city', 'location', default='')).strip(),
            amenities=_coerce_tags(_first_present(record, 'amenities')),
            address=str(_first_present(record, 'address', default='')),
            phone=str(_first_present(record, 'phone', default='')),
            checkin_time=str(_first_present(record, 'checkin_time', 'checkinTime', default='')),
            checkout_time=str(_first_present(record, 'checkout_time', 'checkoutTime', default='')),
            notes=str(_first_present(record, 'notes', 'description', default='')),
        )

    @classmethod
    def coerce(cls, item: Homestay | Mapping[str, Any]) -> Homestay:
        if isinstance(item, cls):
            return item
        return cls.from_record(item)


@dataclass(frozen=True)
class ConversationMessage:
    text: str
    is_from_customer: bool = True


@dataclass(frozen=True)
class ConversationContext:
    """Conversation state owned by the memory collaborator; read, never mutated."""
    phone_number: Optional[str] = None
    recent_messages: tuple[ConversationMessage, ...] = ()
    current_property: Optional[str] = None

    @staticmethod
    def normalize_phone_number(phone_number: Optional[str]) -> str:
        if not phone_number:
            return 'unknown'
        return ''.join(ch for ch in phone_number if ch.isdigit())


@dataclass(frozen=True)
class KnowledgeSnapshot:
    """Read-only view of the knowledge base for one request."""
    faqs: tuple[FAQEntry, ...] = ()
    homestays: tuple[Homestay, ...] = ()
    general_knowledge: str = ""

    @property
    def active_faqs(self) -> tuple[FAQEntry, ...]:
        return tuple(faq for faq in self.faqs if faq.is_active)


@dataclass(frozen=True)
class RetrievalSettings:
    """
    Every tunable number of the retrieval pipeline.

    The defaults reproduce the behaviour the operators' dashboards were tuned
    against; they are empirical, not derived.
    """
    similarity_threshold: float = 0.3
    max_candidates: int = 10
    rerank_top_k: int = 3

    # Final score = similarity * w1 + homestay signal * w2 + synonym signal * w3
    similarity_weight: float = 0.7
    homestay_weight: float = 0.2
    synonym_weight: float = 0.1

    homestay_cap: float = 0.3
    related_name_bonus: float = 0.15
    related_city_bonus: float = 0.1
    amenity_bonus: float = 0.05
    mentioned_name_bonus: float = 0.2
    mentioned_city_bonus: float = 0.1

    synonym_cap: float = 0.2
    synonym_group_bonus: float = 0.1

    question_substring_bonus: float = 0.2
    tag_substring_bonus: float = 0.15

    tag_exact_weight: float = 1.0
    tag_contains_query_weight: float = 0.8
    query_contains_tag_weight: float = 0.7
    tag_token_factor: float = 0.6
    tag_token_floor: float = 0.3

    provider_timeout: float = 8.0

    def __post_init__(self):
        if not -1.0 <= self.similarity_threshold <= 1.0:
            raise ValueError("similarity_threshold must be within [-1, 1]")
        if self.max_candidates < 1 or self.rerank_top_k < 1:
            raise ValueError("max_candidates and rerank_top_k must be at least 1")
        weights = (self.similarity_weight, self.homestay_weight, self.synonym_weight)
        if any(w < 0 for w in weights):
            raise ValueError("rerank weights must be non-negative")
        if self.provider_timeout <= 0:
            raise ValueError("provider_timeout must be positive")


@dataclass(frozen=True)
class Candidate:
    """An FAQ considered relevant to a query, before reranking."""
    faq: FAQEntry
    similarity_score: float
    match_method: MatchMethod
    position: int = 0


@dataclass(frozen=True)
class SignalBreakdown:
    homestay_boost: float = 0.0
    homestay_terms: tuple[str, ...] = ()
    synonym_boost: float = 0.0
    synonym_hit: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            'homestay_boost': round(self.homestay_boost, 4),
            'homestay_terms': list(self.homestay_terms),
            'synonym_boost': round(self.synonym_boost, 4),
            'synonym_hit': self.synonym_hit,
        }


@dataclass(frozen=True)
class RerankedCandidate:
    candidate: Candidate
    final_score: float
    signals: SignalBreakdown = field(default_factory=SignalBreakdown)

    @property
    def faq(self) -> FAQEntry:
        return self.candidate.faq

    @property
    def similarity_score(self) -> float:
        return self.candidate.similarity_score

    @property
    def match_method(self) -> MatchMethod:
        return self.candidate.match_method

    def to_context_item(self) -> ContextItem:
        return ContextItem(
            question=self.faq.question,
            answer=self.faq.answer,
            confidence=self.final_score,
            tags=list(self.faq.tags),
        )

    def to_summary(self) -> dict[str, Any]:
        return {
            'question': self.faq.question,
            'similarity': round(self.similarity_score, 4),
            'final_score': round(self.final_score, 4),
            'method': self.match_method.value,
            'signals': self.signals.to_dict(),
        }


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ContextItem(_CamelModel):
    """FAQ grounding handed to the chat model."""
    question: str
    answer: str
    confidence: float = Field(ge=0.0, le=1.0)
    tags: list[str] = Field(default_factory=list)


class ProcessingDetails(_CamelModel):
    """Structured trace of one message, for the caller's logs and dashboard."""
    state: Optional[str] = None
    final_decision: str = "unknown"
    search_method: str = "none"
    fallback_reason: Optional[str] = None
    candidates_found: int = Field(default=0, ge=0)
    top_candidates: list[dict[str, Any]] = Field(default_factory=list)
    context_items: list[ContextItem] = Field(default_factory=list)
    confidence_category: str = ConfidenceCategory.LOW.value
    language: str = "en"
    active_faqs: int = Field(default=0, ge=0)
    skipped_faqs: int = Field(default=0, ge=0)
    greeting_detected: bool = False
    error: Optional[str] = None
    processing_steps: list[str] = Field(default_factory=list)

    def add_step(self, step: str) -> None:
        self.processing_steps.append(step)


class ProcessingResult(_CamelModel):
    """
    Caller-facing result of processing one message.

    ``answer`` is None when the caller must not send any reply.
    """
    answer: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    matched_question: Optional[str] = None
    processing_time_ms: int = Field(default=0, ge=0)
    processing_details: ProcessingDetails = Field(default_factory=ProcessingDetails)

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(by_alias=True, mode='json')
