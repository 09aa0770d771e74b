"""
Tag matching, the highest-priority matcher, and the per-FAQ dispatch that
falls back to lexical scoring when no tag applies.
"""

from dataclasses import dataclass
from typing import Optional

from inap_types import MatchMethod
from knowledge.models import FAQEntry, RetrievalSettings
from .lexical import lexical_score
from .tokenizer import jaccard_similarity, tokenize

_DEFAULT_SETTINGS = RetrievalSettings()


@dataclass(frozen=True)
class TagMatchResult:
    matched: bool
    score: float
    matched_tags: tuple = ()


@dataclass(frozen=True)
class ScoredMatch:
    score: float
    method: MatchMethod


_NO_MATCH = TagMatchResult(matched=False, score=0.0)


def tag_match(query: str, faq: FAQEntry, settings: Optional[RetrievalSettings] = None) -> TagMatchResult:
    """
    Compare the query against the FAQ's curated tags.

    Each tag contributes by strength of match: exact, tag contains query,
    query contains tag, or partial token overlap above a floor. Contributions
    are summed and capped at 1.0.
    """
    if not faq.is_active or not faq.tags:
        return _NO_MATCH

    settings = settings or _DEFAULT_SETTINGS
    query_norm = (query or "").strip().lower()
    if not query_norm:
        return _NO_MATCH

    query_tokens = tokenize(query_norm)
    total = 0.0
    matched_tags = []

    for tag in faq.tags:
        tag_norm = tag.strip().lower()
        if not tag_norm:
            continue

        if query_norm == tag_norm:
            weight = settings.tag_exact_weight
        elif query_norm in tag_norm:
            weight = settings.tag_contains_query_weight
        elif tag_norm in query_norm:
            weight = settings.query_contains_tag_weight
        else:
            similarity = jaccard_similarity(query_tokens, tokenize(tag_norm))
            weight = similarity * settings.tag_token_factor if similarity > settings.tag_token_floor else 0.0

        if weight > 0:
            total += weight
            matched_tags.append(tag)

    if not matched_tags:
        return _NO_MATCH

    return TagMatchResult(matched=True, score=min(1.0, total), matched_tags=tuple(matched_tags))


def combined_score(query: str, faq: FAQEntry, settings: Optional[RetrievalSettings] = None) -> ScoredMatch:
    """
    Score without embeddings: a tag hit wins outright, otherwise lexical.

    Tag priority is a short-circuit, not a blend: when any tag matches the
    lexical score is never computed, even if it would have been higher.
    """
    tag_result = tag_match(query, faq, settings)
    if tag_result.matched:
        return ScoredMatch(score=tag_result.score, method=MatchMethod.TAG)
    return ScoredMatch(score=lexical_score(query, faq, settings), method=MatchMethod.LEXICAL)
