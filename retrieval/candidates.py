"""
Candidate generation: score every active FAQ with the best available method,
drop weak matches and keep the strongest few for reranking.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence

from inap_types import MatchMethod, SearchMethod
from knowledge.models import (
    Candidate,
    ConfigurationError,
    DataError,
    FAQEntry,
    ProviderError,
    RetrievalSettings,
)
from .similarity import cosine_sim
from .tag_matcher import combined_score

logger = logging.getLogger("Inap")


@dataclass(frozen=True)
class CandidateSearch:
    """Outcome of candidate generation for one query."""
    candidates: tuple[Candidate, ...]
    search_method: SearchMethod
    fallback_reason: Optional[str] = None
    scored_count: int = 0
    skipped_count: int = 0


class CandidateGenerator:
    """Embedding-first candidate generation with a tag/lexical fallback."""

    def __init__(self, settings: Optional[RetrievalSettings] = None):
        self.settings = settings or RetrievalSettings()

    def usable_entries(self, faqs: Iterable[FAQEntry | Mapping[str, Any]]) -> tuple[list[tuple[int, FAQEntry]], int]:
        """
        Active, well-formed FAQs paired with their input position.

        Malformed entries are skipped rather than failing the query.
        """
        usable = []
        skipped = 0
        for position, item in enumerate(faqs):
            try:
                faq = FAQEntry.coerce(item)
            except DataError as e:
                skipped += 1
                logger.warning(f"Skipping malformed FAQ at position {position}: {e}")
                continue
            if faq.is_active:
                usable.append((position, faq))
        return usable, skipped

    async def _embed_query(self, query: str, embedding_provider) -> list[float]:
        vector = await asyncio.wait_for(embedding_provider.embed(query), timeout=self.settings.provider_timeout)
        if not vector:
            raise ProviderError("Embedding provider returned an empty vector")
        return list(vector)

    async def generate(
        self,
        query: str,
        faqs: Sequence[FAQEntry | Mapping[str, Any]],
        embedding_provider=None,
    ) -> CandidateSearch:
        """
        Generate ranked candidates for a query.

        Args:
            query: The customer message
            faqs: Snapshot of FAQ entries (or raw records)
            embedding_provider: Optional provider used to embed the query

        Returns:
            CandidateSearch with at most ``max_candidates`` candidates scoring
            strictly above the similarity threshold, best first, ties in
            input order
        """
        entries, skipped = self.usable_entries(faqs)

        query_vector = None
        fallback_reason = None

        if embedding_provider is None:
            search_method = SearchMethod.LEXICAL_FALLBACK
            fallback_reason = "No embedding provider configured"
        else:
            try:
                query_vector = await self._embed_query(query, embedding_provider)
                search_method = SearchMethod.EMBEDDING
            except asyncio.TimeoutError:
                search_method = SearchMethod.LEXICAL_FALLBACK
                fallback_reason = f"Embedding provider timed out after {self.settings.provider_timeout}s"
            except (ProviderError, ConfigurationError) as e:
                search_method = SearchMethod.LEXICAL_FALLBACK
                fallback_reason = f"Embedding provider failed: {e}"
            except Exception as e:
                search_method = SearchMethod.LEXICAL_FALLBACK
                fallback_reason = f"Embedding provider raised {type(e).__name__}: {e}"
                logger.error(f"Unexpected embedding provider error: {e}", exc_info=True)

            if fallback_reason:
                logger.warning(f"{fallback_reason} - falling back to tag/lexical similarity")

        scored = []
        for position, faq in entries:
            if query_vector is not None and faq.has_embedding:
                score = cosine_sim(query_vector, faq.embedding)
                method = MatchMethod.EMBEDDING
            else:
                match = combined_score(query, faq, self.settings)
                score, method = match.score, match.method
            scored.append(Candidate(faq=faq, similarity_score=score, match_method=method, position=position))

        threshold = self.settings.similarity_threshold
        kept = [c for c in scored if c.similarity_score > threshold]
        # sorted() is stable, so equal scores keep their input order
        kept = sorted(kept, key=lambda c: c.similarity_score, reverse=True)[: self.settings.max_candidates]

        logger.debug(
            f"Candidate generation ({search_method.value}): {len(scored)} scored, "
            f"{len(kept)} above threshold {threshold}"
        )

        return CandidateSearch(
            candidates=tuple(kept),
            search_method=search_method,
            fallback_reason=fallback_reason,
            scored_count=len(scored),
            skipped_count=skipped,
        )
