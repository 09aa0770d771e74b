"""
Signal-based reranking of FAQ candidates.

Base similarity dominates the final score; two contextual signals break ties
and correct lexical blind spots: which property the customer is talking about,
and cross-lingual synonym groups (e.g. "check-in" vs "入住").
"""

import logging
from typing import Optional, Sequence, Tuple

from knowledge.models import (
    Candidate,
    FAQEntry,
    Homestay,
    RerankedCandidate,
    RetrievalSettings,
    SignalBreakdown,
)
from nlp_config_loader import config_loader

logger = logging.getLogger("Inap")


class SignalReranker:
    """
    Reranks candidates with ``w1 * similarity + w2 * homestay + w3 * synonym``.
    """

    def __init__(self, settings: Optional[RetrievalSettings] = None,
                 synonym_groups: Optional[Sequence[Sequence[str]]] = None):
        """
        Args:
            settings: Weights, caps and bonuses
            synonym_groups: Groups of equivalent terms; defaults to the
                groups in ``nlp_config.yaml``
        """
        self.settings = settings or RetrievalSettings()
        if synonym_groups is None:
            synonym_groups = config_loader.get_synonym_groups()
        self.synonym_groups = tuple(
            tuple(term.lower() for term in group if term) for group in synonym_groups
        )

    def homestay_signal(self, query: str, faq: FAQEntry,
                        homestays: Sequence[Homestay]) -> Tuple[float, Tuple[str, ...]]:
        """
        Boost for property mentions.

        Returns:
            (capped score, terms that triggered it)
        """
        s = self.settings
        q = (query or "").lower()
        score = 0.0
        used = []

        def add(term: str, weight: float):
            nonlocal score
            if term and term.lower() in q:
                score += weight
                used.append(term)

        if faq.related_homestay:
            add(faq.related_homestay, s.related_name_bonus)
            related = next((h for h in homestays if h.name == faq.related_homestay), None)
            if related is not None:
                add(related.city, s.related_city_bonus)
                for amenity in related.amenities:
                    add(amenity, s.amenity_bonus)

        # Any property named in the message, related to this FAQ or not
        for homestay in homestays:
            if homestay.name and homestay.name.lower() in q:
                add(homestay.name, s.mentioned_name_bonus)
                add(homestay.city, s.mentioned_city_bonus)

        return min(s.homestay_cap, score), tuple(used)

    def synonym_signal(self, query: str, text: str) -> Tuple[float, bool]:
        """
        Boost when the query and the FAQ text use terms from the same group.

        Returns:
            (capped score, whether the query hit any group)
        """
        q = (query or "").lower()
        t = (text or "").lower()
        hit = False
        score = 0.0
        for group in self.synonym_groups:
            if any(term in q for term in group):
                hit = True
                if any(term in t for term in group):
                    score += self.settings.synonym_group_bonus
        return min(self.settings.synonym_cap, score), hit

    def score(self, query: str, homestays: Sequence[Homestay], candidate: Candidate) -> RerankedCandidate:
        s = self.settings
        homestay_boost, homestay_terms = self.homestay_signal(query, candidate.faq, homestays)
        synonym_boost, synonym_hit = self.synonym_signal(query, candidate.faq.corpus)

        final = (
            s.similarity_weight * candidate.similarity_score
            + s.homestay_weight * homestay_boost
            + s.synonym_weight * synonym_boost
        )
        return RerankedCandidate(
            candidate=candidate,
            final_score=max(0.0, min(1.0, final)),
            signals=SignalBreakdown(
                homestay_boost=homestay_boost,
                homestay_terms=homestay_terms,
                synonym_boost=synonym_boost,
                synonym_hit=synonym_hit,
            ),
        )

    def rerank(self, query: str, homestays: Sequence[Homestay],
               candidates: Sequence[Candidate]) -> list:
        """
        Rerank candidates and keep the top ``rerank_top_k``.

        Ties keep the incoming (similarity) order.
        """
        if not candidates:
            return []

        reranked = [self.score(query, homestays, c) for c in candidates]
        reranked = sorted(reranked, key=lambda r: r.final_score, reverse=True)
        top = reranked[: self.settings.rerank_top_k]

        logger.debug(f"Reranked {len(candidates)} candidates, returning top {len(top)}")
        return top
