"""
Lexical similarity between a customer message and an FAQ entry.
"""

from typing import Optional

from knowledge.models import FAQEntry, RetrievalSettings
from .tokenizer import jaccard_similarity, tokenize

_DEFAULT_SETTINGS = RetrievalSettings()


def lexical_score(query: str, faq: FAQEntry, settings: Optional[RetrievalSettings] = None) -> float:
    """
    Score an FAQ against a query in [0, 1].

    Jaccard overlap of the query tokens with the FAQ's question, answer and
    tags, biased towards precise matches: an exact question match scores 1.0,
    a question containing the whole query and a tag appearing in the query
    each add a fixed bonus.
    """
    if not faq.is_active:
        return 0.0

    settings = settings or _DEFAULT_SETTINGS
    query = query or ""

    score = jaccard_similarity(tokenize(query), tokenize(faq.corpus))

    query_lower = query.strip().lower()
    question_lower = faq.question.strip().lower()

    if query_lower and query_lower == question_lower:
        score = 1.0
    elif query_lower and query_lower in question_lower:
        score += settings.question_substring_bonus

    if query_lower and any(tag.strip().lower() in query_lower for tag in faq.tags if tag.strip()):
        score += settings.tag_substring_bonus

    return max(0.0, min(1.0, score))
