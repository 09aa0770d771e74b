"""
Tokenization and set-overlap helpers shared by every lexical scorer.
"""

import re
from typing import Iterable, List, Optional

# Anything that is not ASCII alphanumeric, whitespace or a CJK unified ideograph
_NON_TOKEN_CHARS = re.compile(r'[^a-z0-9\s\u4e00-\u9fff]')
_WHITESPACE = re.compile(r'\s+')


def tokenize(text: Optional[str]) -> List[str]:
    """
    Lowercase, blank out punctuation and split on whitespace.

    Chinese text keeps its ideographs (unsegmented) so cross-lingual tags such
    as 入住 still match token-for-token.
    """
    if not text:
        return []
    cleaned = _NON_TOKEN_CHARS.sub(' ', str(text).lower())
    return [token for token in _WHITESPACE.split(cleaned) if token]


def jaccard_similarity(a_tokens: Iterable[str], b_tokens: Iterable[str]) -> float:
    """|A & B| / |A | B|, with an empty union counted as 1."""
    a = set(a_tokens)
    b = set(b_tokens)
    union = len(a | b) or 1
    return len(a & b) / union
