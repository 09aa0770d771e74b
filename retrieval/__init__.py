"""
Retrieval package: FAQ scoring, candidate generation and reranking.
"""

from .tokenizer import tokenize, jaccard_similarity
from .lexical import lexical_score
from .similarity import cosine_sim
from .tag_matcher import TagMatchResult, ScoredMatch, tag_match, combined_score
from .candidates import CandidateGenerator, CandidateSearch
from .reranker import SignalReranker

__all__ = [
    'tokenize',
    'jaccard_similarity',
    'lexical_score',
    'cosine_sim',
    'TagMatchResult',
    'ScoredMatch',
    'tag_match',
    'combined_score',
    'CandidateGenerator',
    'CandidateSearch',
    'SignalReranker'
]
