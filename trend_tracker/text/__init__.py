"""
Text normalization and keyword similarity.

Components:
- normalize_keyword: Canonical comparison key for a keyword
- similarity: Blended Jaro-Winkler / bigram Jaccard score in [0, 1]
- jaro_winkler: Character-level component, reused by product matching
- ngram_similarity: Character n-gram Jaccard component
"""

from trend_tracker.text.normalizer import normalize_keyword
from trend_tracker.text.similarity import jaro_winkler, ngram_similarity, similarity

__all__ = [
    "jaro_winkler",
    "ngram_similarity",
    "normalize_keyword",
    "similarity",
]
