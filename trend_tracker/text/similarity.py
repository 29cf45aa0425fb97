"""Keyword similarity combining Jaro-Winkler and bigram Jaccard.

Jaro-Winkler handles short single-token keywords well (typos, spacing
variants, shared prefixes). Bigram Jaccard handles longer multi-word
phrases such as community post titles, where word order varies. The
blend shifts weight toward bigrams as the inputs grow longer:

    ngram_weight = min(avg_len / NGRAM_LENGTH_SCALE, MAX_NGRAM_WEIGHT)
    similarity   = jw * (1 - ngram_weight) + ngram * ngram_weight

The two constants are empirically tuned; keep them unless the cluster
threshold is retuned along with them.
"""

from rapidfuzz.distance import JaroWinkler

from trend_tracker.text.normalizer import normalize_keyword

NGRAM_LENGTH_SCALE = 20.0
MAX_NGRAM_WEIGHT = 0.5
JARO_WINKLER_PREFIX_WEIGHT = 0.1


def jaro_winkler(a: str, b: str) -> float:
    """
    Jaro-Winkler similarity of two already-normalized strings.

    Returns:
        Similarity in [0, 1]; 0.0 if either string is empty.
    """
    if not a or not b:
        return 0.0
    return JaroWinkler.similarity(a, b, prefix_weight=JARO_WINKLER_PREFIX_WEIGHT)


def _ngrams(text: str, n: int) -> set[str]:
    return {text[i:i + n] for i in range(len(text) - n + 1)}


def ngram_similarity(a: str, b: str, n: int = 2) -> float:
    """
    Jaccard similarity of the character n-gram sets of two keywords.

    Inputs are normalized first. Strings shorter than ``n`` have no
    n-grams and score 0.

    Args:
        a: First keyword.
        b: Second keyword.
        n: Gram size (bigrams by default).

    Returns:
        |intersection| / |union| in [0, 1].
    """
    grams_a = _ngrams(normalize_keyword(a), n)
    grams_b = _ngrams(normalize_keyword(b), n)

    if not grams_a or not grams_b:
        return 0.0

    intersection = len(grams_a & grams_b)
    union = len(grams_a | grams_b)
    return intersection / union if union else 0.0


def similarity(a: str, b: str) -> float:
    """
    Combined keyword similarity in [0, 1].

    Identical normalized forms short-circuit to 1.0, so spacing and case
    variants of the same keyword always match. Empty input never raises
    and scores 0.0.

    Args:
        a: First keyword (raw text).
        b: Second keyword (raw text).

    Returns:
        Blended Jaro-Winkler / bigram similarity.
    """
    norm_a = normalize_keyword(a)
    norm_b = normalize_keyword(b)

    if not norm_a or not norm_b:
        return 0.0
    if norm_a == norm_b:
        return 1.0

    jw = jaro_winkler(norm_a, norm_b)
    ngram = ngram_similarity(norm_a, norm_b, 2)

    avg_len = (len(norm_a) + len(norm_b)) / 2
    ngram_weight = min(avg_len / NGRAM_LENGTH_SCALE, MAX_NGRAM_WEIGHT)

    return jw * (1 - ngram_weight) + ngram * ngram_weight
