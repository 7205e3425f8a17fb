"""
Fuzzy string similarity used for catalog matching.

Scores are case-insensitive and symmetric:
  1.0   equal after trimming and lowercasing
  0.8   one string contains the other
  else  1 - levenshtein(a, b) / max(len(a), len(b))
"""

from rapidfuzz.distance import Levenshtein

CONTAINMENT_SCORE = 0.8


def _norm(s: str) -> str:
    return (s or "").strip().lower()


def fuzzy_match(a: str, b: str) -> float:
    s1, s2 = _norm(a), _norm(b)
    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0
    if s1 in s2 or s2 in s1:
        return CONTAINMENT_SCORE
    return Levenshtein.normalized_similarity(s1, s2)
