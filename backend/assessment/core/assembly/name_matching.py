"""
Fuzzy matching of competency names against O*NET benchmark names.

Benchmark data uses O*NET element names ("Critical Thinking", "Active
Listening") while the competency catalog may word them differently
("Critical thinking skills"). Names are compared as sets of lowercase
alphanumeric tokens using Jaccard similarity.
"""
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from assessment.core.config import settings

_TOKEN_PATTERN = re.compile(r"[a-z0-9]+")


def tokenize(name: str) -> frozenset[str]:
    """Lowercase alphanumeric tokens of ``name``."""
    return frozenset(_TOKEN_PATTERN.findall((name or "").lower()))


def jaccard_similarity(a: str, b: str) -> float:
    """Token-set Jaccard similarity in [0, 1]; 0.0 when either name has no tokens."""
    tokens_a, tokens_b = tokenize(a), tokenize(b)
    if not tokens_a or not tokens_b:
        return 0.0
    return len(tokens_a & tokens_b) / len(tokens_a | tokens_b)


@dataclass(frozen=True)
class NameMatch:
    candidate: str
    similarity: float


class CompetencyNameMatcher:
    """
    Picks the most similar candidate name above a similarity threshold.

    Ties are broken by the lexicographically smallest candidate so the same
    inputs always produce the same match.
    """

    def __init__(self, threshold: Optional[float] = None):
        self.threshold = threshold if threshold is not None else settings.FUZZY_MATCH_THRESHOLD

    def best_match(self, name: str, candidates: Iterable[str]) -> Optional[NameMatch]:
        best: Optional[NameMatch] = None
        for candidate in sorted(candidates):
            similarity = jaccard_similarity(name, candidate)
            if similarity < self.threshold:
                continue
            if best is None or similarity > best.similarity:
                best = NameMatch(candidate=candidate, similarity=similarity)
        return best
