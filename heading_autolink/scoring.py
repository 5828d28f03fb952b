from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence
import re

from .interfaces import MatchType

EXACT_SCORE = 1000
PREFIX_BASE = 850
SUBSTRING_BASE = 650
TOKEN_BASE = 500
FUZZY_BASE = 250


@dataclass(frozen=True)
class ScoreResult:
    score: int
    match_type: MatchType


def tokenize(text: str) -> List[str]:
    return [t for t in re.split(r"\s+", text) if t]


def score_candidate(
    candidate: str,
    query: str,
    query_tokens: Sequence[str],
    enable_fuzzy: bool,
    min_fuzzy_score: float,
) -> ScoreResult | None:
    """Classify how `candidate` matches `query`; None when it doesn't.

    Tiers are tried strictly in order (exact, prefix, substring, token, fuzzy)
    and the first one that applies decides the score.
    """
    if candidate == query:
        return ScoreResult(EXACT_SCORE, "exact")

    if candidate.startswith(query):
        return ScoreResult(PREFIX_BASE - min(200, len(candidate) - len(query)), "prefix")

    idx = candidate.find(query)
    if idx >= 0:
        return ScoreResult(SUBSTRING_BASE - min(150, idx * 2), "substring")

    if len(query_tokens) > 1 and all(t in candidate for t in query_tokens):
        total = sum(len(t) for t in query_tokens)
        return ScoreResult(TOKEN_BASE + min(120, total * 5), "token")

    if enable_fuzzy:
        fuzzy = fuzzy_subsequence_score(candidate, query)
        if fuzzy > 0 and fuzzy >= min_fuzzy_score:
            return ScoreResult(FUZZY_BASE + fuzzy, "fuzzy")

    return None


def fuzzy_subsequence_score(candidate: str, query: str) -> int:
    """Greedy in-order subsequence score; 0 when `query` isn't a subsequence."""
    score = 0
    qi = 0
    prev_hit = -2
    for i, ch in enumerate(candidate):
        if qi >= len(query):
            break
        if ch != query[qi]:
            continue
        score += 8
        # word start
        if i == 0 or candidate[i - 1] == " ":
            score += 5
        # consecutive run
        if i == prev_hit + 1:
            score += 4
        prev_hit = i
        qi += 1

    if qi != len(query):
        return 0

    penalty = max(0, len(candidate) - len(query))
    return max(1, score - min(40, penalty))
