"""
Near-duplicate detection for record stores.

A candidate record is compared against every stored record line using the longest
common subsequence. similarity = len(LCS) / len(line) * 100, and the first line that
reaches the threshold counts as a match. The verdict is advisory: callers decide
whether to store the candidate anyway.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from record_store import RecordStore, default_store, split_records
from store_errors import Result

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimilarityMatch:
    matched: bool
    line: Optional[str] = None # stored line that reached the threshold
    similarity: float = 0.0 # best similarity seen, in percent


def lcs(text1: str, text2: str) -> str:
    m, n = len(text1), len(text2)

    # dp[i][j] = LCS length of text1[:i] and text2[:j]
    dp = [[0]*(n+1) for _ in range(m+1)]
    for i in range(1, m+1):
        for j in range(1, n+1):
            if text1[i-1] == text2[j-1]:
                dp[i][j] = dp[i-1][j-1] + 1
            else:
                dp[i][j] = max(dp[i-1][j], dp[i][j-1])

    # Backtrack, stepping along text1 when both predecessors tie
    out = []
    x, y = m, n
    while x > 0 and y > 0:
        if text1[x-1] == text2[y-1]:
            out.append(text1[x-1])
            x -= 1
            y -= 1
        elif dp[x-1][y] >= dp[x][y-1]:
            x -= 1
        else:
            y -= 1

    return ''.join(reversed(out))


def similarity(line: str, candidate: str) -> float:
    """Percentage of `line` covered by its LCS with `candidate`."""
    if not line:
        return 0.0
    return len(lcs(line, candidate)) / len(line) * 100


def find_similar(text: str, candidate: str, threshold: float) -> SimilarityMatch:
    best = 0.0
    for line in split_records(text):
        score = similarity(line, candidate)
        if score >= threshold:
            logger.info("Candidate resembles stored record %r (%.1f%%)", line, score)
            return SimilarityMatch(True, line, score)
        best = max(best, score)
    return SimilarityMatch(False, None, best)


def check(candidate: str, name: str, store: Optional[RecordStore] = None,
          threshold: Optional[float] = None) -> Result[SimilarityMatch]:
    store = store or default_store()
    if threshold is None:
        threshold = store.config.similarity_threshold

    content = store.read(name)
    if not content.ok:
        return Result(error=content.error, message=content.message)
    return Result.success(find_similar(content.value, candidate, threshold))
