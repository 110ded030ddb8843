"""
Factor Scorer, Score Aggregator and Ranker — Stages 2–4 of a call.

  score_factor     clamp one factor's points into [0, cap]
  score_candidate  run a domain's factor table over one candidate; sum,
                   round half-up to one decimal, keep reasons in table order
  rank             drop zero scores, sort by score desc (ties: lower id
                   first), truncate to the limit

Everything here is pure and synchronous: all I/O happened in the loader.
"""
import logging
import math
from typing import Iterable, Optional

from dance_recs.engine.types import Factor, RecommendationScore
from dance_recs.telemetry import FACTOR_ERRORS_TOTAL

logger = logging.getLogger(__name__)


def round_score(value: float) -> float:
    """Round half-up to one decimal (Python's round() is half-to-even)."""
    return math.floor(value * 10 + 0.5) / 10


def score_factor(factor: Factor, subject, candidate, context) -> tuple[float, Optional[str]]:
    points, reason = factor.evaluate(subject, candidate, context)
    return max(0.0, min(float(points), factor.cap)), reason


def score_candidate(
    factors: list[Factor],
    subject,
    candidate,
    context,
    domain: str = "",
) -> Optional[RecommendationScore]:
    """
    Aggregate one candidate's contributions.

    Returns None when the candidate carries no signal (rounded total of 0)
    or when a factor raised: a broken factor only costs that candidate,
    never the whole call.
    """
    total = 0.0
    reasons: list[str] = []
    for factor in factors:
        try:
            points, reason = score_factor(factor, subject, candidate, context)
        except Exception as exc:
            logger.warning(
                "Factor %s failed for %s candidate %s: %s — candidate skipped",
                factor.name, domain, candidate.id, exc,
            )
            FACTOR_ERRORS_TOTAL.labels(domain=domain, factor=factor.name).inc()
            return None
        total += points
        if reason:
            reasons.append(reason)

    score = round_score(total)
    if score <= 0:
        return None
    return RecommendationScore(id=candidate.id, score=score, reasons=reasons)


def rank(scores: Iterable[Optional[RecommendationScore]], limit: int) -> list[RecommendationScore]:
    if limit < 1:
        return []
    kept = [s for s in scores if s is not None and s.score > 0]
    kept.sort(key=lambda s: (-s.score, s.id))
    return kept[:limit]
