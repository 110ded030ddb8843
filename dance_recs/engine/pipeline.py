"""
Recommendation pipeline — one generic flow shared by all four domains.

  Stage 1 │ Candidate Pool
  ────────┼──────────────────────────────────────────────────────────────
          │  Load the subject, a bounded candidate pool and the batched
          │  scoring context. Any storage error is caught here and the
          │  call degrades to [] (logged + counted, never raised).

  Stage 2 │ Factor Scoring + Aggregation
  ────────┼──────────────────────────────────────────────────────────────
          │  Run the domain's factor table over every candidate in memory.

  Stage 3 │ Ranking
  ────────┼──────────────────────────────────────────────────────────────
          │  Drop zero scores, sort desc (ties → lower id), truncate.

A domain is just a DomainStrategy: pool loader, context builder, factor
table and limits. Nothing is persisted; every call recomputes from the
current snapshot. Cancellation from the caller propagates untouched, so a
cancelled call returns nothing rather than a partial list.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable, Optional

from opentelemetry import trace
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dance_recs.config import settings
from dance_recs.engine import factors, loaders
from dance_recs.engine.scoring import rank, score_candidate
from dance_recs.engine.types import Domain, Factor, PoolResult, RecommendationScore
from dance_recs.models import User
from dance_recs.telemetry import (
    CANDIDATE_POOL_SIZE,
    POOL_ERRORS_TOTAL,
    RECOMMENDATION_LATENCY,
    RECOMMENDATIONS_RETURNED_TOTAL,
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

Loader = Callable[[AsyncSession, User, datetime], Awaitable[list]]
ContextBuilder = Callable[[AsyncSession, User, list, datetime], Awaitable[object]]


@dataclass(frozen=True)
class DomainStrategy:
    domain: Domain
    load_candidates: Loader
    build_context: ContextBuilder
    factors: list[Factor]
    # name of the Settings field holding the default limit, read per call
    limit_setting: str = "default_limit"

    @property
    def default_limit(self) -> int:
        return getattr(settings, self.limit_setting)

    @property
    def max_score(self) -> float:
        return sum(f.cap for f in self.factors)


DOMAINS: dict[Domain, DomainStrategy] = {
    Domain.PEOPLE: DomainStrategy(
        Domain.PEOPLE,
        loaders.load_people_candidates,
        loaders.build_people_context,
        factors.PEOPLE_FACTORS,
    ),
    Domain.EVENTS: DomainStrategy(
        Domain.EVENTS,
        loaders.load_event_candidates,
        loaders.build_event_context,
        factors.EVENT_FACTORS,
    ),
    Domain.INSTRUCTORS: DomainStrategy(
        Domain.INSTRUCTORS,
        loaders.load_instructor_candidates,
        loaders.build_instructor_context,
        factors.INSTRUCTOR_FACTORS,
    ),
    Domain.CONTENT: DomainStrategy(
        Domain.CONTENT,
        loaders.load_content_candidates,
        loaders.build_content_context,
        factors.CONTENT_FACTORS,
        "content_default_limit",
    ),
}


def utcnow() -> datetime:
    """Naive UTC, matching the DateTime columns of the store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(now: Optional[datetime]) -> datetime:
    """Reference time for a call: aware values are converted to naive UTC."""
    if now is None:
        return utcnow()
    if now.tzinfo is not None:
        return now.astimezone(timezone.utc).replace(tzinfo=None)
    return now


async def load_pool(
    strategy: DomainStrategy,
    db: AsyncSession,
    subject_id: int,
    now: datetime,
) -> tuple[Optional[User], PoolResult]:
    """Stage 1. Storage errors become PoolResult.failure, not exceptions."""
    try:
        subject = await db.get(User, subject_id)
        if subject is None:
            return None, PoolResult()
        candidates = await strategy.load_candidates(db, subject, now)
        context = await strategy.build_context(db, subject, candidates, now)
    except Exception as exc:
        return None, PoolResult.failure(exc)
    return subject, PoolResult(candidates=candidates, context=context)


async def recommend(
    db: AsyncSession,
    domain: Domain,
    subject_id: int,
    limit: Optional[int] = None,
    now: Optional[datetime] = None,
) -> list[RecommendationScore]:
    """
    Rank ``domain`` candidates for ``subject_id``.

    ``now`` fixes the reference time (future events, content window,
    recency); two calls with the same snapshot and ``now`` return the same
    list. An aware ``now`` is converted to naive UTC first.
    """
    strategy = DOMAINS[Domain(domain)]
    limit = strategy.default_limit if limit is None else limit
    now = as_naive_utc(now)
    start_time = time.perf_counter()

    with tracer.start_as_current_span("recommend") as span:
        span.set_attribute("recommendation.domain", strategy.domain.value)
        span.set_attribute("user.id", subject_id)

        with tracer.start_as_current_span("stage1_candidate_pool"):
            subject, pool = await load_pool(strategy, db, subject_id, now)

        if not pool.ok:
            logger.warning(
                "Candidate pool for %s (user=%s) failed: %s — returning no recommendations",
                strategy.domain.value, subject_id, pool.error,
            )
            POOL_ERRORS_TOTAL.labels(domain=strategy.domain.value).inc()
            span.set_attribute("recommendation.degraded", True)
            return []

        if subject is None:
            logger.info("No profile for user %s — no %s recommendations",
                        subject_id, strategy.domain.value)
            return []

        CANDIDATE_POOL_SIZE.labels(domain=strategy.domain.value).observe(len(pool.candidates))
        span.set_attribute("candidates.pool", len(pool.candidates))

        with tracer.start_as_current_span("stage2_scoring"):
            scored = [
                score_candidate(
                    strategy.factors, subject, candidate, pool.context,
                    domain=strategy.domain.value,
                )
                for candidate in pool.candidates
            ]

        with tracer.start_as_current_span("stage3_ranking"):
            ranked = rank(scored, limit)

        latency = time.perf_counter() - start_time
        RECOMMENDATION_LATENCY.labels(domain=strategy.domain.value).observe(latency)
        RECOMMENDATIONS_RETURNED_TOTAL.labels(domain=strategy.domain.value).inc(len(ranked))
        span.set_attribute("recommendation.returned", len(ranked))
        span.set_attribute("recommendation.latency_ms", round(latency * 1000, 2))

        logger.debug(
            "%s recommendations for user %s: %d/%d candidates in %.1fms",
            strategy.domain.value, subject_id, len(ranked), len(pool.candidates),
            latency * 1000,
        )
        return ranked


async def recommend_friends(db: AsyncSession, user_id: int, limit=None, now=None):
    return await recommend(db, Domain.PEOPLE, user_id, limit, now)


async def recommend_events(db: AsyncSession, user_id: int, limit=None, now=None):
    return await recommend(db, Domain.EVENTS, user_id, limit, now)


async def recommend_teachers(db: AsyncSession, user_id: int, limit=None, now=None):
    return await recommend(db, Domain.INSTRUCTORS, user_id, limit, now)


async def recommend_content(db: AsyncSession, user_id: int, limit=None, now=None):
    return await recommend(db, Domain.CONTENT, user_id, limit, now)


async def recommend_many(
    session_factory: async_sessionmaker,
    user_id: int,
    domains: Iterable[Domain] = tuple(Domain),
    limit: Optional[int] = None,
    now: Optional[datetime] = None,
) -> dict[Domain, list[RecommendationScore]]:
    """
    Score several domains for one subject concurrently.

    Domain calls share nothing, so each runs on its own session; all of
    them use the same reference time.
    """
    domains = [Domain(d) for d in domains]
    now = as_naive_utc(now)

    async def _one(domain: Domain) -> list[RecommendationScore]:
        async with session_factory() as db:
            return await recommend(db, domain, user_id, limit, now)

    results = await asyncio.gather(*[_one(d) for d in domains])
    return dict(zip(domains, results))
