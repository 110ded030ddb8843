"""
Recommendation endpoints (all require a bearer token):

  GET /api/recommendations/friends   — people to connect with   (limit 10)
  GET /api/recommendations/events    — upcoming events          (limit 10)
  GET /api/recommendations/teachers  — instructors              (limit 10)
  GET /api/recommendations/content   — posts for the feed       (limit 20)
  GET /api/recommendations/overview  — raw scores, all domains at once

The engine returns ranked {id, score, reasons}. This layer is the
enrichment boundary: it hydrates the ranked ids with ONE bulk query per
call, keeps the engine's order and merges recommendationScore /
recommendationReasons onto each record. No candidates → [] with 200.
"""
import logging

from fastapi import APIRouter, Depends, Query
from opentelemetry import trace
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dance_recs.auth import get_current_user_id
from dance_recs.config import settings
from dance_recs.database import get_db, get_session_factory
from dance_recs.engine.pipeline import (
    recommend_content,
    recommend_events,
    recommend_friends,
    recommend_many,
    recommend_teachers,
)
from dance_recs.engine.types import Domain, RecommendationScore
from dance_recs.models import Event, Post, Teacher, User
from dance_recs.schemas import (
    RecommendationOverview,
    RecommendedEvent,
    RecommendedPost,
    RecommendedTeacher,
    RecommendedUser,
    ScoreItem,
)

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


def _limit(default: int):
    return Query(default, ge=1, le=settings.max_limit, description="Max results")


async def _hydrate(db: AsyncSession, model, ranked: list[RecommendationScore]) -> dict:
    """Bulk fetch the ranked records: {id: row}."""
    if not ranked:
        return {}
    rows = await db.execute(select(model).where(model.id.in_([r.id for r in ranked])))
    return {row.id: row for row in rows.scalars().all()}


def _merge(schema, record, rec: RecommendationScore, **extra):
    item = schema.model_validate(record)
    return item.model_copy(
        update={
            "recommendation_score": rec.score,
            "recommendation_reasons": list(rec.reasons),
            **extra,
        }
    )


async def _enrich(db, model, schema, ranked, extra=None) -> list:
    with tracer.start_as_current_span("enrich") as span:
        records = await _hydrate(db, model, ranked)
        span.set_attribute("enrich.requested", len(ranked))
        span.set_attribute("enrich.found", len(records))

    items = []
    for rec in ranked:
        record = records.get(rec.id)
        if record is None:
            logger.debug("Recommended %s %s vanished before hydration", model.__tablename__, rec.id)
            continue
        items.append(_merge(schema, record, rec, **(extra(record) if extra else {})))
    return items


@router.get("/friends", response_model=list[RecommendedUser])
async def friend_recommendations(
    limit: int = _limit(settings.default_limit),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    ranked = await recommend_friends(db, user_id, limit)
    return await _enrich(db, User, RecommendedUser, ranked)


@router.get("/events", response_model=list[RecommendedEvent])
async def event_recommendations(
    limit: int = _limit(settings.default_limit),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    ranked = await recommend_events(db, user_id, limit)
    return await _enrich(db, Event, RecommendedEvent, ranked)


@router.get("/teachers", response_model=list[RecommendedTeacher])
async def teacher_recommendations(
    limit: int = _limit(settings.default_limit),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    ranked = await recommend_teachers(db, user_id, limit)
    return await _enrich(
        db, Teacher, RecommendedTeacher, ranked,
        extra=lambda t: {"name": t.user.name if t.user else None},
    )


@router.get("/content", response_model=list[RecommendedPost])
async def content_recommendations(
    limit: int = _limit(settings.content_default_limit),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    ranked = await recommend_content(db, user_id, limit)
    return await _enrich(db, Post, RecommendedPost, ranked)


@router.get("/overview", response_model=RecommendationOverview)
async def recommendation_overview(
    limit: int = _limit(settings.overview_limit),
    user_id: int = Depends(get_current_user_id),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """
    Scores for every domain, computed concurrently (one session each).
    Returns the engine's raw output; clients hydrate what they display.
    """
    results = await recommend_many(session_factory, user_id, limit=limit)

    def _items(domain: Domain) -> list[ScoreItem]:
        return [ScoreItem(**r.to_dict()) for r in results.get(domain, [])]

    return RecommendationOverview(
        user_id=user_id,
        friends=_items(Domain.PEOPLE),
        events=_items(Domain.EVENTS),
        teachers=_items(Domain.INSTRUCTORS),
        content=_items(Domain.CONTENT),
    )
