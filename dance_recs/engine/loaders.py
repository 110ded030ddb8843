"""
Candidate Pool Loader — Stage 1 of every recommendation call.

Each domain has two async steps, both run on the caller's session:

  load_*_candidates   one bounded SELECT applying the domain's exclusion
                      rules and liveness / status filters
  build_*_context     the lookups the factor table needs, each issued as ONE
                      batched query keyed by the whole candidate-id set
                      (GROUP BY → {candidate_id: count}), never one query
                      per candidate

Storage errors are not handled here; the pipeline wraps both steps in a
single boundary (see pipeline.load_pool).
"""
from datetime import datetime, timedelta
from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dance_recs.config import settings
from dance_recs.engine.factors import average_level
from dance_recs.engine.types import (
    ContentContext,
    EventContext,
    InstructorContext,
    PeopleContext,
)
from dance_recs.models import (
    EVENT_PUBLISHED,
    FRIENDSHIP_ACCEPTED,
    RSVP_GOING,
    Event,
    EventRsvp,
    Follow,
    Friendship,
    GroupMember,
    Post,
    Teacher,
    User,
)


PREFERRED_EVENT_TYPES = 3


# ── Subject edges ─────────────────────────────────────────────────────────

async def accepted_friend_ids(db: AsyncSession, user_id: int) -> list[int]:
    rows = await db.execute(
        select(Friendship.friend_id).where(
            Friendship.user_id == user_id,
            Friendship.status == FRIENDSHIP_ACCEPTED,
        )
    )
    return list(rows.scalars().all())


async def following_ids(db: AsyncSession, user_id: int) -> list[int]:
    rows = await db.execute(
        select(Follow.following_id).where(Follow.follower_id == user_id)
    )
    return list(rows.scalars().all())


async def group_ids(db: AsyncSession, user_id: int) -> list[int]:
    rows = await db.execute(
        select(GroupMember.group_id).where(GroupMember.user_id == user_id)
    )
    return list(rows.scalars().all())


async def going_event_ids(db: AsyncSession, user_id: int) -> list[int]:
    rows = await db.execute(
        select(EventRsvp.event_id).where(
            EventRsvp.user_id == user_id,
            EventRsvp.status == RSVP_GOING,
        )
    )
    return list(rows.scalars().all())


async def preferred_event_types(db: AsyncSession, user_id: int) -> list[str]:
    """
    The subject's top event types by past RSVP count.
    Equal counts are ordered by type name so the cut-off is deterministic.
    """
    n = func.count().label("n")
    rows = await db.execute(
        select(Event.event_type, n)
        .join(EventRsvp, EventRsvp.event_id == Event.id)
        .where(EventRsvp.user_id == user_id)
        .group_by(Event.event_type)
        .order_by(n.desc(), Event.event_type)
        .limit(PREFERRED_EVENT_TYPES)
    )
    return [row[0] for row in rows.all()]


# ── Batched per-candidate counts ──────────────────────────────────────────

async def _grouped_counts(db: AsyncSession, key_col, stmt) -> dict[int, int]:
    rows = await db.execute(stmt.group_by(key_col))
    return {key: count for key, count in rows.all()}


async def count_mutual_friends(
    db: AsyncSession,
    candidate_ids: Iterable[int],
    friend_ids: Iterable[int],
) -> dict[int, int]:
    """{candidate_id: accepted friends the candidate shares with the subject}"""
    candidate_ids, friend_ids = list(candidate_ids), list(friend_ids)
    if not candidate_ids or not friend_ids:
        return {}
    return await _grouped_counts(
        db,
        Friendship.user_id,
        select(Friendship.user_id, func.count()).where(
            Friendship.user_id.in_(candidate_ids),
            Friendship.status == FRIENDSHIP_ACCEPTED,
            Friendship.friend_id.in_(friend_ids),
        ),
    )


async def count_shared_events(
    db: AsyncSession,
    candidate_ids: Iterable[int],
    event_ids: Iterable[int],
) -> dict[int, int]:
    """{candidate_id: RSVPs the candidate holds on the given events}"""
    candidate_ids, event_ids = list(candidate_ids), list(event_ids)
    if not candidate_ids or not event_ids:
        return {}
    return await _grouped_counts(
        db,
        EventRsvp.user_id,
        select(EventRsvp.user_id, func.count()).where(
            EventRsvp.user_id.in_(candidate_ids),
            EventRsvp.event_id.in_(event_ids),
        ),
    )


async def count_attending(
    db: AsyncSession,
    event_ids: Iterable[int],
    user_ids: Iterable[int],
) -> dict[int, int]:
    """{event_id: RSVPs on that event by any of the given users}"""
    event_ids, user_ids = list(event_ids), list(user_ids)
    if not event_ids or not user_ids:
        return {}
    return await _grouped_counts(
        db,
        EventRsvp.event_id,
        select(EventRsvp.event_id, func.count()).where(
            EventRsvp.event_id.in_(event_ids),
            EventRsvp.user_id.in_(user_ids),
        ),
    )


# ── People ────────────────────────────────────────────────────────────────

async def load_people_candidates(
    db: AsyncSession, subject: User, now: datetime
) -> list[User]:
    excluded = await accepted_friend_ids(db, subject.id)
    excluded.append(subject.id)
    rows = await db.execute(
        select(User)
        .where(User.id.not_in(excluded), User.is_active.is_(True))
        .order_by(User.id)
        .limit(settings.people_pool_size)
    )
    return list(rows.scalars().all())


async def build_people_context(
    db: AsyncSession, subject: User, candidates: list[User], now: datetime
) -> PeopleContext:
    candidate_ids = [c.id for c in candidates]
    friends = await accepted_friend_ids(db, subject.id)
    events = await going_event_ids(db, subject.id)
    return PeopleContext(
        subject_levels=average_level(subject),
        mutual_friends=await count_mutual_friends(db, candidate_ids, friends),
        shared_events=await count_shared_events(db, candidate_ids, events),
    )


# ── Events ────────────────────────────────────────────────────────────────

async def load_event_candidates(
    db: AsyncSession, subject: User, now: datetime
) -> list[Event]:
    already_committed = select(EventRsvp.event_id).where(EventRsvp.user_id == subject.id)
    rows = await db.execute(
        select(Event)
        .where(
            Event.start_date >= now,
            Event.status == EVENT_PUBLISHED,
            Event.id.not_in(already_committed),
        )
        .order_by(Event.start_date, Event.id)
        .limit(settings.event_pool_size)
    )
    return list(rows.scalars().all())


async def build_event_context(
    db: AsyncSession, subject: User, candidates: list[Event], now: datetime
) -> EventContext:
    friends = await accepted_friend_ids(db, subject.id)
    return EventContext(
        friends_attending=await count_attending(db, [e.id for e in candidates], friends),
        preferred_types=await preferred_event_types(db, subject.id),
    )


# ── Instructors ───────────────────────────────────────────────────────────

async def load_instructor_candidates(
    db: AsyncSession, subject: User, now: datetime
) -> list[Teacher]:
    rows = await db.execute(
        select(Teacher)
        .where(Teacher.is_active.is_(True))
        .order_by(Teacher.id)
        .limit(settings.instructor_pool_size)
    )
    return list(rows.scalars().all())


async def build_instructor_context(
    db: AsyncSession, subject: User, candidates: list[Teacher], now: datetime
) -> InstructorContext:
    return InstructorContext(subject_levels=average_level(subject))


# ── Content ───────────────────────────────────────────────────────────────

async def load_content_candidates(
    db: AsyncSession, subject: User, now: datetime
) -> list[Post]:
    window_start = now - timedelta(days=settings.content_window_days)
    rows = await db.execute(
        select(Post)
        .where(Post.created_at >= window_start, Post.user_id != subject.id)
        .order_by(Post.created_at.desc(), Post.id.desc())
        .limit(settings.content_pool_size)
    )
    return list(rows.scalars().all())


async def build_content_context(
    db: AsyncSession, subject: User, candidates: list[Post], now: datetime
) -> ContentContext:
    return ContentContext(
        now=now,
        friend_ids=frozenset(await accepted_friend_ids(db, subject.id)),
        following_ids=frozenset(await following_ids(db, subject.id)),
        group_ids=frozenset(await group_ids(db, subject.id)),
    )
