import os

os.environ.setdefault("TRACING_ENABLED", "false")
os.environ.setdefault("JWT_SECRET", "test-secret-for-recommendation-tests")

from datetime import datetime, timedelta

import jwt
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from dance_recs.config import settings
from dance_recs.database import Base
from dance_recs.models import (
    Event,
    EventRsvp,
    Follow,
    Friendship,
    Group,
    GroupMember,
    Post,
    Teacher,
    User,
)

NOW = datetime(2026, 10, 17, 12, 0, 0)


@pytest.fixture
async def engine(tmp_path):
    # File-backed so concurrent sessions get their own connections
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'recs.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


def make_token(user_id: int) -> str:
    return jwt.encode({"sub": str(user_id)}, settings.jwt_secret, algorithm="HS256")


class Community:
    """Small builder for seeding the community tables in tests."""

    def __init__(self, db):
        self.db = db
        self._n = 0

    async def save(self, *objs):
        self.db.add_all(objs)
        await self.db.commit()
        return objs[0] if len(objs) == 1 else objs

    async def user(self, **kw) -> User:
        self._n += 1
        kw.setdefault("name", f"Dancer {self._n}")
        kw.setdefault("username", f"dancer{self._n}")
        kw.setdefault("leader_level", 0)
        kw.setdefault("follower_level", 0)
        return await self.save(User(**kw))

    async def befriend(self, a: User, b: User, status: str = "accepted", mutual: bool = True):
        rows = [Friendship(user_id=a.id, friend_id=b.id, status=status)]
        if mutual:
            rows.append(Friendship(user_id=b.id, friend_id=a.id, status=status))
        await self.save(*rows)

    async def follow(self, follower: User, following: User):
        await self.save(Follow(follower_id=follower.id, following_id=following.id))

    async def event(self, organizer: User, **kw) -> Event:
        self._n += 1
        kw.setdefault("title", f"Milonga {self._n}")
        kw.setdefault("event_type", "milonga")
        kw.setdefault("start_date", NOW + timedelta(days=7))
        kw.setdefault("status", "published")
        kw.setdefault("current_attendees", 0)
        return await self.save(Event(user_id=organizer.id, **kw))

    async def rsvp(self, user: User, event: Event, status: str = "going"):
        await self.save(EventRsvp(user_id=user.id, event_id=event.id, status=status))

    async def teacher(self, **kw) -> Teacher:
        user = await self.user()
        kw.setdefault("total_reviews", 0)
        return await self.save(Teacher(user=user, **kw))

    async def group(self, *members: User) -> Group:
        group = await self.save(Group(name=f"Group {self._n}"))
        if members:
            await self.save(*[GroupMember(group_id=group.id, user_id=m.id) for m in members])
        return group

    async def post(self, author: User, **kw) -> Post:
        kw.setdefault("content", "Great night at the milonga")
        kw.setdefault("created_at", NOW - timedelta(hours=6))
        kw.setdefault("likes_count", 0)
        kw.setdefault("comments_count", 0)
        return await self.save(Post(user_id=author.id, **kw))


@pytest.fixture
def community(db):
    return Community(db)
