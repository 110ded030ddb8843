import jwt
import pytest
from httpx import ASGITransport, AsyncClient

from dance_recs.config import settings
from dance_recs.database import get_db, get_session_factory
from dance_recs.main import app
from conftest import make_token


@pytest.fixture
async def client(session_factory):
    async def _db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def auth(user_id: int) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.parametrize("path", ["friends", "events", "teachers", "content", "overview"])
async def test_requires_bearer_token(client, path):
    resp = await client.get(f"/api/recommendations/{path}")
    assert resp.status_code == 401


async def test_rejects_bad_token(client):
    resp = await client.get(
        "/api/recommendations/friends", headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert resp.status_code == 401
    assert resp.headers["www-authenticate"] == "Bearer"


@pytest.mark.parametrize("claims", [
    lambda uid: {"userId": uid},
    lambda uid: {"userId": str(uid)},
    lambda uid: {"sub": uid},
])
async def test_accepts_platform_token_claims(client, community, claims):
    me = await community.user()
    await community.user()
    token = jwt.encode(claims(me.id), settings.jwt_secret, algorithm="HS256")

    resp = await client.get(
        "/api/recommendations/friends", headers={"Authorization": f"Bearer {token}"}
    )

    assert resp.status_code == 200
    assert len(resp.json()) == 1


@pytest.mark.parametrize("claims", [{}, {"userId": "abc"}, {"userId": True}, {"sub": None}])
async def test_rejects_token_without_usable_user_id(client, claims):
    token = jwt.encode(claims, settings.jwt_secret, algorithm="HS256")
    resp = await client.get(
        "/api/recommendations/friends", headers={"Authorization": f"Bearer {token}"}
    )
    assert resp.status_code == 401


@pytest.mark.parametrize("limit", [0, 51, "many"])
async def test_limit_is_validated(client, community, limit):
    me = await community.user()
    resp = await client.get(
        "/api/recommendations/friends", params={"limit": limit}, headers=auth(me.id)
    )
    assert resp.status_code == 422


async def test_friends_are_enriched_in_camel_case(client, community):
    me = await community.user(city="Rosario", country="Argentina", interests=["vals"])
    other = await community.user(
        city="Rosario", country="Argentina", interests=["vals"], profile_image="me.jpg",
    )

    resp = await client.get("/api/recommendations/friends", headers=auth(me.id))

    assert resp.status_code == 200
    [item] = resp.json()
    assert item["id"] == other.id
    assert item["username"] == other.username
    assert item["profileImage"] == "me.jpg"
    assert item["leaderLevel"] == 0
    assert item["recommendationScore"] == 42.5
    assert item["recommendationReasons"] == [
        "Similar dance level", "Lives in Rosario", "1 shared interest",
    ]


async def test_teachers_carry_display_name(client, community):
    me = await community.user()
    teacher = await community.teacher(years_teaching=4)

    resp = await client.get("/api/recommendations/teachers", headers=auth(me.id))

    [item] = resp.json()
    assert item["id"] == teacher.id
    assert item["name"] == teacher.user.name
    assert item["yearsTeaching"] == 4
    assert item["recommendationReasons"] == ["Great for beginners"]


async def test_content_embeds_author(client, community):
    me = await community.user()
    author = await community.user(name="Carla")
    await community.befriend(me, author)
    post = await community.post(author, likes_count=3)

    resp = await client.get("/api/recommendations/content", headers=auth(me.id))

    [item] = resp.json()
    assert item["id"] == post.id
    assert item["likesCount"] == 3
    assert item["author"]["name"] == "Carla"
    assert item["recommendationReasons"] == ["From a friend"]


async def test_nothing_to_recommend_is_empty_list(client, community):
    me = await community.user()
    for path in ["friends", "events", "teachers", "content"]:
        resp = await client.get(f"/api/recommendations/{path}", headers=auth(me.id))
        assert resp.status_code == 200
        assert resp.json() == []


async def test_unknown_user_gets_empty_list(client):
    resp = await client.get("/api/recommendations/events", headers=auth(424242))
    assert resp.status_code == 200
    assert resp.json() == []


async def test_overview_returns_raw_scores_per_domain(client, community):
    me = await community.user()
    others = [await community.user() for _ in range(7)]

    resp = await client.get("/api/recommendations/overview", headers=auth(me.id))

    assert resp.status_code == 200
    body = resp.json()
    assert body["userId"] == me.id
    assert [f["id"] for f in body["friends"]] == [o.id for o in others[:5]]
    assert body["friends"][0] == {"id": others[0].id, "score": 20.0, "reasons": ["Similar dance level"]}
    assert body["events"] == body["teachers"] == body["content"] == []
