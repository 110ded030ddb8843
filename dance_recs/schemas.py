"""
Pydantic response schemas for the API layer.
Kept separate from ORM models to avoid coupling transport to storage.

Responses are camelCase on the wire (the web client's convention); every
recommended record carries two extra fields merged in by the enrichment
layer: recommendationScore and recommendationReasons.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class _ApiModel(BaseModel):
    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True


class _Recommended(_ApiModel):
    recommendation_score: float = 0.0
    recommendation_reasons: list[str] = []


# ──────────────────────────── People ──────────────────────────────────────

class UserProfile(_ApiModel):
    id: int
    name: str
    username: str
    profile_image: Optional[str] = None
    bio: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    leader_level: int = 0
    follower_level: int = 0
    interests: Optional[list[str]] = None


class RecommendedUser(UserProfile, _Recommended):
    pass


# ──────────────────────────── Events ──────────────────────────────────────

class EventSummary(_ApiModel):
    id: int
    title: str
    description: Optional[str] = None
    event_type: str
    dance_styles: Optional[list[str]] = None
    venue: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    start_date: datetime
    end_date: Optional[datetime] = None
    current_attendees: int = 0


class RecommendedEvent(EventSummary, _Recommended):
    pass


# ──────────────────────────── Instructors ─────────────────────────────────

class TeacherProfile(_ApiModel):
    id: int
    user_id: int
    name: Optional[str] = None
    bio: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    specialties: Optional[list[str]] = None
    years_teaching: Optional[int] = None
    average_rating: Optional[float] = None
    total_reviews: int = 0


class RecommendedTeacher(TeacherProfile, _Recommended):
    pass


# ──────────────────────────── Content ─────────────────────────────────────

class Author(_ApiModel):
    id: int
    name: str
    username: str
    profile_image: Optional[str] = None


class PostSummary(_ApiModel):
    id: int
    user_id: int
    group_id: Optional[int] = None
    content: str
    image_url: Optional[str] = None
    likes_count: int = 0
    comments_count: int = 0
    created_at: datetime
    author: Optional[Author] = None


class RecommendedPost(PostSummary, _Recommended):
    pass


# ──────────────────────────── Overview ────────────────────────────────────

class ScoreItem(_ApiModel):
    """Raw engine output: no enrichment."""
    id: int
    score: float
    reasons: list[str]


class RecommendationOverview(_ApiModel):
    user_id: int
    friends: list[ScoreItem]
    events: list[ScoreItem]
    teachers: list[ScoreItem]
    content: list[ScoreItem]
