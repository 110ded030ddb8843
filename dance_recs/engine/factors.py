"""
Factor tables — one ordered list of capped scoring rules per domain.

Caps per domain sum to 100, so every domain scores on the same 0–100 scale:

  People       mutual friends 40 · dance level 20 · location 20
               · shared events 15 · shared interests 5
  Events       location 30 · friends attending 25 · past preferences 20
               · style match 15 · popularity 10
  Instructors  location 35 · experience tier 25 · specialty match 20
               · rating 15 · profile completeness 5
  Content      from a friend 40 · from someone followed 25 · from a group 20
               · engagement 10 · recency 5

Table order is also the order reasons are shown to the user.
"""
from typing import Optional

from dance_recs.engine.types import Factor


def _plural(n: int, word: str) -> str:
    return f"{n} {word}{'s' if n != 1 else ''}"


def average_level(user) -> float:
    return ((user.leader_level or 0) + (user.follower_level or 0)) / 2


def _shared(mine: Optional[list], theirs: Optional[list]) -> list:
    """Tags of ``mine`` that also appear in ``theirs``, in ``mine`` order."""
    theirs = set(theirs or [])
    return [tag for tag in (mine or []) if tag in theirs]


def _location(subject, candidate, full: float, partial: float, prefix: str):
    """Full points for same city + country, partial for same country."""
    if not candidate.country or candidate.country != subject.country:
        return 0.0, None
    if candidate.city and candidate.city == subject.city:
        return full, f"{prefix} {candidate.city}"
    return partial, f"{prefix} {candidate.country}"


# ── People ────────────────────────────────────────────────────────────────

SIMILAR_LEVEL_MIN_POINTS = 10


def mutual_friends(subject, candidate, ctx):
    count = ctx.mutual_friends.get(candidate.id, 0)
    return min(count * 8, 40), (_plural(count, "mutual friend") if count else None)


def dance_level(subject, candidate, ctx):
    gap = abs(ctx.subject_levels - average_level(candidate))
    points = max(0.0, 20 - gap * 4)
    return points, ("Similar dance level" if points > SIMILAR_LEVEL_MIN_POINTS else None)


def lives_nearby(subject, candidate, ctx):
    return _location(subject, candidate, 20, 10, "Lives in")


def shared_events(subject, candidate, ctx):
    count = ctx.shared_events.get(candidate.id, 0)
    reason = f"Attended {_plural(count, 'same event')}" if count else None
    return min(count * 5, 15), reason


def shared_interests(subject, candidate, ctx):
    count = len(_shared(subject.interests, candidate.interests))
    return min(count * 2.5, 5), (_plural(count, "shared interest") if count else None)


PEOPLE_FACTORS = [
    Factor("mutual_friends", 40, mutual_friends),
    Factor("dance_level", 20, dance_level),
    Factor("location", 20, lives_nearby),
    Factor("shared_events", 15, shared_events),
    Factor("shared_interests", 5, shared_interests),
]


# ── Events ────────────────────────────────────────────────────────────────

POPULAR_EVENT_MIN_ATTENDEES = 10


def event_location(subject, event, ctx):
    return _location(subject, event, 30, 15, "In")


def friends_attending(subject, event, ctx):
    count = ctx.friends_attending.get(event.id, 0)
    return min(count * 8, 25), (f"{_plural(count, 'friend')} attending" if count else None)


def past_preferences(subject, event, ctx):
    primary_style = (event.dance_styles or [""])[0]
    if primary_style and primary_style in ctx.preferred_types:
        return 20, "Matches your interests"
    return 0, None


def style_match(subject, event, ctx):
    matching = _shared(subject.interests, event.dance_styles)
    return min(len(matching) * 7.5, 15), (f"{matching[0]} event" if matching else None)


def popularity(subject, event, ctx):
    attendees = event.current_attendees or 0
    reason = f"{attendees} attending" if attendees > POPULAR_EVENT_MIN_ATTENDEES else None
    return min(attendees * 0.5, 10), reason


EVENT_FACTORS = [
    Factor("location", 30, event_location),
    Factor("friends_attending", 25, friends_attending),
    Factor("past_preferences", 20, past_preferences),
    Factor("style_match", 15, style_match),
    Factor("popularity", 10, popularity),
]


# ── Instructors ───────────────────────────────────────────────────────────

BEGINNER_MAX_LEVEL = 3          # subject average level below this is a beginner
EXPERIENCED_YEARS = 2           # enough to teach beginners
SENIOR_YEARS = 5                # enough to teach advanced dancers
PARTIAL_CREDIT_YEARS = 3
HIGH_RATING = 4.5


def teacher_location(subject, teacher, ctx):
    return _location(subject, teacher, 35, 17, "Located in")


def experience_tier(subject, teacher, ctx):
    years = teacher.years_teaching or 0
    if ctx.subject_levels < BEGINNER_MAX_LEVEL and years >= EXPERIENCED_YEARS:
        return 25, "Great for beginners"
    if ctx.subject_levels >= BEGINNER_MAX_LEVEL and years >= SENIOR_YEARS:
        return 25, "Advanced instruction"
    if years >= PARTIAL_CREDIT_YEARS:
        return 15, None
    return 0, None


def specialty_match(subject, teacher, ctx):
    matching = _shared(subject.interests, teacher.specialties)
    return min(len(matching) * 10, 20), (f"Teaches {matching[0]}" if matching else None)


def rating(subject, teacher, ctx):
    stars = teacher.average_rating or 0
    points = (stars / 5) * 10 + min((teacher.total_reviews or 0) * 0.5, 5)
    return points, (f"{stars:.1f}⭐ rating" if stars >= HIGH_RATING else None)


def completeness(subject, teacher, ctx):
    points = 0
    if teacher.city:
        points += 1
    if teacher.specialties:
        points += 2
    if teacher.years_teaching:
        points += 2
    return points, None


INSTRUCTOR_FACTORS = [
    Factor("location", 35, teacher_location),
    Factor("experience_tier", 25, experience_tier),
    Factor("specialty_match", 20, specialty_match),
    Factor("rating", 15, rating),
    Factor("completeness", 5, completeness),
]


# ── Content ───────────────────────────────────────────────────────────────

POPULAR_POST_MIN_ENGAGEMENT = 10


def from_friend(subject, post, ctx):
    if post.user_id in ctx.friend_ids:
        return 40, "From a friend"
    return 0, None


def from_followed(subject, post, ctx):
    if post.user_id in ctx.following_ids:
        return 25, "From someone you follow"
    return 0, None


def from_group(subject, post, ctx):
    if post.group_id is not None and post.group_id in ctx.group_ids:
        return 20, "From your group"
    return 0, None


def engagement(subject, post, ctx):
    total = (post.likes_count or 0) + (post.comments_count or 0) * 2
    reason = "Popular post" if total > POPULAR_POST_MIN_ENGAGEMENT else None
    return min(total * 0.5, 10), reason


def recency(subject, post, ctx):
    hours = (ctx.now - post.created_at).total_seconds() / 3600
    return max(0.0, 5 - hours / 24), None


CONTENT_FACTORS = [
    Factor("from_friend", 40, from_friend),
    Factor("from_followed", 25, from_followed),
    Factor("from_group", 20, from_group),
    Factor("engagement", 10, engagement),
    Factor("recency", 5, recency),
]
