"""
Value objects shared by the recommendation pipeline.

A recommendation call flows through these types:

  PoolResult      — candidate pool + precomputed context (or the failure cause)
  Factor          — one capped scoring rule of a domain's factor table
  RecommendationScore — ranked output handed to the enrichment layer
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar

C = TypeVar("C")


class Domain(str, Enum):
    PEOPLE = "people"
    EVENTS = "events"
    INSTRUCTORS = "instructors"
    CONTENT = "content"


@dataclass(frozen=True)
class RecommendationScore:
    id: int
    score: float
    reasons: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"id": self.id, "score": self.score, "reasons": list(self.reasons)}


# evaluate(subject, candidate, context) -> (points, reason or None)
Evaluate = Callable[[Any, Any, Any], tuple[float, Optional[str]]]


@dataclass(frozen=True)
class Factor:
    """
    One independent scoring rule.

    ``evaluate`` is a pure function of the subject, the candidate and the
    per-call context. Its points are clamped into ``[0, cap]`` by the scorer;
    the reason is whatever the rule decided to report, which depends on the
    rule's own threshold rather than on the cap.
    """
    name: str
    cap: float
    evaluate: Evaluate


# ── Per-domain scoring context (built once per call, batched) ─────────────

@dataclass
class PeopleContext:
    subject_levels: float
    mutual_friends: dict[int, int] = field(default_factory=dict)
    shared_events: dict[int, int] = field(default_factory=dict)


@dataclass
class EventContext:
    friends_attending: dict[int, int] = field(default_factory=dict)
    preferred_types: list[str] = field(default_factory=list)


@dataclass
class InstructorContext:
    subject_levels: float


@dataclass
class ContentContext:
    now: datetime
    friend_ids: frozenset = frozenset()
    following_ids: frozenset = frozenset()
    group_ids: frozenset = frozenset()


@dataclass
class PoolResult(Generic[C]):
    """
    Outcome of loading a domain's candidate pool.

    Distinguishes "nothing eligible" (ok, empty) from "storage failed"
    (``error`` set) for logging and metrics; both degrade to an empty
    recommendation list at the public boundary.
    """
    candidates: list[C] = field(default_factory=list)
    context: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, error: BaseException) -> "PoolResult":
        return cls(error=error)
