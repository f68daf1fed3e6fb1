"""
Core data models for privacy-gap scheduling and capture suppression.

Two rules shape every model in this module:

- A ``Gap`` has no reason, type or origin field. A gap is a window of time
  and nothing else, so nothing downstream can ever tag a gap as related to a
  crisis visit.
- ``CaptureSuppressResult`` has exactly one field. The decision returned to
  the capture pipeline looks the same whichever input caused it.

All models are frozen and reject unknown fields.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from privacy_gaps.config import MAX_GAPS_PER_SCHEDULE, SCHEDULE_TTL_HOURS

SCHEDULE_TTL = timedelta(hours=SCHEDULE_TTL_HOURS)

DayLike = Union[date, datetime, str]


# --- Time helpers ---


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime. Naive values are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def calendar_day(value: DayLike) -> date:
    """Normalize a date, datetime or ``YYYY-MM-DD`` string to a UTC calendar day."""
    if isinstance(value, datetime):
        return ensure_utc(value).date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise TypeError(f"Expected date, datetime or YYYY-MM-DD string, got {type(value).__name__}")


# --- Models ---


class Gap(BaseModel):
    """
    One scheduled privacy gap: a half-open window ``[start_time, end_time)``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    start_time: datetime
    end_time: datetime
    duration_ms: int = Field(gt=0)

    @field_validator("start_time", "end_time")
    @classmethod
    def to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @model_validator(mode="after")
    def check_duration(self) -> "Gap":
        if self.end_time - self.start_time != timedelta(milliseconds=self.duration_ms):
            raise ValueError("end_time - start_time must equal duration_ms")
        return self

    def contains(self, timestamp: datetime) -> bool:
        """Start-inclusive, end-exclusive membership test."""
        return self.start_time <= ensure_utc(timestamp) < self.end_time


class GapSchedule(BaseModel):
    """
    The privacy gaps for one child on one calendar day.

    Gaps are sorted by start time and never overlap. ``generated_at`` and
    ``expires_at`` are cache metadata: two schedules are equal when they
    describe the same gaps for the same child and day, whenever they were
    generated.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    child_id: str = Field(min_length=1)
    date: date
    gaps: Tuple[Gap, ...] = Field(default=(), max_length=MAX_GAPS_PER_SCHEDULE)
    generated_at: datetime
    expires_at: datetime

    @field_validator("generated_at", "expires_at")
    @classmethod
    def to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @model_validator(mode="after")
    def check_gaps(self) -> "GapSchedule":
        for gap in self.gaps:
            if gap.start_time.date() != self.date:
                raise ValueError(f"gap starting {gap.start_time.isoformat()} is not on {self.date}")
        for previous, current in zip(self.gaps, self.gaps[1:]):
            if current.start_time < previous.end_time:
                raise ValueError("gaps must be sorted by start time and must not overlap")
        if self.expires_at - self.generated_at != SCHEDULE_TTL:
            raise ValueError(f"expires_at must be generated_at + {SCHEDULE_TTL_HOURS}h")
        return self

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GapSchedule):
            return NotImplemented
        return (self.child_id, self.date, self.gaps) == (other.child_id, other.date, other.gaps)

    def __hash__(self) -> int:
        return hash((self.child_id, self.date, self.gaps))

    def is_expired(self, now: datetime) -> bool:
        """Stale schedules are regenerated; regeneration reproduces the same gaps."""
        return ensure_utc(now) >= self.expires_at


class CaptureSuppressResult(BaseModel):
    """
    The suppression decision handed to the capture pipeline.

    Exactly one field. Do not add another: a reason, a gap type or a flag of
    any kind would let a household member tell crisis suppression apart from
    cover noise.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    suppress: bool


class ScheduleStats(BaseModel):
    """Aggregate figures for one schedule."""

    model_config = ConfigDict(frozen=True)

    gap_count: int = 0
    total_gap_ms: int = 0
    average_gap_ms: float = 0.0

    @property
    def total_gap_minutes(self) -> float:
        return self.total_gap_ms / 60_000

    @property
    def average_gap_minutes(self) -> float:
        return self.average_gap_ms / 60_000
