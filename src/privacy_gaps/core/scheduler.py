"""Daily privacy-gap schedule generation.

Each child gets a small number of short gaps per day, placed at irregular
times inside waking hours. The schedule is derived entirely from the child
id and the calendar day (plus an optional secret), so any process can
regenerate it and get the same answer: caching schedules is an optimization,
never a correctness requirement.

Example:
    >>> from datetime import date
    >>> schedule = generate_daily_gap_schedule("child-alpha", date(2025, 12, 16))
    >>> 2 <= len(schedule.gaps) <= 4
    True
    >>> schedule == generate_daily_gap_schedule("child-alpha", date(2025, 12, 16))
    True
"""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone

from pydantic import SecretStr

from privacy_gaps.config import (
    DEFAULT_PRIVACY_GAP_CONFIG,
    PRIVACY_GAPS_CONSTANTS,
    PrivacyGapConfig,
    whole_minutes,
)
from privacy_gaps.core.models import (
    SCHEDULE_TTL,
    DayLike,
    Gap,
    GapSchedule,
    ScheduleStats,
    calendar_day,
    ensure_utc,
    utc_now,
)
from privacy_gaps.core.rng import RandomFn, create_seeded_random, generate_seed, random_int_from_seed


def distribute_gaps_with_spacing(
    rng: RandomFn,
    gap_count: int,
    total_window_minutes: int,
    min_spacing_ms: int,
    max_gap_duration_ms: int = PRIVACY_GAPS_CONSTANTS["MAX_GAP_DURATION_MS"],
) -> list[int]:
    """Place ``gap_count`` start offsets (in minutes) inside a window.

    Every gap reserves room for a gap of ``max_gap_duration_ms`` followed by
    ``min_spacing_ms`` of idle time. What is left of the window after that
    reservation is slack, which is split across the partitions before,
    between and after the gaps with one draw per partition. Offsets are
    accumulated left to right, so they come out strictly increasing and a
    gap of any duration up to the maximum ends inside the window.

    The caller must pass a feasible combination; it is not re-checked here.

    Args:
        rng: Seeded random source.
        gap_count: Number of offsets to produce.
        total_window_minutes: Window length in minutes.
        min_spacing_ms: Minimum idle time between one gap's end and the next start.
        max_gap_duration_ms: Longest gap that will be placed at an offset.

    Returns:
        Strictly increasing minute offsets in ``[0, total_window_minutes)``.
    """
    if gap_count <= 0:
        return []

    block = whole_minutes(max_gap_duration_ms)
    stride = block + whole_minutes(min_spacing_ms)
    # Offsets 0..usable-1 keep the end of a maximum-length gap inside the window.
    usable = total_window_minutes - block

    if gap_count == 1:
        return [random_int_from_seed(rng, 0, usable - 1)]

    free = usable - 1 - (gap_count - 1) * stride

    weights = [rng() for _ in range(gap_count + 1)]
    total_weight = sum(weights)
    if total_weight <= 0:
        weights = [1.0] * (gap_count + 1)
        total_weight = float(gap_count + 1)

    offsets: list[int] = []
    cursor = 0
    for index in range(gap_count):
        cursor += int(free * weights[index] / total_weight)
        offsets.append(cursor + index * stride)

    return offsets


def generate_daily_gap_schedule(
    child_id: str,
    day: DayLike,
    config: PrivacyGapConfig = DEFAULT_PRIVACY_GAP_CONFIG,
    *,
    secret: SecretStr | str | None = None,
    generated_at: datetime | None = None,
) -> GapSchedule:
    """Generate the privacy-gap schedule for one child on one day.

    Args:
        child_id: Child identifier.
        day: Calendar day (a datetime is reduced to its UTC date).
        config: Validated gap bounds.
        secret: Optional seed secret, see ``generate_seed``.
        generated_at: Generation time; defaults to now. Only affects the
            cache metadata, never the gaps.

    Returns:
        The schedule, gaps sorted by start time.
    """
    schedule_day = calendar_day(day)
    rng = create_seeded_random(generate_seed(child_id, schedule_day, secret))

    gap_count = random_int_from_seed(rng, config.min_daily_gaps, config.max_daily_gaps)
    offsets = distribute_gaps_with_spacing(
        rng,
        gap_count,
        config.window_minutes,
        config.min_gap_spacing_ms,
        config.max_gap_duration_ms,
    )

    window_start = datetime.combine(
        schedule_day, time(hour=config.waking_hours_start), tzinfo=timezone.utc
    )

    gaps = []
    for offset in offsets:
        duration_ms = random_int_from_seed(
            rng, config.min_gap_duration_ms, config.max_gap_duration_ms
        )
        start_time = window_start + timedelta(minutes=offset)
        gaps.append(
            Gap(
                start_time=start_time,
                end_time=start_time + timedelta(milliseconds=duration_ms),
                duration_ms=duration_ms,
            )
        )

    generated_at = ensure_utc(generated_at) if generated_at is not None else utc_now()
    return GapSchedule(
        child_id=child_id,
        date=schedule_day,
        gaps=tuple(gaps),
        generated_at=generated_at,
        expires_at=generated_at + SCHEDULE_TTL,
    )


def is_timestamp_in_scheduled_gap(schedule: GapSchedule, timestamp: datetime) -> bool:
    """Whether ``timestamp`` falls inside one of the schedule's gaps.

    A schedule only speaks for its own calendar day; a timestamp on any
    other day is never in one of its gaps.
    """
    timestamp = ensure_utc(timestamp)
    if timestamp.date() != schedule.date:
        return False
    return any(gap.contains(timestamp) for gap in schedule.gaps)


def get_schedule_stats(schedule: GapSchedule) -> ScheduleStats:
    """Summarize a schedule's gap count and durations."""
    if not schedule.gaps:
        return ScheduleStats()
    total_ms = sum(gap.duration_ms for gap in schedule.gaps)
    return ScheduleStats(
        gap_count=len(schedule.gaps),
        total_gap_ms=total_ms,
        average_gap_ms=total_ms / len(schedule.gaps),
    )
