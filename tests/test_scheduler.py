"""Tests for gap distribution and daily schedule generation."""

from datetime import date, datetime, time, timedelta, timezone

import pytest

from privacy_gaps.config import PrivacyGapConfig, whole_minutes
from privacy_gaps.core.models import GapSchedule
from privacy_gaps.core.rng import create_seeded_random
from privacy_gaps.core.scheduler import (
    distribute_gaps_with_spacing,
    generate_daily_gap_schedule,
    get_schedule_stats,
    is_timestamp_in_scheduled_gap,
)

MINUTE_MS = 60_000
HOUR_MS = 60 * MINUTE_MS


def many_schedules(day: date, count: int = 200, config: PrivacyGapConfig | None = None) -> list[GapSchedule]:
    kwargs = {"config": config} if config is not None else {}
    return [generate_daily_gap_schedule(f"child-{i}", day, **kwargs) for i in range(count)]


# =============================================================================
# Distribution Tests
# =============================================================================


class TestDistributeGapsWithSpacing:
    """Tests for distribute_gaps_with_spacing."""

    def test_zero_gaps(self) -> None:
        assert distribute_gaps_with_spacing(create_seeded_random("x"), 0, 900, 2 * HOUR_MS) == []

    def test_single_gap_leaves_room_for_longest_gap(self) -> None:
        for i in range(200):
            (offset,) = distribute_gaps_with_spacing(
                create_seeded_random(f"one-{i}"), 1, 900, 2 * HOUR_MS, 15 * MINUTE_MS
            )
            assert 0 <= offset <= 900 - 15 - 1

    @pytest.mark.parametrize("gap_count", [2, 3, 4])
    def test_offsets_increase_by_at_least_one_stride(self, gap_count: int) -> None:
        stride = 15 + 120
        for i in range(200):
            offsets = distribute_gaps_with_spacing(
                create_seeded_random(f"many-{gap_count}-{i}"),
                gap_count,
                900,
                2 * HOUR_MS,
                15 * MINUTE_MS,
            )

            assert len(offsets) == gap_count
            assert offsets[0] >= 0
            assert offsets[-1] + 15 < 900
            for earlier, later in zip(offsets, offsets[1:]):
                assert later - earlier >= stride

    def test_deterministic_for_same_rng_seed(self) -> None:
        first = distribute_gaps_with_spacing(create_seeded_random("d"), 3, 900, 2 * HOUR_MS)
        second = distribute_gaps_with_spacing(create_seeded_random("d"), 3, 900, 2 * HOUR_MS)

        assert first == second

    def test_exactly_feasible_layout(self) -> None:
        # 2 * 15 + 120 = 150 minutes reserved; a 151 minute window has one free minute.
        offsets = distribute_gaps_with_spacing(create_seeded_random("tight"), 2, 151, 2 * HOUR_MS)

        assert offsets == [0, 135]


# =============================================================================
# Schedule Generation Tests
# =============================================================================


class TestGenerateDailyGapSchedule:
    """Tests for generate_daily_gap_schedule."""

    def test_same_child_and_day_is_deterministic(self, schedule_day: date) -> None:
        first = generate_daily_gap_schedule(
            "child-alpha", schedule_day, generated_at=datetime(2025, 12, 16, 1, tzinfo=timezone.utc)
        )
        second = generate_daily_gap_schedule(
            "child-alpha", schedule_day, generated_at=datetime(2025, 12, 16, 9, tzinfo=timezone.utc)
        )

        assert first == second
        assert first.gaps == second.gaps
        assert first.generated_at != second.generated_at

    def test_other_child_differs(self, schedule_day: date) -> None:
        alpha = generate_daily_gap_schedule("child-alpha", schedule_day)
        beta = generate_daily_gap_schedule("child-beta", schedule_day)

        assert alpha.gaps != beta.gaps

    def test_same_child_differs_across_days(self, schedule_day: date) -> None:
        layouts = {
            tuple(
                gap.start_time.time()
                for gap in generate_daily_gap_schedule("child-alpha", schedule_day + timedelta(days=d)).gaps
            )
            for d in range(30)
        }

        assert len(layouts) > 25

    def test_children_diverge(self, schedule_day: date) -> None:
        first_starts = {s.gaps[0].start_time for s in many_schedules(schedule_day, 100)}

        assert len(first_starts) > 50

    def test_gap_count_within_bounds(self, schedule_day: date, default_config: PrivacyGapConfig) -> None:
        counts = {len(s.gaps) for s in many_schedules(schedule_day)}

        assert counts <= {2, 3, 4}
        assert counts == {2, 3, 4}

    def test_durations_within_bounds(self, schedule_day: date) -> None:
        for schedule in many_schedules(schedule_day):
            for gap in schedule.gaps:
                assert 5 * MINUTE_MS <= gap.duration_ms <= 15 * MINUTE_MS
                assert gap.end_time - gap.start_time == timedelta(milliseconds=gap.duration_ms)

    def test_gaps_inside_waking_hours(self, schedule_day: date) -> None:
        window_start = datetime.combine(schedule_day, time(7), tzinfo=timezone.utc)
        window_end = datetime.combine(schedule_day, time(22), tzinfo=timezone.utc)

        for schedule in many_schedules(schedule_day):
            for gap in schedule.gaps:
                assert window_start <= gap.start_time
                assert gap.end_time <= window_end

    def test_spacing_between_consecutive_gaps(self, schedule_day: date) -> None:
        for schedule in many_schedules(schedule_day):
            for earlier, later in zip(schedule.gaps, schedule.gaps[1:]):
                assert later.start_time - earlier.end_time >= timedelta(hours=2)

    def test_gaps_spread_across_the_day(self, schedule_day: date) -> None:
        start_hours = [gap.start_time.hour for s in many_schedules(schedule_day) for gap in s.gaps]

        assert min(start_hours) <= 9
        assert max(start_hours) >= 19

    def test_day_accepts_datetime_and_string(self, schedule_day: date) -> None:
        by_date = generate_daily_gap_schedule("child-alpha", schedule_day)
        by_datetime = generate_daily_gap_schedule(
            "child-alpha", datetime(2025, 12, 16, 18, 45, tzinfo=timezone.utc)
        )
        by_string = generate_daily_gap_schedule("child-alpha", "2025-12-16")

        assert by_date == by_datetime == by_string

    def test_expiry_is_24_hours_after_generation(self, schedule_day: date, generated_at: datetime) -> None:
        schedule = generate_daily_gap_schedule("child-alpha", schedule_day, generated_at=generated_at)

        assert schedule.generated_at == generated_at
        assert schedule.expires_at == generated_at + timedelta(hours=24)

    def test_secret_changes_schedule(self, schedule_day: date) -> None:
        plain = generate_daily_gap_schedule("child-alpha", schedule_day)
        keyed = generate_daily_gap_schedule("child-alpha", schedule_day, secret="k1")

        assert keyed == generate_daily_gap_schedule("child-alpha", schedule_day, secret="k1")
        assert keyed.gaps != plain.gaps

    def test_single_gap_config(self, schedule_day: date) -> None:
        config = PrivacyGapConfig(min_daily_gaps=1, max_daily_gaps=1)

        for schedule in many_schedules(schedule_day, 50, config):
            assert len(schedule.gaps) == 1

    def test_zero_gap_config(self, schedule_day: date) -> None:
        config = PrivacyGapConfig(min_daily_gaps=0, max_daily_gaps=0)

        assert generate_daily_gap_schedule("child-alpha", schedule_day, config).gaps == ()

    def test_fixed_duration_config(self, schedule_day: date) -> None:
        config = PrivacyGapConfig(min_gap_duration_ms=10 * MINUTE_MS, max_gap_duration_ms=10 * MINUTE_MS)

        for schedule in many_schedules(schedule_day, 50, config):
            assert {gap.duration_ms for gap in schedule.gaps} == {10 * MINUTE_MS}

    def test_narrow_window(self, schedule_day: date) -> None:
        config = PrivacyGapConfig(
            min_daily_gaps=2,
            max_daily_gaps=2,
            min_gap_spacing_ms=10 * MINUTE_MS,
            waking_hours_start=20,
            waking_hours_end=21,
        )
        window_end = datetime.combine(schedule_day, time(21), tzinfo=timezone.utc)

        for schedule in many_schedules(schedule_day, 100, config):
            first, second = schedule.gaps
            assert first.start_time.hour == 20
            assert second.start_time - first.end_time >= timedelta(minutes=10)
            assert second.end_time <= window_end

    def test_window_ending_at_midnight(self, schedule_day: date) -> None:
        config = PrivacyGapConfig(waking_hours_start=12, waking_hours_end=24)

        for schedule in many_schedules(schedule_day, 100, config):
            for gap in schedule.gaps:
                assert gap.start_time.date() == schedule_day
                assert gap.end_time <= datetime.combine(
                    schedule_day + timedelta(days=1), time(0), tzinfo=timezone.utc
                )

    def test_sub_minute_durations_respected(self, schedule_day: date) -> None:
        config = PrivacyGapConfig(min_gap_duration_ms=30_000, max_gap_duration_ms=90_500)

        assert whole_minutes(config.max_gap_duration_ms) == 2
        for schedule in many_schedules(schedule_day, 50, config):
            for gap in schedule.gaps:
                assert 30_000 <= gap.duration_ms <= 90_500


# =============================================================================
# Lookup and Stats Tests
# =============================================================================


class TestIsTimestampInScheduledGap:
    """Tests for is_timestamp_in_scheduled_gap."""

    def test_start_inclusive_end_exclusive(self, alpha_schedule: GapSchedule) -> None:
        gap = alpha_schedule.gaps[0]

        assert is_timestamp_in_scheduled_gap(alpha_schedule, gap.start_time)
        assert is_timestamp_in_scheduled_gap(alpha_schedule, gap.end_time - timedelta(milliseconds=1))
        assert not is_timestamp_in_scheduled_gap(alpha_schedule, gap.end_time)
        assert not is_timestamp_in_scheduled_gap(alpha_schedule, gap.start_time - timedelta(milliseconds=1))

    def test_outside_waking_hours(self, alpha_schedule: GapSchedule) -> None:
        night = datetime(2025, 12, 16, 3, 0, tzinfo=timezone.utc)
        assert not is_timestamp_in_scheduled_gap(alpha_schedule, night)

    def test_other_day_never_matches(self, alpha_schedule: GapSchedule) -> None:
        same_time_next_day = alpha_schedule.gaps[0].start_time + timedelta(days=1)
        assert not is_timestamp_in_scheduled_gap(alpha_schedule, same_time_next_day)

    def test_naive_timestamp_treated_as_utc(self, alpha_schedule: GapSchedule) -> None:
        naive = alpha_schedule.gaps[0].start_time.replace(tzinfo=None)
        assert is_timestamp_in_scheduled_gap(alpha_schedule, naive)


class TestGetScheduleStats:
    """Tests for get_schedule_stats."""

    def test_totals(self, alpha_schedule: GapSchedule) -> None:
        stats = get_schedule_stats(alpha_schedule)
        total = sum(gap.duration_ms for gap in alpha_schedule.gaps)

        assert stats.gap_count == len(alpha_schedule.gaps)
        assert stats.total_gap_ms == total
        assert stats.average_gap_ms == pytest.approx(total / len(alpha_schedule.gaps))
        assert stats.total_gap_minutes == pytest.approx(total / MINUTE_MS)

    def test_empty_schedule(self, schedule_day: date) -> None:
        empty = generate_daily_gap_schedule(
            "child-alpha", schedule_day, PrivacyGapConfig(min_daily_gaps=0, max_daily_gaps=0)
        )
        stats = get_schedule_stats(empty)

        assert stats.gap_count == 0
        assert stats.total_gap_ms == 0
        assert stats.average_gap_ms == 0.0
