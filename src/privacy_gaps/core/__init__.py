"""
Core scheduling and suppression logic.

- ``rng``: deterministic seeded randomness
- ``scheduler``: gap distribution and daily schedule generation
- ``store``: schedule caching with deterministic regeneration
- ``detector``: the capture suppression decision
"""

from privacy_gaps.core.detector import (
    PrivacyGapDetector,
    create_detector_from_config,
    create_privacy_gap_detector,
)
from privacy_gaps.core.models import CaptureSuppressResult, Gap, GapSchedule, ScheduleStats
from privacy_gaps.core.rng import create_seeded_random, generate_seed, random_int_from_seed
from privacy_gaps.core.scheduler import (
    distribute_gaps_with_spacing,
    generate_daily_gap_schedule,
    get_schedule_stats,
    is_timestamp_in_scheduled_gap,
)
from privacy_gaps.core.store import (
    FileScheduleStore,
    InMemoryScheduleStore,
    ScheduleStore,
    create_schedule_store,
)

__all__ = [
    "CaptureSuppressResult",
    "FileScheduleStore",
    "Gap",
    "GapSchedule",
    "InMemoryScheduleStore",
    "PrivacyGapDetector",
    "ScheduleStats",
    "ScheduleStore",
    "create_detector_from_config",
    "create_privacy_gap_detector",
    "create_schedule_store",
    "create_seeded_random",
    "distribute_gaps_with_spacing",
    "generate_daily_gap_schedule",
    "generate_seed",
    "get_schedule_stats",
    "is_timestamp_in_scheduled_gap",
    "random_int_from_seed",
]
