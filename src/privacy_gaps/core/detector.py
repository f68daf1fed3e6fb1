"""Capture Suppression Detector.

Answers one question before every capture attempt: should this capture be
skipped? It is skipped when the URL belongs to a crisis resource or when the
timestamp falls inside one of the child's scheduled privacy gaps. The answer
is a ``CaptureSuppressResult`` carrying a single boolean, so the capture
pipeline (and anything downstream of it) cannot tell which of the two
conditions fired.

This module has no logger. The schedule lookup runs whether or not the URL
is a crisis URL.

Example:
    >>> import asyncio
    >>> from datetime import datetime, timezone
    >>> from privacy_gaps.core.store import InMemoryScheduleStore
    >>> store = InMemoryScheduleStore()
    >>> detector = create_privacy_gap_detector(
    ...     get_schedule=store.get_schedule,
    ...     is_crisis_url=lambda url: url.endswith("988lifeline.org"),
    ...     privacy_gaps_config=DEFAULT_PRIVACY_GAP_CONFIG,
    ... )
    >>> asyncio.run(detector.should_suppress_capture(
    ...     "child-alpha", datetime(2025, 12, 16, 3, tzinfo=timezone.utc), "https://988lifeline.org"
    ... ))
    CaptureSuppressResult(suppress=True)
"""

from __future__ import annotations

import inspect
from datetime import datetime
from typing import Awaitable, Callable, Union

from privacy_gaps.config import DEFAULT_PRIVACY_GAP_CONFIG, AppConfig, PrivacyGapConfig
from privacy_gaps.core.models import CaptureSuppressResult, GapSchedule, ensure_utc
from privacy_gaps.core.scheduler import is_timestamp_in_scheduled_gap
from privacy_gaps.core.store import ScheduleStore, create_schedule_store

CrisisPredicate = Callable[[str], bool]
ScheduleLookup = Callable[
    [str, str], Union[GapSchedule, None, Awaitable[Union[GapSchedule, None]]]
]
ConfigResolver = Callable[[str], PrivacyGapConfig]


class PrivacyGapDetector:
    """Combines crisis-URL suppression with scheduled privacy gaps.

    Args:
        get_schedule: Called with ``(child_id, "YYYY-MM-DD")``; may be sync
            or async and returns the day's schedule or None.
        is_crisis_url: Crisis URL predicate. Errors it raises propagate.
        privacy_gaps_config: Household-wide gap config. None disables the
            scheduled-gap path; crisis suppression still applies.
        config_for: Optional per-child resolver, consulted instead of
            ``privacy_gaps_config`` when given.
    """

    def __init__(
        self,
        get_schedule: ScheduleLookup,
        is_crisis_url: CrisisPredicate,
        privacy_gaps_config: PrivacyGapConfig | None = None,
        *,
        config_for: ConfigResolver | None = None,
    ) -> None:
        self._get_schedule = get_schedule
        self._is_crisis_url = is_crisis_url
        self._config = privacy_gaps_config
        self._config_for = config_for

    def _gap_config(self, child_id: str) -> PrivacyGapConfig | None:
        if self._config_for is not None:
            return self._config_for(child_id)
        return self._config

    async def _lookup(self, child_id: str, day: str) -> GapSchedule | None:
        result = self._get_schedule(child_id, day)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def is_within_scheduled_gap(self, child_id: str, timestamp: datetime) -> bool:
        """Whether ``timestamp`` lies inside one of the child's gaps for that UTC day.

        False when the gap path is disabled or unconfigured, or when no
        schedule exists for the day. Start-inclusive, end-exclusive.
        """
        config = self._gap_config(child_id)
        if config is None or not config.enabled:
            return False

        timestamp = ensure_utc(timestamp)
        schedule = await self._lookup(child_id, timestamp.date().isoformat())
        if schedule is None:
            return False
        return is_timestamp_in_scheduled_gap(schedule, timestamp)

    async def should_suppress_capture(
        self, child_id: str, timestamp: datetime, url: str | None
    ) -> CaptureSuppressResult:
        """Decide whether the capture at ``timestamp`` of ``url`` is skipped.

        A crisis URL is suppressed even when the schedule lookup fails;
        otherwise a lookup error propagates.
        """
        is_crisis = bool(url) and bool(self._is_crisis_url(url))
        try:
            in_gap = await self.is_within_scheduled_gap(child_id, timestamp)
        except Exception:
            if is_crisis:
                return CaptureSuppressResult(suppress=True)
            raise
        return CaptureSuppressResult(suppress=is_crisis or in_gap)


def create_privacy_gap_detector(
    get_schedule: ScheduleLookup,
    is_crisis_url: CrisisPredicate,
    privacy_gaps_config: PrivacyGapConfig | None = None,
    *,
    config_for: ConfigResolver | None = None,
) -> PrivacyGapDetector:
    """Build a detector from its three collaborators."""
    return PrivacyGapDetector(
        get_schedule,
        is_crisis_url,
        privacy_gaps_config,
        config_for=config_for,
    )


def create_detector_from_config(
    app_config: AppConfig,
    is_crisis_url: CrisisPredicate | None = None,
    store: ScheduleStore | None = None,
) -> PrivacyGapDetector:
    """Build a detector wired to the configured store and crisis allowlist.

    Args:
        app_config: Loaded application configuration.
        is_crisis_url: Crisis predicate; defaults to the bundled allowlist.
        store: Schedule store; defaults to the one ``app_config.cache`` selects.
    """
    if is_crisis_url is None:
        from privacy_gaps.crisis import is_crisis_url as default_predicate

        is_crisis_url = default_predicate
    if store is None:
        store = create_schedule_store(app_config)

    return PrivacyGapDetector(
        store.get_schedule,
        is_crisis_url,
        app_config.privacy_gaps,
        config_for=app_config.gap_config_for,
    )
