"""Schedule Store: memoization of daily gap schedules.

Schedules are a pure function of ``(child_id, day, config, secret)``, so the
store is an optimization only. A miss, a stale entry or an unreadable cache
file all end the same way: the schedule is regenerated and written back.
A failed write still returns the regenerated schedule.
Concurrent regenerations of the same key produce identical values, so the
last writer wins harmlessly and no locking is needed.

Nothing on the lookup path logs.

Example:
    >>> import asyncio
    >>> store = InMemoryScheduleStore()
    >>> schedule = asyncio.run(store.get_schedule("child-alpha", "2025-12-16"))
    >>> schedule.child_id
    'child-alpha'
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import os
import sys
import tempfile
from abc import ABC, abstractmethod
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable

from pydantic import BaseModel, Field, SecretStr, ValidationError

from privacy_gaps.config import DEFAULT_PRIVACY_GAP_CONFIG, AppConfig, PrivacyGapConfig, default_cache_dir
from privacy_gaps.core.models import DayLike, GapSchedule, calendar_day, utc_now
from privacy_gaps.core.scheduler import generate_daily_gap_schedule
from privacy_gaps.utils.logging import get_logger

Clock = Callable[[], datetime]
ConfigResolver = Callable[[str], PrivacyGapConfig]

CACHE_VERSION = "1.0"


# =============================================================================
# Helper Functions
# =============================================================================


def fingerprint_gap_config(config: PrivacyGapConfig, secret: SecretStr | str | None = None) -> str:
    """Create a deterministic fingerprint of everything that shapes a schedule.

    The secret contributes only through a hash, so the fingerprint can be
    stored next to cached schedules without revealing it.

    Returns:
        Full SHA-256 hex digest (64 characters).
    """
    data: dict[str, Any] = config.model_dump(exclude={"enabled"})
    if secret is not None:
        raw = secret.get_secret_value() if isinstance(secret, SecretStr) else secret
        data["secret"] = hashlib.sha256(raw.encode("utf-8")).hexdigest()
    json_str = json.dumps(data, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(json_str.encode("utf-8")).hexdigest()


# =============================================================================
# Base Store
# =============================================================================


class ScheduleStore(ABC):
    """Cache of daily schedules that regenerates deterministically on a miss.

    Subclasses implement ``_load``/``_save``/``_delete``/``clear``; lookup,
    expiry and regeneration live here.

    Attributes:
        generate_on_miss: If False the store is lookup-only and a miss
            returns None instead of generating.
    """

    def __init__(
        self,
        config: PrivacyGapConfig = DEFAULT_PRIVACY_GAP_CONFIG,
        *,
        config_for: ConfigResolver | None = None,
        seed_secret: SecretStr | str | None = None,
        generate_on_miss: bool = True,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            config: Gap bounds used for every child.
            config_for: Per-child resolver; takes precedence over ``config``.
            seed_secret: Optional seed secret passed to the generator.
            generate_on_miss: Regenerate missing or stale schedules.
            clock: Source of the current time, for expiry checks.
        """
        self._config = config
        self._config_for = config_for
        self._seed_secret = seed_secret
        self.generate_on_miss = generate_on_miss
        self._clock = clock or utc_now

    def config_for(self, child_id: str) -> PrivacyGapConfig:
        if self._config_for is not None:
            return self._config_for(child_id)
        return self._config

    async def get_schedule(self, child_id: str, day: DayLike) -> GapSchedule | None:
        """Return the schedule for ``(child_id, day)``, regenerating if needed.

        Returns:
            The schedule, or None on a miss when ``generate_on_miss`` is False.
        """
        schedule_day = calendar_day(day)
        now = self._clock()

        cached = await self._load(child_id, schedule_day)
        if cached is not None and not cached.is_expired(now):
            return cached

        if not self.generate_on_miss:
            return None

        schedule = generate_daily_gap_schedule(
            child_id,
            schedule_day,
            self.config_for(child_id),
            secret=self._seed_secret,
            generated_at=now,
        )
        try:
            await self._save(schedule)
        except OSError:
            # Unwritable cache: serve the regenerated schedule uncached.
            pass
        return schedule

    async def put(self, schedule: GapSchedule) -> None:
        """Store a schedule under its own ``(child_id, date)``."""
        await self._save(schedule)

    async def invalidate(self, child_id: str, day: DayLike) -> bool:
        """Drop one cached schedule.

        Returns:
            True if an entry was removed.
        """
        return await self._delete(child_id, calendar_day(day))

    @abstractmethod
    async def _load(self, child_id: str, day: date) -> GapSchedule | None: ...

    @abstractmethod
    async def _save(self, schedule: GapSchedule) -> None: ...

    @abstractmethod
    async def _delete(self, child_id: str, day: date) -> bool: ...

    @abstractmethod
    def clear(self) -> int:
        """Delete all cached schedules and return how many were removed."""

    @abstractmethod
    def get_stats(self) -> dict[str, Any]:
        """Return cache statistics for debugging."""


# =============================================================================
# In-Memory Store
# =============================================================================


class InMemoryScheduleStore(ScheduleStore):
    """Process-local store backed by a dict keyed by ``(child_id, date)``.

    Expired entries are evicted whenever a schedule is saved.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._entries: dict[tuple[str, date], GapSchedule] = {}

    async def _load(self, child_id: str, day: date) -> GapSchedule | None:
        return self._entries.get((child_id, day))

    async def _save(self, schedule: GapSchedule) -> None:
        self._evict_expired(self._clock())
        self._entries[(schedule.child_id, schedule.date)] = schedule

    def _evict_expired(self, now: datetime) -> None:
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]

    async def _delete(self, child_id: str, day: date) -> bool:
        return self._entries.pop((child_id, day), None) is not None

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    def get_stats(self) -> dict[str, Any]:
        return {"backend": "memory", "entry_count": len(self._entries)}

    def __len__(self) -> int:
        return len(self._entries)


# =============================================================================
# File Store
# =============================================================================


class CacheEntry(BaseModel):
    """The structure written to disk for one cached schedule.

    Attributes:
        version: Cache schema version; other versions are ignored.
        config_fingerprint: Fingerprint of the config and secret that
            produced the schedule.
        schedule: The cached schedule.
    """

    version: str = Field(default=CACHE_VERSION)
    config_fingerprint: str
    schedule: GapSchedule


class FileScheduleStore(ScheduleStore):
    """Store that keeps one JSON file per schedule in a private directory.

    File names are hashes of child id, day and config fingerprint, so a
    directory listing does not reveal which children are monitored. Writes
    go to a temp file that is renamed into place. A corrupt, foreign-version
    or mismatched file is treated as a miss and overwritten by the
    regenerated schedule.

    Attributes:
        cache_dir: Directory where cache files are stored.
    """

    def __init__(self, cache_dir: Path | None = None, *args: Any, **kwargs: Any) -> None:
        """Initialize the store and create its directory.

        Args:
            cache_dir: Directory for cache files. If None, uses platform default.
            *args, **kwargs: Passed to ``ScheduleStore``.
        """
        super().__init__(*args, **kwargs)
        self._logger = get_logger(f"{__name__}.{self.__class__.__name__}")
        self._cache_dir = (
            Path(cache_dir).expanduser().resolve() if cache_dir is not None else default_cache_dir()
        )

        self._cache_dir.mkdir(parents=True, exist_ok=True)
        if sys.platform != "win32":
            self._cache_dir.chmod(0o700)

        self._logger.debug(f"Schedule cache initialized at: {self._cache_dir}")

    @property
    def cache_dir(self) -> Path:
        """The cache directory path."""
        return self._cache_dir

    def _fingerprint(self, child_id: str) -> str:
        return fingerprint_gap_config(self.config_for(child_id), self._seed_secret)

    def _get_cache_path(self, child_id: str, day: date) -> Path:
        combined = f"{child_id}:{day.isoformat()}:{self._fingerprint(child_id)}"
        key = hashlib.sha256(combined.encode("utf-8")).hexdigest()[:32]
        return self._cache_dir / f"{key}.json"

    def _read_entry(self, path: Path, fingerprint: str) -> GapSchedule | None:
        try:
            entry = CacheEntry.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError):
            # Missing, unreadable or corrupt: regenerate over it.
            return None

        if entry.version != CACHE_VERSION or entry.config_fingerprint != fingerprint:
            return None
        return entry.schedule

    def _write_entry(self, path: Path, entry: CacheEntry) -> None:
        fd, temp_path = tempfile.mkstemp(dir=self._cache_dir, suffix=".tmp", prefix=".cache_")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(entry.model_dump_json(indent=2))
            Path(temp_path).replace(path)
        except BaseException:
            Path(temp_path).unlink(missing_ok=True)
            raise

    async def _load(self, child_id: str, day: date) -> GapSchedule | None:
        path = self._get_cache_path(child_id, day)
        schedule = await asyncio.to_thread(self._read_entry, path, self._fingerprint(child_id))
        if schedule is None or schedule.child_id != child_id or schedule.date != day:
            return None
        return schedule

    async def _save(self, schedule: GapSchedule) -> None:
        entry = CacheEntry(
            config_fingerprint=self._fingerprint(schedule.child_id),
            schedule=schedule,
        )
        path = self._get_cache_path(schedule.child_id, schedule.date)
        await asyncio.to_thread(self._write_entry, path, entry)

    def _remove_entry(self, path: Path) -> bool:
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    async def _delete(self, child_id: str, day: date) -> bool:
        path = self._get_cache_path(child_id, day)
        return await asyncio.to_thread(self._remove_entry, path)

    def clear(self) -> int:
        """Delete all cache entries.

        Returns:
            Number of cache files deleted.
        """
        count = 0
        for cache_file in self._cache_dir.glob("*.json"):
            cache_file.unlink(missing_ok=True)
            count += 1

        if count > 0:
            self._logger.info(f"Cleared {count} cached schedules")
        return count

    def get_stats(self) -> dict[str, Any]:
        """Return cache statistics for debugging.

        Returns:
            Dictionary with backend, cache_dir, entry_count and total_size_bytes.
        """
        cache_files = list(self._cache_dir.glob("*.json"))
        return {
            "backend": "file",
            "cache_dir": str(self._cache_dir),
            "entry_count": len(cache_files),
            "total_size_bytes": sum(f.stat().st_size for f in cache_files),
        }


def create_schedule_store(app_config: AppConfig, **kwargs: Any) -> ScheduleStore:
    """Build the store selected by ``app_config.cache`` with per-child configs."""
    options: dict[str, Any] = {
        "config_for": app_config.gap_config_for,
        "seed_secret": app_config.seed_secret,
    }
    options.update(kwargs)

    if app_config.cache.backend == "file":
        return FileScheduleStore(app_config.cache.cache_dir, **options)
    return InMemoryScheduleStore(**options)
