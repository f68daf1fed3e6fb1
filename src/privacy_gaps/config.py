"""Central Configuration System for Privacy Gaps.

This module is the single source of truth for privacy-gap configuration.
Every other module that needs settings imports from here. The daily
schedule generator never validates its inputs itself: a
``PrivacyGapConfig`` that exists has already passed every bound and
feasibility check below, so an infeasible configuration is rejected when it
is loaded, not when a capture is about to be taken.

The configuration system supports:
- Multi-source configuration (environment variables > config file > defaults)
- Per-child overrides (disable gaps for one child, or give it custom bounds)
- An optional server-side seed secret for keyed schedule derivation

Example:
    >>> from privacy_gaps.config import get_config
    >>>
    >>> cfg = get_config()
    >>> cfg.privacy_gaps.min_daily_gaps
    2
    >>> cfg.gap_config_for("child-alpha").enabled
    True

Config File Format (YAML):
    ```yaml
    privacy_gaps:
      enabled: true
      min_daily_gaps: 2
      max_daily_gaps: 4
      min_gap_duration_ms: 300000     # 5 minutes
      max_gap_duration_ms: 900000     # 15 minutes
      min_gap_spacing_ms: 7200000     # 2 hours
      waking_hours_start: 7           # UTC
      waking_hours_end: 22            # UTC

    children:
      child-alpha:
        enabled: false
      child-beta:
        custom_config:
          min_daily_gaps: 3
          max_daily_gaps: 5

    seed_secret: change-me            # optional, never logged

    cache:
      backend: memory                 # memory | file
      cache_dir: ~/.cache/privacy-gaps

    debug: false
    verbose: false
    ```
"""

from __future__ import annotations

import functools
import os
import platform
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from privacy_gaps.utils.logging import get_logger

# Configure module logger - never log the seed secret
logger = get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

MS_PER_MINUTE = 60 * 1000
MS_PER_HOUR = 60 * MS_PER_MINUTE

# Hard cap on gaps in one schedule, independent of any configuration
MAX_GAPS_PER_SCHEDULE = 10

SCHEDULE_TTL_HOURS = 24

PRIVACY_GAPS_CONSTANTS: dict[str, Any] = {
    "MIN_GAP_DURATION_MS": 5 * MS_PER_MINUTE,
    "MAX_GAP_DURATION_MS": 15 * MS_PER_MINUTE,
    "MIN_DAILY_GAPS": 2,
    "MAX_DAILY_GAPS": 4,
    "MIN_GAP_SPACING_MS": 2 * MS_PER_HOUR,
    "WAKING_HOURS_START": 7,
    "WAKING_HOURS_END": 22,
    "MAX_GAPS_PER_SCHEDULE": MAX_GAPS_PER_SCHEDULE,
    "SCHEDULE_COLLECTION": "privacy-gap-schedules",
    "SCHEDULE_TTL_HOURS": SCHEDULE_TTL_HOURS,
}

DEFAULT_CONFIG_SEARCH_PATHS = (
    Path("./privacy-gaps.yaml"),
    Path("./privacy-gaps.yml"),
    Path.home() / ".privacy-gaps" / "config.yaml",
    Path.home() / ".privacy-gaps" / "config.yml",
)


def whole_minutes(ms: int) -> int:
    """Round a millisecond span up to whole minutes."""
    return -(-ms // MS_PER_MINUTE)


# =============================================================================
# Exceptions
# =============================================================================


class ConfigError(Exception):
    """Base exception for configuration errors.

    Raised when a configuration source exists but its values violate the
    privacy-gap bounds. All configuration-related exceptions inherit from
    this class.
    """

    pass


class ConfigFileError(ConfigError):
    """Exception raised for YAML config file issues.

    Raised when:
    - An explicitly requested config file does not exist
    - Config file exists but cannot be read
    - Config file contains malformed YAML or is not a mapping
    """

    pass


# =============================================================================
# Configuration Models
# =============================================================================


class PrivacyGapConfig(BaseModel):
    """Bounds for the per-child daily privacy-gap schedule.

    All hours are UTC. Durations and spacing are in milliseconds. Both the
    gap-count and gap-duration bounds are inclusive. Spacing is the minimum
    idle time between the end of one gap and the start of the next.

    The model is frozen and closed: unknown keys are rejected and an
    instance cannot be mutated after validation. camelCase keys
    (``minDailyGaps``) are accepted alongside snake_case so synced
    configuration blobs load unchanged.

    Attributes:
        enabled: Feature flag for the scheduled-gap path. Crisis suppression
            is never affected by this flag.
        min_daily_gaps: Fewest gaps per day.
        max_daily_gaps: Most gaps per day.
        min_gap_duration_ms: Shortest gap.
        max_gap_duration_ms: Longest gap.
        min_gap_spacing_ms: Minimum idle time between consecutive gaps.
        waking_hours_start: First hour (UTC) in which gaps may be placed.
        waking_hours_end: Hour (UTC) by which every gap has ended.

    Example:
        >>> PrivacyGapConfig(min_daily_gaps=5, max_daily_gaps=2)
        Traceback (most recent call last):
        ...
        pydantic_core._pydantic_core.ValidationError: ...
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    enabled: bool = Field(default=True, description="Scheduled-gap path feature flag.")
    min_daily_gaps: int = Field(
        default=PRIVACY_GAPS_CONSTANTS["MIN_DAILY_GAPS"], ge=0, description="Fewest gaps per day."
    )
    max_daily_gaps: int = Field(
        default=PRIVACY_GAPS_CONSTANTS["MAX_DAILY_GAPS"],
        ge=0,
        le=MAX_GAPS_PER_SCHEDULE,
        description="Most gaps per day.",
    )
    min_gap_duration_ms: int = Field(
        default=PRIVACY_GAPS_CONSTANTS["MIN_GAP_DURATION_MS"], gt=0, description="Shortest gap."
    )
    max_gap_duration_ms: int = Field(
        default=PRIVACY_GAPS_CONSTANTS["MAX_GAP_DURATION_MS"], gt=0, description="Longest gap."
    )
    min_gap_spacing_ms: int = Field(
        default=PRIVACY_GAPS_CONSTANTS["MIN_GAP_SPACING_MS"],
        ge=0,
        description="Minimum idle time between consecutive gaps.",
    )
    waking_hours_start: int = Field(
        default=PRIVACY_GAPS_CONSTANTS["WAKING_HOURS_START"],
        ge=0,
        le=23,
        description="First UTC hour in which gaps may start.",
    )
    waking_hours_end: int = Field(
        default=PRIVACY_GAPS_CONSTANTS["WAKING_HOURS_END"],
        ge=1,
        le=24,
        description="UTC hour by which every gap has ended.",
    )

    @model_validator(mode="after")
    def check_bounds(self) -> "PrivacyGapConfig":
        """Reject inverted bounds and schedules that cannot fit in waking hours."""
        if self.min_daily_gaps > self.max_daily_gaps:
            raise ValueError("min_daily_gaps must not exceed max_daily_gaps")
        if self.min_gap_duration_ms > self.max_gap_duration_ms:
            raise ValueError("min_gap_duration_ms must not exceed max_gap_duration_ms")
        if self.waking_hours_start >= self.waking_hours_end:
            raise ValueError("waking_hours_start must be before waking_hours_end")

        if self.max_daily_gaps > 0 and self.required_minutes(self.max_daily_gaps) >= self.window_minutes:
            raise ValueError(
                f"{self.max_daily_gaps} gaps of up to {self.max_gap_duration_ms}ms spaced "
                f"{self.min_gap_spacing_ms}ms apart do not fit inside waking hours "
                f"{self.waking_hours_start:02d}:00-{self.waking_hours_end:02d}:00 UTC"
            )
        return self

    @property
    def window_minutes(self) -> int:
        """Length of the waking-hours window in minutes."""
        return (self.waking_hours_end - self.waking_hours_start) * 60

    def required_minutes(self, gap_count: int) -> int:
        """Minutes reserved by ``gap_count`` maximum-length gaps and the spacing between them."""
        if gap_count <= 0:
            return 0
        return gap_count * whole_minutes(self.max_gap_duration_ms) + (
            gap_count - 1
        ) * whole_minutes(self.min_gap_spacing_ms)


DEFAULT_PRIVACY_GAP_CONFIG = PrivacyGapConfig()


class ChildPrivacyGapsConfig(BaseModel):
    """Per-child override of the household-wide privacy-gap configuration.

    Children without an override use the application default, which is
    enabled. ``enabled=False`` turns off only the scheduled-gap path for that
    child.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    enabled: bool = True
    custom_config: PrivacyGapConfig | None = None

    def resolve(self, base: PrivacyGapConfig) -> PrivacyGapConfig:
        """Return the effective config for this child given the household default."""
        effective = self.custom_config or base
        if not self.enabled and effective.enabled:
            return effective.model_copy(update={"enabled": False})
        return effective


def default_cache_dir() -> Path:
    """Get the platform-appropriate default schedule cache directory.

    Returns:
        - macOS: ~/Library/Caches/privacy-gaps
        - Linux: $XDG_CACHE_HOME/privacy-gaps or ~/.cache/privacy-gaps
        - Windows: %LOCALAPPDATA%/privacy-gaps/cache
    """
    system = platform.system().lower()

    if system == "darwin":
        return Path.home() / "Library" / "Caches" / "privacy-gaps"
    elif system == "windows":
        local_app_data = os.environ.get("LOCALAPPDATA")
        if local_app_data:
            return Path(local_app_data) / "privacy-gaps" / "cache"
        return Path.home() / "AppData" / "Local" / "privacy-gaps" / "cache"
    else:
        xdg_cache = os.environ.get("XDG_CACHE_HOME")
        if xdg_cache:
            return Path(xdg_cache) / "privacy-gaps"
        return Path.home() / ".cache" / "privacy-gaps"


class CacheConfig(BaseModel):
    """Where generated schedules are cached.

    Attributes:
        backend: ``memory`` keeps schedules for the life of the process,
            ``file`` keeps them in a private directory across restarts.
        cache_dir: Directory for the file backend. None = platform default.
    """

    backend: Literal["memory", "file"] = Field(default="memory", description="Schedule cache backend.")
    cache_dir: Path | None = Field(default=None, description="Directory for the file backend.")

    @field_validator("cache_dir", mode="before")
    @classmethod
    def expand_path(cls, v: Any) -> Any:
        """Expand ~ and resolve path."""
        if isinstance(v, (str, Path)):
            return Path(v).expanduser().resolve()
        return v

    @model_validator(mode="after")
    def resolve_default_dir(self) -> "CacheConfig":
        if self.cache_dir is None:
            object.__setattr__(self, "cache_dir", default_cache_dir())
        return self


class AppConfig(BaseSettings):
    """Top-level application configuration.

    Configuration priority (highest wins):
    1. Environment variables (PRIVACY_GAPS_*, nested with ``__``)
    2. Config file (YAML)
    3. In-code defaults

    Attributes:
        privacy_gaps: Household-wide gap bounds.
        children: Per-child overrides keyed by child id.
        seed_secret: Optional server-side secret for keyed seed derivation.
        cache: Schedule cache settings.
        debug: Enable debug logging.
        verbose: Enable verbose console output.

    Example:
        >>> cfg = AppConfig(children={"c1": {"enabled": False}})
        >>> cfg.gap_config_for("c1").enabled
        False
    """

    privacy_gaps: PrivacyGapConfig = Field(default_factory=PrivacyGapConfig)
    children: dict[str, ChildPrivacyGapsConfig] = Field(default_factory=dict)
    seed_secret: SecretStr | None = Field(default=None, description="Keyed seed derivation secret.")
    cache: CacheConfig = Field(default_factory=CacheConfig)
    debug: bool = Field(default=False, description="Enable debug mode.")
    verbose: bool = Field(default=False, description="Enable verbose output.")

    model_config = SettingsConfigDict(
        env_prefix="PRIVACY_GAPS_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment overrides values read from the config file.
        return env_settings, init_settings, file_secret_settings

    def gap_config_for(self, child_id: str) -> PrivacyGapConfig:
        """Return the effective privacy-gap config for one child."""
        override = self.children.get(child_id)
        if override is None:
            return self.privacy_gaps
        return override.resolve(self.privacy_gaps)


# =============================================================================
# Validation Helpers
# =============================================================================


def validate_privacy_gap_config(data: Any) -> PrivacyGapConfig:
    """Validate raw data as a ``PrivacyGapConfig``.

    Raises:
        ConfigError: If the data violates any bound.
    """
    if isinstance(data, PrivacyGapConfig):
        return data
    try:
        return PrivacyGapConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid privacy gap config: {e}") from e


def safe_parse_privacy_gap_config(data: Any) -> PrivacyGapConfig | None:
    """Like ``validate_privacy_gap_config`` but returns None instead of raising."""
    try:
        return validate_privacy_gap_config(data)
    except ConfigError:
        return None


def is_privacy_gaps_enabled(config: ChildPrivacyGapsConfig | PrivacyGapConfig | None) -> bool:
    """Whether gaps are enabled for a child. No override at all means enabled."""
    if config is None:
        return True
    return config.enabled


def is_gap_duration_valid(duration_ms: int, config: PrivacyGapConfig) -> bool:
    return config.min_gap_duration_ms <= duration_ms <= config.max_gap_duration_ms


def is_gap_count_valid(count: int, config: PrivacyGapConfig) -> bool:
    return config.min_daily_gaps <= count <= config.max_daily_gaps


def is_within_waking_hours(hour: int, config: PrivacyGapConfig) -> bool:
    """Check a UTC hour against the half-open waking-hours window."""
    return config.waking_hours_start <= hour < config.waking_hours_end


# =============================================================================
# Module-Level Functions
# =============================================================================


def _read_config_file(config_file: Path) -> dict[str, Any]:
    try:
        content = config_file.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigFileError(f"Failed to read config file {config_file}: {type(e).__name__}") from e

    if not content.strip():
        return {}

    try:
        loaded = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigFileError(f"Failed to parse config file {config_file}: {e}") from e

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigFileError(f"Config file {config_file} must contain a mapping at top level")
    return loaded


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from file, environment, and defaults.

    If no path is given the default locations are searched; finding no file
    there is not an error. Values that violate the privacy-gap bounds are
    always an error: the generator must never see an infeasible config.

    Args:
        path: Optional path to a YAML config file.

    Returns:
        Fully-populated AppConfig instance.

    Raises:
        ConfigFileError: If ``path`` does not exist, or a config file is
            unreadable or malformed.
        ConfigError: If any configured value is invalid.

    Example:
        >>> config = load_config()
        >>> config = load_config(Path("./privacy-gaps.yaml"))
    """
    config_data: dict[str, Any] = {}

    config_file: Path | None = None
    if path is not None:
        path = Path(path).expanduser()
        if not path.exists():
            raise ConfigFileError(f"Config file not found: {path}")
        config_file = path
    else:
        for search_path in DEFAULT_CONFIG_SEARCH_PATHS:
            if search_path.exists():
                config_file = search_path
                break

    if config_file is not None:
        config_data = _read_config_file(config_file)
        logger.debug(f"Loaded configuration from {config_file}")
    else:
        logger.debug("No config file found, using defaults and environment")

    try:
        app_config = AppConfig(**config_data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    if app_config.seed_secret is None:
        logger.debug("No seed secret configured; schedules use unkeyed seeds")

    return app_config


@functools.lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Get the cached configuration singleton.

    Returns:
        Cached AppConfig instance.
    """
    return load_config()


def reset_config() -> None:
    """Clear the configuration cache for testing."""
    get_config.cache_clear()
