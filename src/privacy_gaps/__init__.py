"""
Privacy Gaps

Scheduled, irregular capture-free windows for child monitoring, combined
with crisis-resource suppression so that no gap in a capture record can be
traced back to why it happened.
"""

__version__ = "1.0.0"

from privacy_gaps.config import (
    DEFAULT_PRIVACY_GAP_CONFIG,
    AppConfig,
    ConfigError,
    PrivacyGapConfig,
    get_config,
    load_config,
)
from privacy_gaps.core import (
    CaptureSuppressResult,
    Gap,
    GapSchedule,
    PrivacyGapDetector,
    create_detector_from_config,
    create_privacy_gap_detector,
    generate_daily_gap_schedule,
)
from privacy_gaps.crisis import is_crisis_url

__all__ = [
    "__version__",
    "AppConfig",
    "CaptureSuppressResult",
    "ConfigError",
    "DEFAULT_PRIVACY_GAP_CONFIG",
    "Gap",
    "GapSchedule",
    "PrivacyGapConfig",
    "PrivacyGapDetector",
    "create_detector_from_config",
    "create_privacy_gap_detector",
    "generate_daily_gap_schedule",
    "get_config",
    "is_crisis_url",
    "load_config",
]
