"""Crisis resource allowlist and URL matching.

Visits to crisis resources (suicide prevention, abuse hotlines, LGBTQ+
support and similar) are never captured. ``is_crisis_url`` is the default
predicate handed to the capture suppression detector.

Matching is by host only. A URL matches an entry when its host equals the
entry's domain or one of its aliases, or is a subdomain of a wildcard
pattern. Lookalikes never match: ``988lifeline.com`` and
``fake988lifeline.org`` are not ``988lifeline.org``.

Nothing in this module logs a URL or a match result.

Example:
    >>> is_crisis_url("https://www.988lifeline.org/get-help")
    True
    >>> is_crisis_url("https://fake988lifeline.org")
    False
"""

from __future__ import annotations

import functools
import json
from pathlib import Path
from typing import Any, Callable, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from privacy_gaps.config import ConfigError, ConfigFileError

CrisisPredicate = Callable[[str], bool]


# =============================================================================
# Models
# =============================================================================


class CrisisResource(BaseModel):
    """One crisis resource and the hosts it is reachable on.

    Attributes:
        id: Stable identifier.
        domain: Primary host, lowercase, without ``www.``.
        name: Display name.
        category: Resource category (``suicide``, ``abuse`` ...).
        description: Short description for display.
        aliases: Other hosts that belong to the same resource.
        wildcard_patterns: ``*.domain`` patterns whose subdomains match.
        regions: Region codes served (``us``, ``uk``, ``global`` ...).
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    domain: str
    name: str
    category: str
    description: str = ""
    aliases: tuple[str, ...] = ()
    wildcard_patterns: tuple[str, ...] = ()
    regions: tuple[str, ...] = ("global",)

    @field_validator("domain")
    @classmethod
    def normalize_domain(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("aliases", "wildcard_patterns")
    @classmethod
    def normalize_hosts(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(host.strip().lower() for host in v)

    def matches_host(self, host: str) -> bool:
        """Whether an already-normalized host belongs to this resource."""
        if host == self.domain or host in self.aliases:
            return True
        for pattern in self.wildcard_patterns:
            if pattern.startswith("*."):
                suffix = pattern[1:]
                if host.endswith(suffix) and len(host) > len(suffix):
                    return True
        return False


class CrisisAllowlist(BaseModel):
    """Versioned collection of crisis resources."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    version: str
    last_updated: str
    entries: tuple[CrisisResource, ...] = Field(default=())

    def find(self, url_or_host: Optional[str]) -> CrisisResource | None:
        """Return the entry a URL or host belongs to, or None."""
        if not url_or_host:
            return None
        host = extract_domain(url_or_host)
        if not host:
            return None
        for entry in self.entries:
            if entry.matches_host(host):
                return entry
        return None

    def matches(self, url: Optional[str]) -> bool:
        return self.find(url) is not None

    def by_category(self, category: str) -> list[CrisisResource]:
        return [entry for entry in self.entries if entry.category == category]

    def by_region(self, region: str) -> list[CrisisResource]:
        region = region.lower()
        return [entry for entry in self.entries if region in entry.regions]

    @property
    def categories(self) -> list[str]:
        return sorted({entry.category for entry in self.entries})


# =============================================================================
# Bundled Allowlist
# =============================================================================

_BUNDLED_ALLOWLIST: dict[str, Any] = {
    "version": "1.0.0",
    "last_updated": "2025-12-01",
    "entries": [
        {
            "id": "988-lifeline",
            "domain": "988lifeline.org",
            "name": "988 Suicide & Crisis Lifeline",
            "category": "suicide",
            "description": "Free, confidential support for people in distress, 24/7.",
            "aliases": ["suicidepreventionlifeline.org"],
            "wildcard_patterns": ["*.988lifeline.org"],
            "regions": ["us"],
        },
        {
            "id": "crisis-text-line",
            "domain": "crisistextline.org",
            "name": "Crisis Text Line",
            "category": "crisis",
            "description": "Text HOME to 741741 to reach a crisis counselor.",
            "wildcard_patterns": ["*.crisistextline.org"],
            "regions": ["us", "uk", "ca", "ie"],
        },
        {
            "id": "rainn",
            "domain": "rainn.org",
            "name": "RAINN",
            "category": "abuse",
            "description": "National Sexual Assault Hotline.",
            "aliases": ["hotline.rainn.org"],
            "wildcard_patterns": ["*.rainn.org"],
            "regions": ["us"],
        },
        {
            "id": "trevor-project",
            "domain": "thetrevorproject.org",
            "name": "The Trevor Project",
            "category": "lgbtq",
            "description": "Crisis support for LGBTQ+ young people.",
            "aliases": ["thetrevoproject.org"],
            "wildcard_patterns": ["*.thetrevorproject.org"],
            "regions": ["us"],
        },
        {
            "id": "childhelp",
            "domain": "childhelp.org",
            "name": "Childhelp National Child Abuse Hotline",
            "category": "abuse",
            "description": "Support for children and adults concerned about child abuse.",
            "aliases": ["childhelphotline.org"],
            "wildcard_patterns": ["*.childhelp.org"],
            "regions": ["us", "ca"],
        },
        {
            "id": "domestic-violence-hotline",
            "domain": "thehotline.org",
            "name": "National Domestic Violence Hotline",
            "category": "domestic_violence",
            "description": "Confidential support for anyone affected by relationship abuse.",
            "wildcard_patterns": ["*.thehotline.org"],
            "regions": ["us"],
        },
        {
            "id": "samaritans",
            "domain": "samaritans.org",
            "name": "Samaritans",
            "category": "suicide",
            "description": "Emotional support for anyone struggling to cope.",
            "wildcard_patterns": ["*.samaritans.org"],
            "regions": ["uk", "ie"],
        },
        {
            "id": "kids-help-phone",
            "domain": "kidshelpphone.ca",
            "name": "Kids Help Phone",
            "category": "crisis",
            "description": "Counselling and support for young people in Canada.",
            "wildcard_patterns": ["*.kidshelpphone.ca"],
            "regions": ["ca"],
        },
        {
            "id": "lifeline-australia",
            "domain": "lifeline.org.au",
            "name": "Lifeline Australia",
            "category": "suicide",
            "description": "Crisis support and suicide prevention in Australia.",
            "wildcard_patterns": ["*.lifeline.org.au"],
            "regions": ["au"],
        },
        {
            "id": "childline-uk",
            "domain": "childline.org.uk",
            "name": "Childline",
            "category": "crisis",
            "description": "Free, private support for children and young people in the UK.",
            "wildcard_patterns": ["*.childline.org.uk"],
            "regions": ["uk"],
        },
    ],
}


# =============================================================================
# Module-Level Functions
# =============================================================================


def extract_domain(url: str) -> str:
    """Reduce a URL or bare host to a lowercase host without ``www.``.

    Strips the scheme, any ``//`` prefix, credentials, path, query,
    fragment and port.

    Example:
        >>> extract_domain("https://WWW.Example.org:443/path?q=1#top")
        'example.org'
    """
    host = url.strip().lower()
    if "://" in host:
        host = host.split("://", 1)[1]
    elif host.startswith("//"):
        host = host[2:]

    for separator in ("/", "?", "#"):
        host = host.split(separator, 1)[0]
    host = host.rsplit("@", 1)[-1]
    host = host.split(":", 1)[0].rstrip(".")

    if host.startswith("www."):
        host = host[4:]
    return host


@functools.lru_cache(maxsize=1)
def get_crisis_allowlist() -> CrisisAllowlist:
    """Return the bundled allowlist, parsed once."""
    return CrisisAllowlist.model_validate(_BUNDLED_ALLOWLIST)


def load_crisis_allowlist(path: Path) -> CrisisAllowlist:
    """Load an allowlist from a JSON or YAML file.

    Raises:
        ConfigFileError: If the file is missing, unreadable or malformed.
        ConfigError: If the file parses but is not a valid allowlist.
    """
    path = Path(path).expanduser()
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigFileError(f"Failed to read crisis allowlist {path}: {type(e).__name__}") from e

    try:
        if path.suffix.lower() == ".json":
            data = json.loads(content)
        else:
            data = yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigFileError(f"Failed to parse crisis allowlist {path}: {e}") from e

    try:
        return CrisisAllowlist.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid crisis allowlist {path}: {e}") from e


def get_crisis_resource_by_domain(url_or_host: Optional[str]) -> CrisisResource | None:
    return get_crisis_allowlist().find(url_or_host)


def is_crisis_url(url: Optional[str]) -> bool:
    """Whether ``url`` belongs to a resource on the bundled allowlist.

    Empty and None inputs are never crisis URLs.
    """
    return get_crisis_allowlist().matches(url)


def crisis_predicate(allowlist: CrisisAllowlist) -> CrisisPredicate:
    """Build a detector predicate bound to a specific allowlist."""
    return allowlist.matches


def with_fallback(predicate: CrisisPredicate, default: bool = False) -> CrisisPredicate:
    """Wrap a predicate so that an exception yields ``default`` instead.

    The caller picks the degradation policy. ``default=True`` suppresses
    every capture while the allowlist cannot be consulted; the default of
    False leaves only scheduled gaps in effect.
    """

    def guarded(url: str) -> bool:
        try:
            return bool(predicate(url))
        except Exception:
            return default

    return guarded
