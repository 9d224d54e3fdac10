"""
Data model for per-domain client-side storage inventories.

This module defines the records produced by the samplers and merged by the
collection coordinator:

  - StorageClassMetric / KeyValueMetric: count and estimated size of one
    storage class on one domain.
  - OriginSample: what one origin reported during a scan.
  - Cookie / CookieAggregate / CookieStatistics: the global cookie scan.
  - DomainRecord: the canonical merged record, one per hostname.

All counters only ever grow through ``add``/``merge_*``; merging is additive so
the order in which samples arrive does not change the final record.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

# Storage classes in canonical order; used for iteration everywhere.
STORAGE_CLASSES: Tuple[str, ...] = ("local", "session", "indexed", "cache", "cookies")

# Per-entry size buckets for key/value stores and cookies.
SIZE_BUCKETS: Tuple[str, ...] = ("lt1k", "lt10k", "lt100k", "gte100k")

# Entries strictly larger than this are counted as "large keys".
LARGE_KEY_THRESHOLD = 100 * 1024


def size_bucket(size: int) -> str:
    """Brief: Classify a per-entry size into one of SIZE_BUCKETS.

    Inputs:
      - size: Estimated entry size in characters/bytes.

    Outputs:
      - str bucket name.

    Example:
      >>> size_bucket(10), size_bucket(2048), size_bucket(50_000), size_bucket(200_000)
      ('lt1k', 'lt10k', 'lt100k', 'gte100k')
    """

    if size < 1024:
        return "lt1k"
    if size < 10240:
        return "lt10k"
    if size < 102400:
        return "lt100k"
    return "gte100k"


def empty_buckets() -> Dict[str, int]:
    """Return a fresh zeroed size-bucket mapping."""
    return {name: 0 for name in SIZE_BUCKETS}


@dataclass
class StorageClassMetric:
    """Count and estimated size of one storage class on one domain."""

    count: int = 0
    size: int = 0

    def add(self, other: "StorageClassMetric") -> None:
        """Accumulate another metric of the same class into this one."""
        self.count += max(0, int(other.count))
        self.size += max(0, int(other.size))

    def to_dict(self) -> Dict[str, Any]:
        return {"count": self.count, "size": self.size}


@dataclass
class KeyValueMetric(StorageClassMetric):
    """
    Metric for the Local/Session key/value stores.

    On top of count/size this tracks how entry sizes are distributed, how many
    values failed to parse as JSON and how many single entries exceed
    LARGE_KEY_THRESHOLD.
    """

    size_buckets: Dict[str, int] = field(default_factory=empty_buckets)
    json_parse_failures: int = 0
    large_key_count: int = 0

    def record_entry(self, key: str, value: str) -> int:
        """Brief: Account for a single key/value entry.

        Inputs:
          - key: Entry key.
          - value: Entry value (raw string as stored).

        Outputs:
          - int: Estimated entry size (len(key) + len(value)).
        """

        entry_size = len(key or "") + len(value or "")
        self.count += 1
        self.size += entry_size
        self.size_buckets[size_bucket(entry_size)] += 1
        if entry_size > LARGE_KEY_THRESHOLD:
            self.large_key_count += 1
        return entry_size

    def add(self, other: StorageClassMetric) -> None:
        super().add(other)
        if isinstance(other, KeyValueMetric):
            for name in SIZE_BUCKETS:
                self.size_buckets[name] += max(0, int(other.size_buckets.get(name, 0)))
            self.json_parse_failures += max(0, int(other.json_parse_failures))
            self.large_key_count += max(0, int(other.large_key_count))

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        out["size_buckets"] = dict(self.size_buckets)
        out["json_parse_failures"] = self.json_parse_failures
        out["large_key_count"] = self.large_key_count
        return out


class CookieAggregate(StorageClassMetric):
    """Per-registrable-domain cookie count and summed name+value length."""


@dataclass(frozen=True)
class Capabilities:
    """Brief: Which optional storage APIs an execution context exposes.

    Decided once per context by the host binding; the origin sampler consults
    these flags instead of probing APIs while it samples.
    """

    has_structured_db: bool = False
    has_cache_buckets: bool = False


@dataclass
class OriginSample:
    """One origin's contribution to a scan cycle."""

    hostname: str
    origin: str = ""
    local: KeyValueMetric = field(default_factory=KeyValueMetric)
    session: KeyValueMetric = field(default_factory=KeyValueMetric)
    indexed: StorageClassMetric = field(default_factory=StorageClassMetric)
    cache: StorageClassMetric = field(default_factory=StorageClassMetric)
    database_names: List[str] = field(default_factory=list)
    cache_names: List[str] = field(default_factory=list)


_SAME_SITE_ALIASES = {
    "strict": "strict",
    "lax": "lax",
    "none": "none",
    "no_restriction": "none",
}


def normalize_same_site(value: Optional[str]) -> str:
    """Brief: Map host SameSite spellings onto strict/lax/none/unspecified.

    Inputs:
      - value: Raw SameSite value (e.g. "Lax", "no_restriction", None).

    Outputs:
      - str: One of "strict", "lax", "none", "unspecified".
    """

    if not value:
        return "unspecified"
    return _SAME_SITE_ALIASES.get(str(value).strip().lower(), "unspecified")


@dataclass(frozen=True)
class Cookie:
    """A cookie as reported by the host's global cookie listing."""

    name: str
    value: str = ""
    domain: str = ""
    path: str = "/"
    secure: bool = False
    http_only: bool = False
    same_site: Optional[str] = None
    expiration_date: Optional[float] = None

    @property
    def size(self) -> int:
        return len(self.name or "") + len(self.value or "")

    @property
    def registrable_domain(self) -> str:
        """Cookie domain with a single leading dot removed, lowercased."""
        domain = (self.domain or "").strip().lower()
        if domain.startswith("."):
            domain = domain[1:]
        return domain

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Cookie":
        """Brief: Build a Cookie from a host/browser cookie mapping.

        Inputs:
          - data: Mapping using either browser-extension keys (httpOnly,
            sameSite, expirationDate) or Playwright storage-state keys
            (httpOnly, sameSite, expires with -1 meaning session cookie).

        Outputs:
          - Cookie instance.
        """

        expiration = data.get("expirationDate", data.get("expiration_date"))
        if expiration is None and "expires" in data:
            expiration = data.get("expires")
        if expiration is not None:
            try:
                expiration = float(expiration)
            except (TypeError, ValueError):
                expiration = None
        # Playwright encodes session cookies as expires=-1.
        if expiration is not None and expiration < 0 and "expires" in data:
            expiration = None

        return cls(
            name=str(data.get("name") or ""),
            value=str(data.get("value") or ""),
            domain=str(data.get("domain") or ""),
            path=str(data.get("path") or "/"),
            secure=bool(data.get("secure", False)),
            http_only=bool(data.get("httpOnly", data.get("http_only", False))),
            same_site=data.get("sameSite", data.get("same_site")),
            expiration_date=expiration,
        )


@dataclass
class CookieStatistics:
    """Global cookie classification produced alongside the per-domain aggregates."""

    size_buckets: Dict[str, int] = field(default_factory=empty_buckets)
    security: Dict[str, int] = field(
        default_factory=lambda: {
            "secure": 0,
            "insecure": 0,
            "http_only": 0,
            "not_http_only": 0,
            "same_site_strict": 0,
            "same_site_lax": 0,
            "same_site_none": 0,
            "same_site_unspecified": 0,
        }
    )
    expiry: Dict[str, int] = field(
        default_factory=lambda: {
            "expired": 0,
            "lt7d": 0,
            "lt30d": 0,
            "mid": 0,
            "gt180d": 0,
            "no_expiry": 0,
        }
    )
    expiring_soon_by_domain: Dict[str, int] = field(default_factory=dict)
    insecure_by_domain: Dict[str, int] = field(default_factory=dict)
    expired_by_domain: Dict[str, int] = field(default_factory=dict)
    security_combinations: Dict[str, int] = field(
        default_factory=lambda: {
            f"{sec}_{http}_{site}": 0
            for sec in ("secure", "insecure")
            for http in ("http_only", "not_http_only")
            for site in ("strict", "lax", "none")
        }
    )


@dataclass
class DomainRecord:
    """
    Canonical merged storage record for one hostname.

    Created on first observation of a hostname by either sampler and mutated
    only by the merge step of a single collection cycle.
    """

    domain: str
    local: KeyValueMetric = field(default_factory=KeyValueMetric)
    session: KeyValueMetric = field(default_factory=KeyValueMetric)
    indexed: StorageClassMetric = field(default_factory=StorageClassMetric)
    cache: StorageClassMetric = field(default_factory=StorageClassMetric)
    cookies: StorageClassMetric = field(default_factory=StorageClassMetric)

    def __post_init__(self) -> None:
        if not self.domain:
            raise ValueError("DomainRecord.domain must be a non-empty hostname")

    def classes(self) -> Dict[str, StorageClassMetric]:
        """Return the five storage class metrics keyed by STORAGE_CLASSES."""
        return {
            "local": self.local,
            "session": self.session,
            "indexed": self.indexed,
            "cache": self.cache,
            "cookies": self.cookies,
        }

    @property
    def total_size(self) -> int:
        return sum(m.size for m in self.classes().values())

    @property
    def total_items(self) -> int:
        return sum(m.count for m in self.classes().values())

    def used_classes(self) -> Tuple[str, ...]:
        """Names of storage classes with at least one item on this domain."""
        return tuple(name for name, m in self.classes().items() if m.count > 0)

    def merge_origin_sample(self, sample: OriginSample) -> None:
        self.local.add(sample.local)
        self.session.add(sample.session)
        self.indexed.add(sample.indexed)
        self.cache.add(sample.cache)

    def merge_cookies(self, aggregate: StorageClassMetric) -> None:
        self.cookies.add(aggregate)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"domain": self.domain}
        for name, metric in self.classes().items():
            out[name] = metric.to_dict()
        out["total_size"] = self.total_size
        out["total_items"] = self.total_items
        return out
