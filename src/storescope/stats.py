"""
Descriptive statistics over one collection cycle's merged domain records.

This module turns the ``{hostname: DomainRecord}`` map (plus the cookie-side
CookieStatistics) into a single immutable Statistics snapshot: size
distributions, Pareto concentration, per-class averages and quartiles,
TLD/length segmentation, storage-class combinations, cookie security and
expiry breakdowns, and top-N quality/security rankings.
"""

from __future__ import annotations

import csv
import importlib.metadata as importlib_metadata
import io
import json
import logging
import math
import socket
import time
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, NamedTuple, Optional, Sequence, Tuple

from .models import (
    SIZE_BUCKETS,
    STORAGE_CLASSES,
    CookieStatistics,
    DomainRecord,
    empty_buckets,
)

logger = logging.getLogger(__name__)


try:
    STORESCOPE_VERSION = importlib_metadata.version("storescope")
except importlib_metadata.PackageNotFoundError:  # pragma: no cover - source checkout
    STORESCOPE_VERSION = "unknown"


HISTOGRAM_BINS = 10
TOP_SHARE_SIZES = (10, 20, 50)


class ConcentrationPoint(NamedTuple):
    domain: str
    size: int
    cumulative_ratio: float
    rank: int


class TLDEntry(NamedTuple):
    tld: str
    count: int
    size: int


class RankingEntry(NamedTuple):
    domain: str
    count: int


class JsonFailureEntry(NamedTuple):
    domain: str
    fail_count: int
    fail_rate: float


class SizeSummary(NamedTuple):
    min: int
    max: int
    avg: float
    median: int


class Quartiles(NamedTuple):
    min: int
    q1: int
    median: int
    q3: int
    max: int


@dataclass(frozen=True)
class Statistics:
    """
    Immutable per-cycle statistics snapshot.

    Inputs (constructor):
        All fields provided by compute_statistics().

    Outputs:
        Statistics instance. Sequences are tuples and mappings are read-only
        copies (nested ones included), so neither later mutation of the source
        records nor callers can change the snapshot.
    """

    domain_count: int
    total_size: int
    total_items: int
    size_buckets: Dict[str, Dict[str, int]]
    cookie_security_breakdown: Dict[str, int]
    cookie_expiry_breakdown: Dict[str, int]
    expiring_soon_by_domain: Dict[str, int]
    avg_item_size_by_class: Dict[str, float]
    concentration_curve: Tuple[ConcentrationPoint, ...]
    size_histogram: Tuple[int, ...]
    item_count_histogram: Tuple[int, ...]
    storage_class_usage_counts: Dict[str, int]
    domain_storage_preference: Dict[str, int]
    tld_breakdown: Tuple[TLDEntry, ...]
    domain_length_buckets: Dict[str, int]
    storage_combination_counts: Dict[str, int]
    insecure_cookie_domains: Tuple[RankingEntry, ...]
    expired_cookie_domains: Tuple[RankingEntry, ...]
    security_attribute_combination_counts: Dict[str, int]
    json_failure_ranking: Tuple[JsonFailureEntry, ...]
    large_key_ranking: Tuple[RankingEntry, ...]
    size_summary: SizeSummary
    class_quartiles: Dict[str, Quartiles] = field(default_factory=dict)
    quality: Dict[str, int] = field(default_factory=dict)
    domain_sizes: Tuple[int, ...] = ()
    density_histogram: Tuple[int, ...] = ()
    top_domain_shares: Dict[int, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Mapping):
                object.__setattr__(self, f.name, _freeze(value))

    def to_dict(self) -> Dict[str, Any]:
        """Brief: Convert to plain JSON-friendly structures.

        Inputs:
          - None.

        Outputs:
          - dict with named tuples expanded into mappings.
        """

        return {f.name: _plain(getattr(self, f.name)) for f in fields(self)}


def _freeze(mapping: Mapping) -> Mapping:
    return MappingProxyType(
        {k: _freeze(v) if isinstance(v, Mapping) else v for k, v in mapping.items()}
    )


def _plain(value: Any) -> Any:
    if hasattr(value, "_asdict"):
        return {k: _plain(v) for k, v in value._asdict().items()}
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def histogram(values: Sequence[float], bins: int = HISTOGRAM_BINS) -> Tuple[int, ...]:
    """
    Equal-width histogram over ``[0, max(values)]``.

    Inputs:
        values: Non-negative sample values.
        bins: Number of bins (default 10).

    Outputs:
        Tuple of ``bins`` counts summing to ``len(values)``.

    The observed maximum is the binning ceiling (clamped to at least 1) and the
    maximum value itself lands in the last bin.

    Example:
        >>> histogram([0, 5, 10])
        (1, 0, 0, 0, 0, 1, 0, 0, 0, 1)
    """
    counts = [0] * bins
    ceiling = max(max(values, default=0), 1)
    for v in values:
        idx = min(int(math.floor((v / ceiling) * bins)), bins - 1)
        counts[max(idx, 0)] += 1
    return tuple(counts)


def concentration_curve(records: Sequence[DomainRecord]) -> Tuple[ConcentrationPoint, ...]:
    """Brief: Rank domains by total size and compute cumulative share.

    Inputs:
      - records: Domain records in map order.

    Outputs:
      - Tuple of ConcentrationPoint sorted descending by size (stable for
        ties). cumulative_ratio is 0.0 throughout when the grand total is 0.
    """

    ranked = sorted(records, key=lambda r: r.total_size, reverse=True)
    grand_total = sum(r.total_size for r in ranked)
    points: List[ConcentrationPoint] = []
    running = 0
    for rank, rec in enumerate(ranked, start=1):
        size = rec.total_size
        running += size
        ratio = running / grand_total if grand_total > 0 else 0.0
        points.append(ConcentrationPoint(rec.domain, size, ratio, rank))
    return tuple(points)


def top_share(curve: Sequence[ConcentrationPoint], n: int) -> float:
    """Brief: Share of total size held by the top ``n`` domains.

    Inputs:
      - curve: Concentration curve (descending by size).
      - n: Number of leading domains.

    Outputs:
      - float in [0, 1]; 0.0 when the total is 0.

    Example:
      >>> pts = (ConcentrationPoint("a", 75, 0.75, 1), ConcentrationPoint("b", 25, 1.0, 2))
      >>> top_share(pts, 1)
      0.75
    """

    total = sum(p.size for p in curve)
    if total <= 0:
        return 0.0
    return sum(p.size for p in curve[: max(0, n)]) / total


def quartiles(values: Iterable[int]) -> Quartiles:
    """Brief: min/q1/median/q3/max using floor(n * p) indexing into sorted values."""

    ordered = sorted(values)
    if not ordered:
        return Quartiles(0, 0, 0, 0, 0)
    n = len(ordered)
    return Quartiles(
        ordered[0],
        ordered[int(n * 0.25)],
        ordered[int(n * 0.5)],
        ordered[int(n * 0.75)],
        ordered[-1],
    )


def size_summary(sizes: Sequence[int]) -> SizeSummary:
    if not sizes:
        return SizeSummary(0, 0, 0.0, 0)
    ordered = sorted(sizes)
    return SizeSummary(
        ordered[0],
        ordered[-1],
        sum(ordered) / len(ordered),
        ordered[len(ordered) // 2],
    )


def tld_of(domain: str) -> str:
    """Last dot-separated label, or "other" for single-label hostnames."""
    parts = domain.split(".")
    return parts[-1] if len(parts) > 1 else "other"


def length_bucket(domain: str) -> str:
    n = len(domain)
    if n < 10:
        return "short"
    if n < 20:
        return "medium"
    if n < 30:
        return "long"
    return "very_long"


def storage_combination(record: DomainRecord) -> str:
    """
    Classify which storage classes a domain uses into six exclusive buckets.

    Inputs:
        record: DomainRecord.

    Outputs:
        "none", "local_only", "cookies_only", "local_and_cookies", "all", or
        "other".
    """
    used = set(record.used_classes())
    if not used:
        return "none"
    if used == {"local"}:
        return "local_only"
    if used == {"cookies"}:
        return "cookies_only"
    if used == {"local", "cookies"}:
        return "local_and_cookies"
    if used == set(STORAGE_CLASSES):
        return "all"
    return "other"


def _top_counts(counts: Mapping[str, int], top_n: int) -> Tuple[RankingEntry, ...]:
    ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
    return tuple(RankingEntry(d, c) for d, c in ranked[:top_n] if c > 0)


def compute_statistics(
    records: Mapping[str, DomainRecord],
    cookie_stats: Optional[CookieStatistics] = None,
    top_n: int = 10,
) -> Statistics:
    """
    Build the Statistics snapshot for one collection cycle.

    Inputs:
        records: Merged ``{hostname: DomainRecord}`` map.
        cookie_stats: CookieStatistics from the cookie sampler (zeros if None).
        top_n: Length of every ranking list (default 10).

    Outputs:
        Statistics

    Example:
        >>> from storescope.models import DomainRecord
        >>> rec = DomainRecord("a.example.com")
        >>> rec.local.count, rec.local.size = 5, 100
        >>> stats = compute_statistics({rec.domain: rec})
        >>> stats.size_summary.max, stats.avg_item_size_by_class["local"]
        (100, 20.0)
    """
    cookie_stats = cookie_stats or CookieStatistics()
    top_n = max(0, int(top_n))
    domains: List[DomainRecord] = list(records.values())

    sizes = [r.total_size for r in domains]
    items = [r.total_items for r in domains]

    curve = concentration_curve(domains)

    sums = {
        name: (
            sum(r.classes()[name].size for r in domains),
            sum(r.classes()[name].count for r in domains),
        )
        for name in STORAGE_CLASSES
    }
    avg_item_size = {
        name: size_total / max(count_total, 1)
        for name, (size_total, count_total) in sums.items()
    }

    usage = {
        name: sum(1 for r in domains if r.classes()[name].count > 0)
        for name in STORAGE_CLASSES
    }

    preference = {"local_only": 0, "cookies_only": 0, "mixed": 0}
    combinations = {
        "none": 0,
        "local_only": 0,
        "cookies_only": 0,
        "local_and_cookies": 0,
        "all": 0,
        "other": 0,
    }
    length_buckets = {"short": 0, "medium": 0, "long": 0, "very_long": 0}
    tlds: Dict[str, List[int]] = {}
    buckets = {"local": empty_buckets(), "session": empty_buckets()}
    quality = {
        "local_json_failures": 0,
        "session_json_failures": 0,
        "local_large_keys": 0,
        "session_large_keys": 0,
    }

    for rec, total in zip(domains, sizes):
        combo = storage_combination(rec)
        combinations[combo] += 1
        if combo in ("local_only", "cookies_only"):
            preference[combo] += 1
        elif len(rec.used_classes()) > 1:
            preference["mixed"] += 1

        length_buckets[length_bucket(rec.domain)] += 1

        entry = tlds.setdefault(tld_of(rec.domain), [0, 0])
        entry[0] += 1
        entry[1] += total

        for name in SIZE_BUCKETS:
            buckets["local"][name] += rec.local.size_buckets.get(name, 0)
            buckets["session"][name] += rec.session.size_buckets.get(name, 0)

        quality["local_json_failures"] += rec.local.json_parse_failures
        quality["session_json_failures"] += rec.session.json_parse_failures
        quality["local_large_keys"] += rec.local.large_key_count
        quality["session_large_keys"] += rec.session.large_key_count

    buckets["cookies"] = dict(cookie_stats.size_buckets)

    tld_breakdown = sorted(
        (TLDEntry(tld, c, s) for tld, (c, s) in tlds.items()),
        key=lambda e: e.size,
        reverse=True,
    )

    json_failures = []
    for rec in domains:
        kv_items = rec.local.count + rec.session.count
        fail_count = rec.local.json_parse_failures + rec.session.json_parse_failures
        if kv_items > 0 and fail_count > 0:
            json_failures.append(
                JsonFailureEntry(rec.domain, fail_count, fail_count / kv_items)
            )
    json_failures.sort(key=lambda e: e.fail_count, reverse=True)

    large_keys = [
        RankingEntry(r.domain, r.local.large_key_count + r.session.large_key_count)
        for r in domains
    ]
    large_keys = [e for e in large_keys if e.count > 0]
    large_keys.sort(key=lambda e: e.count, reverse=True)

    densities = [s / n for s, n in zip(sizes, items) if n > 0 and s > 0]

    stats = Statistics(
        domain_count=len(domains),
        total_size=sum(sizes),
        total_items=sum(items),
        size_buckets=buckets,
        cookie_security_breakdown=dict(cookie_stats.security),
        cookie_expiry_breakdown=dict(cookie_stats.expiry),
        expiring_soon_by_domain=dict(cookie_stats.expiring_soon_by_domain),
        avg_item_size_by_class=avg_item_size,
        concentration_curve=curve,
        size_histogram=histogram(sizes),
        item_count_histogram=histogram(items),
        storage_class_usage_counts=usage,
        domain_storage_preference=preference,
        tld_breakdown=tuple(tld_breakdown),
        domain_length_buckets=length_buckets,
        storage_combination_counts=combinations,
        insecure_cookie_domains=_top_counts(cookie_stats.insecure_by_domain, top_n),
        expired_cookie_domains=_top_counts(cookie_stats.expired_by_domain, top_n),
        security_attribute_combination_counts=dict(cookie_stats.security_combinations),
        json_failure_ranking=tuple(json_failures[:top_n]),
        large_key_ranking=tuple(large_keys[:top_n]),
        size_summary=size_summary(sizes),
        class_quartiles={
            name: quartiles(
                r.classes()[name].size for r in domains if r.classes()[name].size > 0
            )
            for name in STORAGE_CLASSES
        },
        quality=quality,
        domain_sizes=tuple(sizes),
        density_histogram=histogram(densities),
        top_domain_shares={n: top_share(curve, n) for n in TOP_SHARE_SIZES},
    )
    logger.debug(
        "Computed statistics for %d domains (total %d bytes)",
        stats.domain_count,
        stats.total_size,
    )
    return stats


def format_bytes(num: float) -> str:
    """
    Human-readable byte size.

    Inputs:
        num: Byte count (negative or non-numeric input renders as "0 B").

    Outputs:
        String like "512 B", "1.5 KB", "12 MB".

    Example:
        >>> format_bytes(1536)
        '1.5 KB'
    """
    try:
        value = float(num)
    except (TypeError, ValueError):
        return "0 B"
    if math.isnan(value) or value <= 0:
        return "0 B"
    units = ("B", "KB", "MB", "GB", "TB")
    idx = 0
    scaled = value
    while scaled >= 1024 and idx < len(units) - 1:
        scaled /= 1024
        idx += 1
    if scaled >= 10:
        return f"{scaled:.0f} {units[idx]}"
    return f"{scaled:.1f} {units[idx]}"


def format_report_json(
    domains: Sequence[DomainRecord], stats: Statistics, created_at: Optional[float] = None
) -> str:
    """Format a collection result as single-line JSON with meta information.

    Inputs:
        domains: Records sorted by total size (as returned by collect()).
        stats: Statistics snapshot for the same cycle.
        created_at: Optional epoch seconds for the timestamp (default now).

    Outputs:
        JSON string (single line, no trailing newline).

    Empty mapping/sequence sections of the statistics are omitted to keep the
    output compact. A top-level "meta" object carries timestamp, hostname and
    version.
    """
    ts = datetime.fromtimestamp(
        created_at if created_at is not None else time.time(), tz=timezone.utc
    ).isoformat()

    try:
        hostname = socket.gethostname()
    except OSError:  # pragma: no cover - environment specific
        hostname = "unknown-host"

    stats_out: Dict[str, Any] = {}
    for key, value in stats.to_dict().items():
        if isinstance(value, (dict, list)) and not value:
            continue
        stats_out[key] = value

    output: Dict[str, Any] = {
        "ts": ts,
        "meta": {"timestamp": ts, "hostname": hostname, "version": STORESCOPE_VERSION},
        "domains": [d.to_dict() for d in domains],
        "stats": stats_out,
    }
    return json.dumps(output, separators=(",", ":"))


CSV_COLUMNS = (
    "domain",
    "local_count",
    "local_size",
    "session_count",
    "session_size",
    "indexed_count",
    "indexed_size",
    "cache_count",
    "cache_size",
    "cookies_count",
    "cookies_size",
    "total_size",
    "total_size_human",
)


def format_domains_csv(domains: Iterable[DomainRecord]) -> str:
    """Brief: Render domain records as CSV with a header row.

    Inputs:
      - domains: Iterable of DomainRecord.

    Outputs:
      - str CSV text using "\\n" line endings.
    """

    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for rec in domains:
        row: List[Any] = [rec.domain]
        for name in STORAGE_CLASSES:
            metric = rec.classes()[name]
            row.extend([metric.count, metric.size])
        row.extend([rec.total_size, format_bytes(rec.total_size)])
        writer.writerow(row)
    return buf.getvalue()
