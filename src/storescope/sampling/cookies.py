"""
Global cookie sampling.

Cookies are enumerated once per cycle, independent of which origins are open,
and grouped by registrable domain (leading dot stripped). The same pass
classifies every cookie into the global CookieStatistics.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple, Union

from ..errors import CookieEnumerationError
from ..models import (
    Cookie,
    CookieAggregate,
    CookieStatistics,
    normalize_same_site,
    size_bucket,
)

logger = logging.getLogger(__name__)

_DAY = 60 * 60 * 24


def expiry_bucket(expiration_date: Optional[float], now: float) -> str:
    """
    Classify a cookie expiry relative to ``now``.

    Inputs:
        expiration_date: Absolute expiry in epoch seconds, or None.
        now: Current epoch seconds.

    Outputs:
        One of "no_expiry", "expired", "lt7d", "lt30d", "gt180d", "mid".

    Example:
        >>> expiry_bucket(None, 0)
        'no_expiry'
        >>> expiry_bucket(3 * 86400, 0)
        'lt7d'
    """
    if expiration_date is None:
        return "no_expiry"
    delta = float(expiration_date) - now
    if delta < 0:
        return "expired"
    if delta <= 7 * _DAY:
        return "lt7d"
    if delta <= 30 * _DAY:
        return "lt30d"
    if delta >= 180 * _DAY:
        return "gt180d"
    return "mid"


def aggregate_cookies(
    cookies: Iterable[Union[Cookie, Mapping[str, Any]]], now: float
) -> Tuple[Dict[str, CookieAggregate], CookieStatistics]:
    """Brief: Group cookies by registrable domain and classify them.

    Inputs:
      - cookies: Cookie objects or host cookie mappings.
      - now: Epoch seconds used for expiry classification.

    Outputs:
      - (aggregates, stats): per-domain CookieAggregate map and the global
        CookieStatistics. Cookies without a domain are ignored.
    """

    aggregates: Dict[str, CookieAggregate] = {}
    stats = CookieStatistics()

    for raw in cookies:
        cookie = raw if isinstance(raw, Cookie) else Cookie.from_mapping(raw)
        domain = cookie.registrable_domain
        if not domain:
            continue
        size = cookie.size

        agg = aggregates.get(domain)
        if agg is None:
            agg = CookieAggregate()
            aggregates[domain] = agg
        agg.count += 1
        agg.size += size

        stats.size_buckets[size_bucket(size)] += 1

        sec = stats.security
        if cookie.secure:
            sec["secure"] += 1
        else:
            sec["insecure"] += 1
            stats.insecure_by_domain[domain] = stats.insecure_by_domain.get(domain, 0) + 1
        if cookie.http_only:
            sec["http_only"] += 1
        else:
            sec["not_http_only"] += 1
        same_site = normalize_same_site(cookie.same_site)
        sec[f"same_site_{same_site}"] += 1

        if same_site != "unspecified":
            combo = "{}_{}_{}".format(
                "secure" if cookie.secure else "insecure",
                "http_only" if cookie.http_only else "not_http_only",
                same_site,
            )
            stats.security_combinations[combo] += 1

        bucket = expiry_bucket(cookie.expiration_date, now)
        stats.expiry[bucket] += 1
        if bucket == "lt7d":
            stats.expiring_soon_by_domain[domain] = (
                stats.expiring_soon_by_domain.get(domain, 0) + 1
            )
        elif bucket == "expired":
            stats.expired_by_domain[domain] = stats.expired_by_domain.get(domain, 0) + 1

    return aggregates, stats


class CookieSampler:
    """
    Enumerate all host-visible cookies once and aggregate them.

    Inputs (constructor):
        host: BrowserHost providing enumerate_all_cookies().
        clock: Callable returning epoch seconds (default time.time).

    Outputs:
        CookieSampler instance.
    """

    def __init__(self, host, clock: Callable[[], float] = time.time) -> None:
        self._host = host
        self._clock = clock

    def sample_all(self) -> Tuple[Dict[str, CookieAggregate], CookieStatistics]:
        """Brief: Enumerate and aggregate every cookie visible to the host.

        Inputs:
          - None.

        Outputs:
          - (aggregates, stats) as returned by aggregate_cookies().

        Raises:
          - CookieEnumerationError: the host listing failed.
        """

        try:
            cookies = list(self._host.enumerate_all_cookies() or [])
        except Exception as exc:
            raise CookieEnumerationError(f"cookie enumeration failed: {exc}") from exc
        aggregates, stats = aggregate_cookies(cookies, now=self._clock())
        logger.debug(
            "Enumerated %d cookies across %d domains", len(cookies), len(aggregates)
        )
        return aggregates, stats
