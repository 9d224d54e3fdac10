"""
Collection coordinator: fan out sampling tasks, merge, and derive statistics.

Brief:
  One OriginSampler task runs per distinct open hostname, alongside a single
  CookieSampler task. All tasks are awaited together; only then are their
  results merged, sequentially, into a fresh ``{hostname: DomainRecord}`` map
  that feeds compute_statistics().
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .errors import CookieEnumerationError, OriginUnreachableError
from .hosts.base import BrowserHost, ExecutionContext
from .models import DomainRecord, OriginSample, StorageClassMetric
from .sampling.cookies import CookieSampler
from .sampling.origin import OriginSampler
from .stats import Statistics, compute_statistics
from .utils.hostname import normalize_hostname

logger = logging.getLogger(__name__)


def dedupe_contexts(contexts: Iterable[ExecutionContext]) -> Dict[str, ExecutionContext]:
    """
    Map each canonical hostname to a single execution context.

    Inputs:
        contexts: Contexts in host enumeration order.

    Outputs:
        ``{hostname: context}``; when several contexts share a hostname the
        last one seen wins. Contexts without a usable hostname are dropped.

    Notes:
        Keying by hostname alone folds different schemes/ports of the same host
        into one sample.
    """
    by_host: Dict[str, ExecutionContext] = {}
    for ctx in contexts:
        hostname = normalize_hostname(getattr(ctx, "url", ""))
        if not hostname:
            logger.debug("Skipping context without hostname: %r", ctx)
            continue
        if hostname in by_host:
            logger.debug("Replacing earlier context for %s with %r", hostname, ctx)
        by_host[hostname] = ctx
    return by_host


def merge_samples(
    origin_samples: Iterable[OriginSample],
    cookie_aggregates: Optional[Mapping[str, StorageClassMetric]] = None,
) -> Dict[str, DomainRecord]:
    """
    Merge per-origin samples and cookie aggregates into domain records.

    Inputs:
        origin_samples: Successful OriginSample results (any order).
        cookie_aggregates: ``{registrable_domain: CookieAggregate}``.

    Outputs:
        New ``{hostname: DomainRecord}`` map. Every count, size and bucket is
        added, never overwritten, so the result does not depend on the order
        of the inputs.

    Example:
        >>> from storescope.models import KeyValueMetric, OriginSample
        >>> a = OriginSample("a.example.com", local=KeyValueMetric(count=2, size=40))
        >>> b = OriginSample("a.example.com", local=KeyValueMetric(count=3, size=60))
        >>> rec = merge_samples([a, b])["a.example.com"]
        >>> rec.local.count, rec.local.size
        (5, 100)
    """
    records: Dict[str, DomainRecord] = {}

    def _get(domain: str) -> DomainRecord:
        rec = records.get(domain)
        if rec is None:
            rec = DomainRecord(domain)
            records[domain] = rec
        return rec

    for sample in origin_samples:
        if not sample.hostname:
            continue
        _get(sample.hostname).merge_origin_sample(sample)

    for domain, aggregate in (cookie_aggregates or {}).items():
        if not domain:
            continue
        _get(domain).merge_cookies(aggregate)

    return records


def sort_by_total_size(records: Mapping[str, DomainRecord]) -> List[DomainRecord]:
    """Records ordered by total estimated size, largest first (stable for ties)."""
    return sorted(records.values(), key=lambda r: r.total_size, reverse=True)


class CollectionCoordinator:
    """
    Run one inventory collection cycle against a BrowserHost.

    Inputs (constructor):
        host: BrowserHost providing open origins and cookies.
        origin_sampler: OriginSampler (default: no opaque-size estimates).
        cookie_sampler: CookieSampler (default: built from ``host``).
        scan_filter: Optional object with ``is_allowed(url)`` (FilterPolicy or
            FilterPolicyCache); origins it rejects are not sampled.
        max_workers: Optional pool size override. By default the pool has one
            worker per launched task.
        top_n: Ranking length passed to compute_statistics().

    Outputs:
        CollectionCoordinator; collect() may be called repeatedly and each call
        starts from an empty record map.

    Example:
        >>> coordinator = CollectionCoordinator(host)          # doctest: +SKIP
        >>> domains, stats = coordinator.collect()             # doctest: +SKIP
    """

    def __init__(
        self,
        host: BrowserHost,
        origin_sampler: Optional[OriginSampler] = None,
        cookie_sampler: Optional[CookieSampler] = None,
        scan_filter=None,
        max_workers: Optional[int] = None,
        top_n: int = 10,
    ) -> None:
        self.host = host
        self.origin_sampler = origin_sampler or OriginSampler()
        self.cookie_sampler = cookie_sampler or CookieSampler(host)
        self.scan_filter = scan_filter
        self.max_workers = max_workers
        self.top_n = top_n

    def _scan_targets(self) -> Dict[str, ExecutionContext]:
        targets = dedupe_contexts(self.host.list_open_origins() or [])
        if self.scan_filter is None:
            return targets
        allowed: Dict[str, ExecutionContext] = {}
        for hostname, ctx in targets.items():
            if self.scan_filter.is_allowed(ctx.url):
                allowed[hostname] = ctx
            else:
                logger.debug("Scan of %s skipped by domain filter", hostname)
        return allowed

    def collect(self) -> Tuple[List[DomainRecord], Statistics]:
        """
        Run one collection cycle.

        Inputs:
            None

        Outputs:
            (domains, stats): records sorted by total size descending, and the
            Statistics snapshot computed over the same records.

        Raises:
            CookieEnumerationError: the global cookie listing failed.

        A failing origin contributes nothing to the result and is logged; the
        cycle continues. The merge happens only after every launched task has
        completed or failed.
        """
        started = time.monotonic()
        targets = self._scan_targets()
        workers = self.max_workers or (len(targets) + 1)

        origin_futures: Dict[str, Future] = {}
        with ThreadPoolExecutor(
            max_workers=max(1, workers), thread_name_prefix="storescope-sample"
        ) as executor:
            cookie_future = executor.submit(self.cookie_sampler.sample_all)
            for hostname, ctx in targets.items():
                origin_futures[hostname] = executor.submit(self.origin_sampler.sample, ctx)
            wait([cookie_future, *origin_futures.values()])

        samples: List[OriginSample] = []
        failed = 0
        for hostname, fut in origin_futures.items():
            try:
                samples.append(fut.result())
            except OriginUnreachableError as exc:
                failed += 1
                logger.warning("Skipping origin %s: %s", hostname, exc)
            except Exception as exc:  # pragma: no cover - sampler bug guard
                failed += 1
                logger.warning(
                    "Skipping origin %s after unexpected error: %s",
                    hostname,
                    exc,
                    exc_info=True,
                )

        try:
            cookie_aggregates, cookie_stats = cookie_future.result()
        except CookieEnumerationError:
            logger.error("Cookie enumeration failed; aborting collection cycle")
            raise
        except Exception as exc:
            logger.error("Cookie enumeration failed; aborting collection cycle")
            raise CookieEnumerationError(str(exc)) from exc

        records = merge_samples(samples, cookie_aggregates)
        domains = sort_by_total_size(records)
        stats = compute_statistics(records, cookie_stats, top_n=self.top_n)

        logger.info(
            "Collected %d domains (%d origins sampled, %d failed, %d cookie domains) in %.2fs",
            len(domains),
            len(samples),
            failed,
            len(cookie_aggregates),
            time.monotonic() - started,
        )
        return domains, stats
