"""
Per-origin storage sampling.

Brief:
  OriginSampler runs inside one origin's execution context and reports item
  counts and estimated sizes for the two key/value stores, the structured
  database list and the named cache buckets.

  Optional APIs that the context does not expose contribute a zero-valued
  sub-result. Only failing to reach the context at all raises
  OriginUnreachableError.
"""

from __future__ import annotations

import functools
import json
import logging
from typing import Iterable, Optional, Tuple

from ..errors import OriginUnreachableError
from ..hosts.base import ExecutionContext, StorageView
from ..models import Capabilities, KeyValueMetric, OriginSample, StorageClassMetric
from ..utils.hostname import normalize_hostname

logger = logging.getLogger(__name__)


def summarize_key_value_store(items: Iterable[Tuple[str, str]]) -> KeyValueMetric:
    """Brief: Summarize one key/value store.

    Inputs:
      - items: Iterable of (key, value) pairs.

    Outputs:
      - KeyValueMetric with count, summed len(key)+len(value), per-entry size
        buckets, JSON parse failures (non-empty values only) and large-entry
        count.

    Example:
      >>> m = summarize_key_value_store([("a", "1"), ("b", "not json")])
      >>> (m.count, m.size, m.json_parse_failures)
      (2, 11, 1)
    """

    metric = KeyValueMetric()
    for key, value in items:
        key = "" if key is None else str(key)
        value = "" if value is None else str(value)
        metric.record_entry(key, value)
        if value:
            try:
                json.loads(value)
            except ValueError:
                metric.json_parse_failures += 1
    return metric


class OriginSampler:
    """
    Sample client-side storage for a single origin.

    Inputs (constructor):
        indexed_db_estimate_bytes: Bytes assumed per structured database whose
            size the host does not declare (0 keeps undeclared sizes at 0).
        cache_bucket_estimate_bytes: Bytes assumed per named cache bucket
            (0 keeps cache sizes at 0; bucket contents are never read).

    Outputs:
        OriginSampler instance; stateless between calls and safe to share
        across worker threads.
    """

    def __init__(
        self,
        indexed_db_estimate_bytes: int = 0,
        cache_bucket_estimate_bytes: int = 0,
    ) -> None:
        self.indexed_db_estimate_bytes = max(0, int(indexed_db_estimate_bytes))
        self.cache_bucket_estimate_bytes = max(0, int(cache_bucket_estimate_bytes))

    def sample(self, ctx: ExecutionContext) -> OriginSample:
        """
        Sample the origin behind an execution context.

        Inputs:
            ctx: ExecutionContext for one open origin.

        Outputs:
            OriginSample keyed by the context's canonical hostname.

        Raises:
            OriginUnreachableError: the context could not be reached, was
                closed mid-scan, or timed out.
        """
        hostname = normalize_hostname(ctx.url)
        if not hostname:
            raise OriginUnreachableError("", f"no hostname in {ctx.url!r}")

        routine = functools.partial(
            self._sample_view,
            hostname=hostname,
            origin=ctx.url,
            capabilities=ctx.capabilities,
        )
        try:
            return ctx.run_sampler(routine)
        except OriginUnreachableError:
            raise
        except Exception as exc:
            raise OriginUnreachableError(hostname, str(exc) or type(exc).__name__) from exc

    def _sample_view(
        self,
        view: StorageView,
        *,
        hostname: str,
        origin: str,
        capabilities: Optional[Capabilities],
    ) -> OriginSample:
        caps = capabilities or Capabilities()
        sample = OriginSample(hostname=hostname, origin=origin)
        sample.local = summarize_key_value_store(view.local_items())
        sample.session = summarize_key_value_store(view.session_items())

        if caps.has_structured_db:
            databases = self._optional(view.list_databases, hostname, "structured db")
            if databases:
                sample.database_names = [str(name) for name, _ in databases]
                sample.indexed = self._database_metric(databases)
        else:
            logger.debug("%s: structured db enumeration unavailable", hostname)

        if caps.has_cache_buckets:
            names = self._optional(view.list_cache_names, hostname, "cache buckets")
            if names:
                sample.cache_names = [str(n) for n in names]
                sample.cache = StorageClassMetric(
                    count=len(names),
                    size=len(names) * self.cache_bucket_estimate_bytes,
                )
        else:
            logger.debug("%s: cache bucket enumeration unavailable", hostname)

        return sample

    def _database_metric(self, databases) -> StorageClassMetric:
        size = 0
        for _name, declared in databases:
            if declared is None:
                size += self.indexed_db_estimate_bytes
            else:
                size += max(0, int(declared))
        return StorageClassMetric(count=len(databases), size=size)

    @staticmethod
    def _optional(fn, hostname: str, what: str):
        # A view that advertises a capability but does not implement it is
        # treated the same as a missing capability.
        try:
            return list(fn() or [])
        except NotImplementedError:
            logger.debug("%s: %s not implemented by host view", hostname, what)
            return []
