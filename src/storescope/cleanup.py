"""
Selective cleanup driven by inventory results and the domain filter.

Brief:
  plan_cleanup() splits candidate domains into those the filter allows and
  those it protects. clear_domains() then asks the host to delete storage for
  each allowed domain in turn; one failing domain never stops the batch.
  submit_cleanup() runs the same batch on an executor and hands back the
  Future, for callers that do not wait for completion.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor, Future
from dataclasses import dataclass, field
from typing import Iterable, List, Union

from .models import DomainRecord
from .utils.hostname import normalize_hostname

logger = logging.getLogger(__name__)


@dataclass
class CleanupPlan:
    allowed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


@dataclass
class CleanupResult:
    cleared: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return not self.failed


def _domain_names(domains: Iterable[Union[str, DomainRecord]]) -> List[str]:
    names: List[str] = []
    seen = set()
    for item in domains:
        raw = item.domain if isinstance(item, DomainRecord) else str(item)
        name = normalize_hostname(raw)
        if not name or name in seen:
            continue
        seen.add(name)
        names.append(name)
    return names


def plan_cleanup(domains: Iterable[Union[str, DomainRecord]], policy=None) -> CleanupPlan:
    """
    Decide which domains may be cleaned.

    Inputs:
        domains: Hostnames or DomainRecords (duplicates collapse).
        policy: Object with ``is_allowed(url_or_host)``; None allows everything.

    Outputs:
        CleanupPlan with ``allowed`` and ``skipped`` lists in input order.
    """
    plan = CleanupPlan()
    for name in _domain_names(domains):
        if policy is None or policy.is_allowed(name):
            plan.allowed.append(name)
        else:
            plan.skipped.append(name)
    return plan


def clear_domains(
    host,
    domains: Iterable[Union[str, DomainRecord]],
    policy=None,
    dry_run: bool = False,
) -> CleanupResult:
    """Brief: Clear storage for every filter-allowed domain, sequentially.

    Inputs:
      - host: BrowserHost providing clear_domain(domain).
      - domains: Hostnames or DomainRecords to clean.
      - policy: Optional filter (see plan_cleanup).
      - dry_run: When True, report what would be cleared without calling host.

    Outputs:
      - CleanupResult listing cleared, failed and skipped domains.
    """

    plan = plan_cleanup(domains, policy)
    result = CleanupResult(skipped=list(plan.skipped), dry_run=dry_run)
    for name in plan.skipped:
        logger.info("Cleanup of %s blocked by domain filter", name)

    for name in plan.allowed:
        if dry_run:
            result.cleared.append(name)
            continue
        try:
            host.clear_domain(name)
        except Exception as exc:
            logger.warning("Cleanup of %s failed: %s", name, exc)
            result.failed.append(name)
        else:
            result.cleared.append(name)

    logger.info(
        "Cleanup %s: %d cleared, %d failed, %d skipped",
        "planned" if dry_run else "finished",
        len(result.cleared),
        len(result.failed),
        len(result.skipped),
    )
    return result


def submit_cleanup(
    executor: Executor,
    host,
    domains: Iterable[Union[str, DomainRecord]],
    policy=None,
    dry_run: bool = False,
) -> "Future[CleanupResult]":
    """
    Schedule clear_domains() on an executor.

    Inputs:
        executor: concurrent.futures Executor owned by the caller.
        host, domains, policy, dry_run: As for clear_domains().

    Outputs:
        Future resolving to the CleanupResult. The caller is not required to
        wait on it; its outcome is logged either way.
    """
    names = _domain_names(domains)
    future = executor.submit(clear_domains, host, names, policy, dry_run)
    future.add_done_callback(_log_cleanup_outcome)
    return future


def _log_cleanup_outcome(future: "Future[CleanupResult]") -> None:
    if future.cancelled():
        logger.info("Background cleanup cancelled")
        return
    exc = future.exception()
    if exc is not None:
        logger.error("Background cleanup failed: %s", exc, exc_info=exc)
