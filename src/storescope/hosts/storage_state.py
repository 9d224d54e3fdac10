"""
Browser host backed by Playwright ``storage_state`` JSON snapshots.

Brief:
  Playwright's ``BrowserContext.storage_state()`` writes a document like::

      {
        "cookies": [{"name": "sid", "value": "...", "domain": ".example.com",
                     "path": "/", "expires": 1767225600, "httpOnly": true,
                     "secure": true, "sameSite": "Lax"}],
        "origins": [{"origin": "https://www.example.com",
                     "localStorage": [{"name": "k", "value": "v"}]}]
      }

  StorageStateHost exposes one or more such documents through the BrowserHost
  interface so a collection cycle can run offline. Recent Playwright versions
  may add ``indexedDB`` per origin; storescope additionally understands the
  optional ``sessionStorage`` and ``cacheStorage`` keys. Keys that are absent
  become absent capabilities.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, TypeVar, Union

from ..errors import OriginUnreachableError
from ..models import Capabilities, Cookie
from ..utils.hostname import is_restricted_url, normalize_hostname
from .base import BrowserHost, ExecutionContext, StorageView

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _pairs(entries: Any) -> List[Tuple[str, str]]:
    out: List[Tuple[str, str]] = []
    if isinstance(entries, dict):
        return [(str(k), "" if v is None else str(v)) for k, v in entries.items()]
    for item in entries or []:
        if isinstance(item, dict):
            out.append((str(item.get("name", "")), str(item.get("value") or "")))
    return out


def _declared_size(value: Any) -> Optional[int]:
    """Brief: Declared database size, or None when absent or not a number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None


class StateStorageView(StorageView):
    """StorageView over one ``origins[]`` entry of a storage-state document."""

    def __init__(self, entry: Dict[str, Any]) -> None:
        self._entry = entry

    def local_items(self) -> Iterable[Tuple[str, str]]:
        return _pairs(self._entry.get("localStorage"))

    def session_items(self) -> Iterable[Tuple[str, str]]:
        return _pairs(self._entry.get("sessionStorage"))

    def list_databases(self) -> List[Tuple[str, Optional[int]]]:
        out: List[Tuple[str, Optional[int]]] = []
        for db in self._entry.get("indexedDB") or []:
            if isinstance(db, dict):
                out.append((str(db.get("name", "")), _declared_size(db.get("size"))))
            else:
                out.append((str(db), None))
        return out

    def list_cache_names(self) -> List[str]:
        return [str(name) for name in self._entry.get("cacheStorage") or []]


class StateOriginContext(ExecutionContext):
    """ExecutionContext for a single snapshotted origin."""

    def __init__(self, entry: Dict[str, Any]) -> None:
        super().__init__(
            url=str(entry.get("origin", "")),
            capabilities=Capabilities(
                has_structured_db="indexedDB" in entry,
                has_cache_buckets="cacheStorage" in entry,
            ),
        )
        self._entry = entry
        self.closed = False

    def run_sampler(self, fn: Callable[[StorageView], T]) -> T:
        if self.closed:
            raise OriginUnreachableError(normalize_hostname(self.url), "context closed")
        return fn(StateStorageView(self._entry))


class StorageStateHost(BrowserHost):
    """
    BrowserHost over one or more storage-state documents.

    Inputs (constructor):
        states: Iterable of file paths and/or already-parsed mappings.

    Outputs:
        StorageStateHost instance. clear_domain() edits the in-memory copy;
        call save() to write a document back out.

    Example:
        >>> host = StorageStateHost([{"cookies": [], "origins": []}])
        >>> host.list_open_origins()
        []
    """

    def __init__(self, states: Iterable[Union[str, os.PathLike, Dict[str, Any]]]) -> None:
        self.documents: List[Dict[str, Any]] = []
        for state in states:
            if isinstance(state, dict):
                doc = state
            else:
                doc = self._read(os.fspath(state))
            doc.setdefault("cookies", [])
            doc.setdefault("origins", [])
            self.documents.append(doc)

    @staticmethod
    def _read(path: str) -> Dict[str, Any]:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValueError(f"{path}: storage state must be a JSON object")
        logger.debug("Loaded storage state from %s", path)
        return data

    def list_open_origins(self) -> List[ExecutionContext]:
        contexts: List[ExecutionContext] = []
        for doc in self.documents:
            for entry in doc.get("origins") or []:
                if not isinstance(entry, dict):
                    continue
                origin = str(entry.get("origin", ""))
                if is_restricted_url(origin):
                    logger.debug("Skipping restricted origin %r", origin)
                    continue
                contexts.append(StateOriginContext(entry))
        return contexts

    def enumerate_all_cookies(self) -> List[Cookie]:
        cookies: List[Cookie] = []
        for doc in self.documents:
            for raw in doc.get("cookies") or []:
                if isinstance(raw, dict):
                    cookies.append(Cookie.from_mapping(raw))
        return cookies

    def clear_domain(self, domain: str) -> None:
        """Brief: Drop origins and cookies belonging to a domain.

        Inputs:
          - domain: Canonical hostname; cookies scoped to it or a subdomain of
            it are removed, origins are removed on exact hostname match.

        Outputs:
          - None.
        """

        target = normalize_hostname(domain)
        if not target:
            raise ValueError(f"cannot clear storage for {domain!r}")
        for doc in self.documents:
            doc["origins"] = [
                o
                for o in doc.get("origins") or []
                if normalize_hostname(str(o.get("origin", ""))) != target
            ]
            kept = []
            for raw in doc.get("cookies") or []:
                cookie_domain = Cookie.from_mapping(raw).registrable_domain
                if cookie_domain == target or cookie_domain.endswith("." + target):
                    continue
                kept.append(raw)
            doc["cookies"] = kept
        logger.info("Cleared snapshotted storage for %s", target)

    def save(self, path: str, index: int = 0) -> None:
        with open(path, "w", encoding="utf-8") as fh:
            json.dump(self.documents[index], fh, indent=2)
