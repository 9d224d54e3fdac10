from __future__ import annotations

from typing import Callable, Iterable, List, Optional, Tuple, TypeVar

from ..models import Capabilities, Cookie

T = TypeVar("T")


class StorageView:
    """Base class for the storage APIs visible inside one origin.

    Brief:
      A StorageView is handed to sampling routines by
      ExecutionContext.run_sampler(). Optional APIs (structured databases,
      cache buckets) are only called when the context's Capabilities say they
      exist.
    """

    def local_items(self) -> Iterable[Tuple[str, str]]:
        """Brief: Iterate (key, value) pairs of the persistent key/value store."""

        raise NotImplementedError("StorageView.local_items() must be implemented by a subclass")

    def session_items(self) -> Iterable[Tuple[str, str]]:
        """Brief: Iterate (key, value) pairs of the session key/value store."""

        raise NotImplementedError("StorageView.session_items() must be implemented by a subclass")

    def list_databases(self) -> List[Tuple[str, Optional[int]]]:
        """Brief: List structured databases as (name, declared_size_or_None)."""

        raise NotImplementedError("StorageView.list_databases() must be implemented by a subclass")

    def list_cache_names(self) -> List[str]:
        """Brief: List named HTTP cache buckets."""

        raise NotImplementedError("StorageView.list_cache_names() must be implemented by a subclass")


class ExecutionContext:
    """Base class for a reachable per-origin execution handle (e.g. an open tab).

    Inputs:
      - url: URL currently loaded in the context.
      - capabilities: Optional storage APIs available in the context.

    Outputs:
      - ExecutionContext instance.
    """

    def __init__(self, url: str, capabilities: Optional[Capabilities] = None) -> None:
        self.url = url
        self.capabilities = capabilities or Capabilities()

    def run_sampler(self, fn: Callable[[StorageView], T]) -> T:
        """Brief: Execute a sampling routine inside this origin's context.

        Inputs:
          - fn: Callable receiving the origin's StorageView.

        Outputs:
          - Whatever fn returns. Raises when the context is closed or times out.
        """

        raise NotImplementedError("ExecutionContext.run_sampler() must be implemented by a subclass")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(url={self.url!r})"


class BrowserHost:
    """Base class for the host capabilities consumed by the collection engine."""

    def list_open_origins(self) -> List[ExecutionContext]:
        """Brief: Return zero or more reachable per-origin execution contexts."""

        raise NotImplementedError("BrowserHost.list_open_origins() must be implemented by a subclass")

    def enumerate_all_cookies(self) -> List[Cookie]:
        """Brief: Return every cookie visible to the host."""

        raise NotImplementedError("BrowserHost.enumerate_all_cookies() must be implemented by a subclass")

    def clear_domain(self, domain: str) -> None:
        """Brief: Delete all client-side storage for a domain.

        Inputs:
          - domain: Canonical hostname.

        Outputs:
          - None. Raises on failure.
        """

        raise NotImplementedError("BrowserHost.clear_domain() must be implemented by a subclass")
