"""
Whitelist/blacklist domain filter used to gate cleanup and scan operations.

Brief:
  - FilterSettings is the persisted shape (mode + two rule lists).
  - FilterPolicy is an immutable, in-memory evaluation of one settings
    snapshot with a per-hostname TTL decision cache.
  - FilterPolicyCache holds at most one loaded FilterPolicy, reloading from a
    SettingsStore on demand and dropping it whenever new settings are saved.
"""

from __future__ import annotations

import enum
import logging
import threading
from typing import Iterable, List, Optional

from cachetools import TTLCache
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..errors import SettingsStoreError
from ..utils.hostname import normalize_hostname
from .rules import matches_rules, normalize_rules

logger = logging.getLogger(__name__)


class FilterMode(str, enum.Enum):
    DISABLED = "disabled"
    WHITELIST = "whitelist"
    BLACKLIST = "blacklist"

    @classmethod
    def parse(cls, value: object) -> "FilterMode":
        """Brief: Parse a mode string, treating unknown values as DISABLED.

        Inputs:
          - value: FilterMode, str, or None.

        Outputs:
          - FilterMode.
        """

        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        try:
            return cls(text)
        except ValueError:
            if text:
                logger.warning("Unknown domain filter mode %r; using disabled", value)
            return cls.DISABLED


class FilterSettings(BaseModel):
    """Brief: Persisted domain filter settings.

    Inputs:
      - mode: "disabled" (default), "whitelist", or "blacklist".
      - whitelist / blacklist: Rule lists ("example.com", "*.example.com").

    Outputs:
      - FilterSettings with normalized, de-duplicated rule lists.
    """

    model_config = ConfigDict(extra="ignore")

    mode: FilterMode = FilterMode.DISABLED
    whitelist: List[str] = Field(default_factory=list)
    blacklist: List[str] = Field(default_factory=list)

    @field_validator("mode", mode="before")
    @classmethod
    def _parse_mode(cls, value: object) -> FilterMode:
        return FilterMode.parse(value)

    @field_validator("whitelist", "blacklist", mode="before")
    @classmethod
    def _clean_rules(cls, value: object) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, (list, tuple, set)):
            raise ValueError("rules must be a list of domain strings")
        return normalize_rules(value)


class FilterPolicy:
    """
    Evaluate allow/deny decisions for one snapshot of filter settings.

    Inputs (constructor):
        mode: FilterMode (or its string value).
        whitelist: Rules consulted in whitelist mode.
        blacklist: Rules consulted in blacklist mode.
        cache_ttl_seconds: Lifetime of memoised per-hostname decisions.

    Outputs:
        FilterPolicy instance; rule lists are fixed for its lifetime.

    Example:
        >>> policy = FilterPolicy("whitelist", whitelist=["example.com"])
        >>> policy.is_allowed("https://sub.example.com/path")
        True
        >>> policy.is_allowed("https://other.com")
        False
    """

    def __init__(
        self,
        mode: object = FilterMode.DISABLED,
        whitelist: Optional[Iterable[str]] = None,
        blacklist: Optional[Iterable[str]] = None,
        cache_ttl_seconds: int = 600,
    ) -> None:
        self.mode = FilterMode.parse(mode)
        self.whitelist = tuple(normalize_rules(whitelist))
        self.blacklist = tuple(normalize_rules(blacklist))
        self.cache_ttl_seconds = max(0, int(cache_ttl_seconds))
        self._decisions: Optional[TTLCache] = None
        if self.cache_ttl_seconds > 0:
            self._decisions = TTLCache(maxsize=4096, ttl=self.cache_ttl_seconds)
        self._lock = threading.Lock()

    @classmethod
    def from_settings(
        cls, settings: FilterSettings, cache_ttl_seconds: int = 600
    ) -> "FilterPolicy":
        return cls(
            mode=settings.mode,
            whitelist=settings.whitelist,
            blacklist=settings.blacklist,
            cache_ttl_seconds=cache_ttl_seconds,
        )

    def to_settings(self) -> FilterSettings:
        return FilterSettings(
            mode=self.mode,
            whitelist=list(self.whitelist),
            blacklist=list(self.blacklist),
        )

    def is_allowed(self, url_or_host: str) -> bool:
        """
        Return True when an operation on this URL/host is permitted.

        Inputs:
            url_or_host: Full URL or bare hostname.

        Outputs:
            bool

        Behaviour:
            - disabled mode always allows.
            - Input that does not normalize to a hostname is allowed (fail open).
            - whitelist mode allows only hostnames matching the whitelist.
            - blacklist mode allows everything not matching the blacklist.
        """
        if self.mode is FilterMode.DISABLED:
            return True

        domain = normalize_hostname(url_or_host)
        if not domain:
            logger.debug("No hostname in %r; allowing", url_or_host)
            return True

        if self._decisions is not None:
            with self._lock:
                cached = self._decisions.get(domain)
            if cached is not None:
                return cached

        if self.mode is FilterMode.WHITELIST:
            allowed = matches_rules(domain, self.whitelist)
        else:
            allowed = not matches_rules(domain, self.blacklist)

        if self._decisions is not None:
            with self._lock:
                self._decisions[domain] = allowed
        return allowed

    def is_blocked(self, url_or_host: str) -> bool:
        return not self.is_allowed(url_or_host)

    def __repr__(self) -> str:
        return (
            f"FilterPolicy(mode={self.mode.value!r}, whitelist={list(self.whitelist)!r}, "
            f"blacklist={list(self.blacklist)!r})"
        )


class FilterPolicyCache:
    """
    Lazily loaded, explicitly invalidated FilterPolicy holder.

    Inputs (constructor):
        store: SettingsStore providing load()/save().
        cache_ttl_seconds: Passed through to each constructed FilterPolicy.

    Outputs:
        FilterPolicyCache instance.

    The held policy is replaced as a whole (a single attribute assignment), so
    concurrent readers observe either the previous or the next full snapshot.
    A load failure falls back to a disabled policy; a save failure propagates
    and leaves the current snapshot in place.
    """

    def __init__(self, store, cache_ttl_seconds: int = 600) -> None:
        self._store = store
        self.cache_ttl_seconds = cache_ttl_seconds
        self._policy: Optional[FilterPolicy] = None

    @property
    def loaded(self) -> bool:
        return self._policy is not None

    def get(self) -> FilterPolicy:
        policy = self._policy
        if policy is None:
            policy = self.load()
        return policy

    def load(self) -> FilterPolicy:
        """Brief: (Re)load settings from the store and cache the resulting policy.

        Inputs:
          - None.

        Outputs:
          - FilterPolicy: loaded policy, or a disabled policy when the store fails.
        """

        try:
            settings = self._store.load()
        except SettingsStoreError as exc:
            logger.warning("Failed to load domain filter settings: %s", exc)
            settings = FilterSettings()
        policy = FilterPolicy.from_settings(
            settings, cache_ttl_seconds=self.cache_ttl_seconds
        )
        self._policy = policy
        return policy

    def invalidate(self) -> None:
        self._policy = None

    def save(self, settings: FilterSettings) -> None:
        """Brief: Persist settings, then drop the cached policy.

        Inputs:
          - settings: New FilterSettings.

        Outputs:
          - None. Raises SettingsStoreError when the store write fails.
        """

        try:
            self._store.save(settings)
        except SettingsStoreError:
            logger.error("Failed to save domain filter settings", exc_info=True)
            raise
        self.invalidate()

    def settings(self) -> FilterSettings:
        return self.get().to_settings()

    def is_allowed(self, url_or_host: str) -> bool:
        return self.get().is_allowed(url_or_host)

    def is_blocked(self, url_or_host: str) -> bool:
        return not self.is_allowed(url_or_host)
