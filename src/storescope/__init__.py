"""storescope: per-domain inventory of browser client-side storage.

The collection engine samples every open origin (local/session key-value
stores, structured databases, cache buckets) plus the global cookie jar,
merges the results per hostname and derives descriptive statistics.
"""

from .collector import CollectionCoordinator, merge_samples
from .errors import (
    ConfigError,
    CookieEnumerationError,
    OriginUnreachableError,
    SettingsStoreError,
    StorescopeError,
)
from .filtering import FilterMode, FilterPolicy, FilterPolicyCache, FilterSettings
from .models import DomainRecord
from .stats import Statistics, compute_statistics
from .utils.hostname import normalize_hostname

__all__ = [
    "CollectionCoordinator",
    "ConfigError",
    "CookieEnumerationError",
    "DomainRecord",
    "FilterMode",
    "FilterPolicy",
    "FilterPolicyCache",
    "FilterSettings",
    "OriginUnreachableError",
    "SettingsStoreError",
    "Statistics",
    "StorescopeError",
    "compute_statistics",
    "merge_samples",
    "normalize_hostname",
]
