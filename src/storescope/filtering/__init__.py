"""Domain matching rules and whitelist/blacklist filter policy."""

from .policy import FilterMode, FilterPolicy, FilterPolicyCache, FilterSettings
from .rules import matches_rules, normalize_rules
from .settings_store import MemorySettingsStore, SettingsStore, YamlSettingsStore

__all__ = [
    "FilterMode",
    "FilterPolicy",
    "FilterPolicyCache",
    "FilterSettings",
    "MemorySettingsStore",
    "SettingsStore",
    "YamlSettingsStore",
    "matches_rules",
    "normalize_rules",
]
