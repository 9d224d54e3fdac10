"""Origin and cookie samplers."""

from .cookies import CookieSampler, aggregate_cookies, expiry_bucket
from .origin import OriginSampler, summarize_key_value_store

__all__ = [
    "CookieSampler",
    "OriginSampler",
    "aggregate_cookies",
    "expiry_bucket",
    "summarize_key_value_store",
]
