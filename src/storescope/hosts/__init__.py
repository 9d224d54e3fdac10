"""Host bindings: the capabilities the collection engine consumes."""

from .base import BrowserHost, ExecutionContext, StorageView
from .storage_state import StorageStateHost

__all__ = ["BrowserHost", "ExecutionContext", "StorageStateHost", "StorageView"]
