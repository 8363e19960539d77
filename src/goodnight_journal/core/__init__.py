"""Core helpers shared by the sync engine and the journal service."""

from .async_utils import Debouncer, run_sync

__all__ = ["Debouncer", "run_sync"]
