"""Local persistence: the entry store and the settings file."""

from .entries import EntryStore
from .settings import SettingsStore

__all__ = ["EntryStore", "SettingsStore"]
