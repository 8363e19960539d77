"""Remote entry repository: contract, wire codec and Firestore client."""

from .base import OfflineRepository, RemoteEntryRepository
from .firestore import FirestoreEntryRepository

__all__ = [
    "FirestoreEntryRepository",
    "OfflineRepository",
    "RemoteEntryRepository",
]
