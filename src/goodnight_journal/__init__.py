"""Local-first journal store with opportunistic Firestore sync."""

__version__ = "0.3.0"
