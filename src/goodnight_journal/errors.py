"""Exception hierarchy shared by the store, remote and sync layers.

- ``AuthError``: no authenticated identity, or the remote rejected the
  credentials.  Fatal for the current sync attempt, never retried until
  an identity is available again.
- ``NetworkError``: remote unreachable, timed out or temporarily
  unavailable.  Recoverable at the next trigger.
- ``RemoteError``: the remote answered with something unusable
  (unexpected status, malformed document).
- ``ConflictError``: a local insert collided with an existing entry for
  the same natural key.
- ``StorageError``: a local durable write or read failed.
"""


class JournalError(Exception):
    """Base class for all goodnight_journal errors."""


class AuthError(JournalError):
    """Raised when a remote operation is attempted without a valid identity."""


class RemoteError(JournalError):
    """Raised when the remote repository returns an unusable response."""


class NetworkError(RemoteError):
    """Raised when the remote repository cannot be reached."""


class ConflictError(JournalError):
    """Raised when an insert collides with an existing (user, day) entry."""


class StorageError(JournalError):
    """Raised when the local store fails to read or durably write."""


class EntryNotFoundError(StorageError):
    """Raised when an update targets an entry that is not in the store."""


def error_kind(exc: BaseException) -> str:
    """Return a short category name for *exc*, used in sync results.

    Examples:
        >>> error_kind(NetworkError("timeout"))
        'network'
    """
    match exc:
        case AuthError():
            return "auth"
        case NetworkError():
            return "network"
        case RemoteError():
            return "remote"
        case ConflictError():
            return "conflict"
        case StorageError():
            return "storage"
        case _:
            return "unexpected"
