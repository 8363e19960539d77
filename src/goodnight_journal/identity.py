"""Authenticated-identity seam.

The sync core never signs anyone in.  It only asks an
``IdentityProvider`` who is signed in right now and for a bearer token
to present to the remote repository.  Sign-in flows live elsewhere and
feed whatever provider implementation the host app installs.
"""

from __future__ import annotations

from typing import Protocol

from goodnight_journal.errors import AuthError


class IdentityProvider(Protocol):
    """Source of the current authenticated user."""

    def current_user_id(self) -> str | None:
        """Return the signed-in user id, or ``None`` when signed out."""
        ...  # pragma: no cover

    def id_token(self) -> str | None:
        """Return a bearer token for remote calls, or ``None``."""
        ...  # pragma: no cover


class StaticIdentity:
    """Identity fixed at construction (CLI, tests, service accounts).

    Args:
        user_id: Authenticated user id, or ``None`` for signed out.
        token: Bearer token presented to the remote repository.
    """

    def __init__(
        self, user_id: str | None = None, token: str | None = None
    ) -> None:
        self._user_id = user_id or None
        self._token = token or None

    def current_user_id(self) -> str | None:
        return self._user_id

    def id_token(self) -> str | None:
        return self._token

    def sign_out(self) -> None:
        self._user_id = None
        self._token = None

    def sign_in(self, user_id: str, token: str | None = None) -> None:
        self._user_id = user_id
        self._token = token


def require_user_id(identity: IdentityProvider) -> str:
    """Return the current user id or raise ``AuthError`` immediately."""
    user_id = identity.current_user_id()
    if not user_id:
        raise AuthError("User not authenticated")
    return user_id
