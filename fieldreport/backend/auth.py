"""Local auth session backed by the stored access token."""

from __future__ import annotations

import logging

import jwt


LOGGER = logging.getLogger("fieldreport.backend.auth")


class AuthSession:
    """Holds the signed-in user's access token.

    The token is issued and verified by the backend; locally we only read the
    ``sub`` claim so the current user id is available without a network call.
    """

    def __init__(self, access_token: str | None = None) -> None:
        self._access_token = access_token

    @property
    def access_token(self) -> str | None:
        return self._access_token

    def sign_in(self, access_token: str) -> None:
        self._access_token = access_token

    def sign_out(self) -> None:
        self._access_token = None

    def current_user_id(self) -> str | None:
        """Return the user id from the token, or None when signed out."""
        if not self._access_token:
            return None
        try:
            claims = jwt.decode(
                self._access_token,
                options={"verify_signature": False, "verify_exp": False},
            )
        except jwt.PyJWTError as exc:
            LOGGER.warning("Ignoring unreadable access token: %s", exc)
            return None
        subject = claims.get("sub")
        return str(subject) if subject else None
