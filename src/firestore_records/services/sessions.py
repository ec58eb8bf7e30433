"""Session lookup for owner-scoped queries."""

from dataclasses import dataclass
from typing import Protocol


class SessionProvider(Protocol):
    """Read-only view of the current authenticated session."""

    def current_user_id(self) -> str | None:
        """Return the signed-in user id, if any."""


@dataclass
class StaticSessionProvider(SessionProvider):
    """Session holder owned by the application.

    The application signs users in and out; the document client only reads.
    """

    user_id: str | None = None

    def current_user_id(self) -> str | None:
        """Return the signed-in user id, if any."""
        return self.user_id or None

    def sign_in(self, user_id: str) -> None:
        """Make ``user_id`` the current user."""
        if not user_id.strip():
            raise ValueError("user_id must not be blank")
        self.user_id = user_id

    def sign_out(self) -> None:
        """Clear the current user."""
        self.user_id = None
