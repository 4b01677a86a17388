"""Fleet Notifier — Error Taxonomy.

None of these cross a public component boundary: the stats client turns
transport and parse errors into "no data", the subscriber store turns
persistence errors into an empty list or a failed save, and the command
router turns authorization errors into a refusal reply.
"""

from __future__ import annotations

from typing import Optional


class FleetNotifierError(Exception):
    """Base class for all application errors."""


class TransportError(FleetNotifierError):
    """Network failure or non-success HTTP status from a remote service.

    Attributes:
        url: The requested URL.
        status_code: HTTP status, or None if no response was received.
        body: Raw response body, empty if none.
    """

    def __init__(
        self,
        url: str,
        message: str,
        status_code: Optional[int] = None,
        body: str = "",
    ) -> None:
        self.url = url
        self.status_code = status_code
        self.body = body
        super().__init__(f"{url}: {message}")


class ParseError(FleetNotifierError):
    """Response body is not the JSON shape we expect.

    Attributes:
        url: The requested URL.
        body: Raw response body that failed to parse.
    """

    def __init__(self, url: str, message: str, body: str = "") -> None:
        self.url = url
        self.body = body
        super().__init__(f"{url}: {message}")


class PersistenceError(FleetNotifierError):
    """Subscriber state could not be read or written."""


class AuthorizationError(FleetNotifierError):
    """A non-admin tried a restricted command in the admin-only chat."""

    def __init__(self, chat_id: int, user_id: Optional[int]) -> None:
        self.chat_id = chat_id
        self.user_id = user_id
        super().__init__(f"user {user_id} is not an admin of chat {chat_id}")
