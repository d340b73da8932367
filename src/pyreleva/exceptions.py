"""Custom exception hierarchy for pyreleva."""

from __future__ import annotations


class RelevaError(Exception):
    """Base exception for all pyreleva errors."""


class RelevaConfigError(RelevaError):
    """Invalid or missing configuration."""


class RelevaMissingFieldError(RelevaError):
    """A required field (id, callback URL, ...) is empty or malformed.

    Raised before any network activity; the offending value is never queued.
    """

    def __init__(self, message: str, *, field: str = "") -> None:
        self.field = field
        super().__init__(message)


class RelevaNetworkError(RelevaError):
    """Transport-level failure (timeout, connection reset) after all retries."""

    def __init__(
        self,
        message: str,
        *,
        endpoint: str = "",
        attempts: int = 0,
    ) -> None:
        self.endpoint = endpoint
        self.attempts = attempts
        super().__init__(message)


class RelevaUnauthorizedError(RelevaError):
    """HTTP 401: the access token is invalid or missing. Never retried."""

    def __init__(self, message: str = "Invalid or missing access token", *, endpoint: str = "") -> None:
        self.endpoint = endpoint
        super().__init__(message)


class RelevaServerError(RelevaError):
    """Non-2xx HTTP response.

    5xx responses are only raised after the retry budget is exhausted;
    any other non-2xx status is raised immediately.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        body: str | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.body = body
        self.endpoint = endpoint
        super().__init__(message)


class RelevaInvalidResponseError(RelevaError):
    """A 2xx response that could not be decoded.

    The server-side effect cannot be confirmed, so change flags stay set.
    """

    def __init__(self, message: str, *, endpoint: str = "") -> None:
        self.endpoint = endpoint
        super().__init__(message)
