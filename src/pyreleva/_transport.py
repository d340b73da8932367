"""HTTP transport with bounded, flat-delay retries."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

import aiohttp

from pyreleva._constants import NETWORK_RETRY_DELAY_S, SERVER_RETRY_DELAY_S
from pyreleva._redact import redact_for_log
from pyreleva.exceptions import (
    RelevaNetworkError,
    RelevaServerError,
    RelevaUnauthorizedError,
)

_logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class HttpRequest:
    """A fully composed request. Retries resend it unchanged."""

    url: str
    body: bytes
    method: str = "POST"
    headers: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def json_post(cls, url: str, payload: Any, headers: Mapping[str, str]) -> HttpRequest:
        return cls(
            url=url,
            body=json.dumps(payload, separators=(",", ":")).encode("utf-8"),
            headers=dict(headers),
        )


@dataclass(frozen=True, slots=True)
class HttpResponse:
    status: int
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


class HttpTransport(Protocol):
    """Structural single-attempt transport.

    Implementations raise ``aiohttp.ClientError``, ``TimeoutError`` or
    ``OSError`` on transport failures and return any HTTP status as a
    response.
    """

    async def send(self, request: HttpRequest) -> HttpResponse:
        ...


class AiohttpTransport:
    """Production transport built on an ``aiohttp.ClientSession``."""

    def __init__(self, http_session: aiohttp.ClientSession, *, timeout: float) -> None:
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def send(self, request: HttpRequest) -> HttpResponse:
        async with self._http.request(
            request.method,
            request.url,
            data=request.body,
            headers=dict(request.headers),
            timeout=self._timeout,
        ) as resp:
            body = await resp.read()
            return HttpResponse(status=resp.status, body=body)


class RetryingTransport:
    """Executes requests with a per-call retry budget.

    Outcome handling:

    - transport failure: retried after ``network_delay`` seconds
    - 2xx: body returned
    - 401: :class:`RelevaUnauthorizedError`, never retried
    - 5xx: retried after ``server_delay`` seconds
    - other non-2xx: :class:`RelevaServerError`, never retried
    """

    def __init__(
        self,
        transport: HttpTransport,
        *,
        network_delay: float = NETWORK_RETRY_DELAY_S,
        server_delay: float = SERVER_RETRY_DELAY_S,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._transport = transport
        self._network_delay = network_delay
        self._server_delay = server_delay
        self._sleep = sleep

    async def execute(self, request: HttpRequest, max_retries: int) -> bytes:
        """Send *request*, retrying at most *max_retries* additional times.

        Returns
        -------
        bytes
            Body of the first 2xx response.

        Raises
        ------
        RelevaNetworkError
            Transport failures exhausted the budget.
        RelevaUnauthorizedError
            The server answered 401.
        RelevaServerError
            Non-retryable status, or 5xx after the budget was exhausted.
        """
        attempts_allowed = max(0, max_retries) + 1
        attempt = 0
        while True:
            attempt += 1
            if _logger.isEnabledFor(logging.DEBUG):
                _logger.debug(
                    "%s %s (attempt %d/%d) body=%s",
                    request.method,
                    request.url,
                    attempt,
                    attempts_allowed,
                    redact_for_log(request.body),
                )
            try:
                response = await self._transport.send(request)
            except (aiohttp.ClientError, TimeoutError, OSError) as exc:
                if attempt < attempts_allowed:
                    _logger.debug("Request to %s failed: %s; retrying", request.url, exc)
                    await self._sleep(self._network_delay)
                    continue
                raise RelevaNetworkError(
                    f"Request to {request.url} failed after {attempt} attempt(s): {exc}",
                    endpoint=request.url,
                    attempts=attempt,
                ) from exc

            if response.ok:
                return response.body

            if response.status == 401:
                raise RelevaUnauthorizedError(endpoint=request.url)

            text = response.text()
            if 500 <= response.status < 600 and attempt < attempts_allowed:
                _logger.debug("HTTP %d from %s; retrying", response.status, request.url)
                await self._sleep(self._server_delay)
                continue

            raise RelevaServerError(
                f"HTTP {response.status} from {request.url}: {text[:200]}",
                status_code=response.status,
                body=text,
                endpoint=request.url,
            )
