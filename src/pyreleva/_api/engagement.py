"""Engagement delivery to notification callback URLs.

Each distinct callback URL receives one POST with a JSON array of its
events. Calls run concurrently and are joined before judging the batch.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from pyreleva._api._common import build_json_request
from pyreleva._constants import ENGAGEMENT_RETRY_ATTEMPTS
from pyreleva._transport import RetryingTransport
from pyreleva.config import ApiCredentials, RelevaConfig
from pyreleva.exceptions import RelevaError
from pyreleva.models.engagement import EngagementEvent, group_by_callback_url

_logger = logging.getLogger(__name__)


async def _send_group(
    credentials: ApiCredentials,
    config: RelevaConfig,
    transport: RetryingTransport,
    callback_url: str,
    events: list[EngagementEvent],
) -> None:
    payload = [event.to_payload() for event in events]
    request = build_json_request(credentials, config, callback_url, payload)
    await transport.execute(request, ENGAGEMENT_RETRY_ATTEMPTS)


async def send_engagement_events(
    credentials: ApiCredentials,
    config: RelevaConfig,
    transport: RetryingTransport,
    events: Sequence[EngagementEvent],
) -> dict[str, RelevaError | None]:
    """Deliver *events* grouped by callback URL.

    Returns
    -------
    dict
        Maps every callback URL to ``None`` on success or the error that
        made its delivery fail. All calls have finished when this returns.
    """
    grouped = group_by_callback_url(events)
    urls = list(grouped)
    results = await asyncio.gather(
        *(_send_group(credentials, config, transport, url, grouped[url]) for url in urls),
        return_exceptions=True,
    )

    outcome: dict[str, RelevaError | None] = {}
    for url, result in zip(urls, results, strict=True):
        if isinstance(result, RelevaError):
            _logger.debug("Engagement delivery to %s failed: %s", url, result)
            outcome[url] = result
        elif isinstance(result, BaseException):
            raise result
        else:
            outcome[url] = None
    return outcome
