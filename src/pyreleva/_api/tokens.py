"""Push token registration endpoint.

Endpoint:
  - /api/v0/appPush/tokens
"""

from __future__ import annotations

from typing import Any

from pyreleva._api._common import build_json_request
from pyreleva._constants import PUSH_TOKEN_ENDPOINT
from pyreleva._transport import RetryingTransport
from pyreleva.config import ApiCredentials, RelevaConfig
from pyreleva.models.device import DeviceType


def build_token_payload(
    token: str,
    device_type: DeviceType,
    device_id: str,
    profile_id: str | None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "pushToken": token,
        "deviceType": device_type.value,
        "deviceId": device_id,
    }
    if profile_id is not None:
        payload["profileId"] = profile_id
    return payload


async def register_token(
    credentials: ApiCredentials,
    config: RelevaConfig,
    transport: RetryingTransport,
    payload: dict[str, Any],
) -> None:
    """Register a push token. Any 2xx body counts as success."""
    request = build_json_request(credentials, config, PUSH_TOKEN_ENDPOINT, payload)
    await transport.execute(request, config.max_retry_attempts)
