"""Shared helpers for Releva endpoint modules.

This module centralizes:
- base URL resolution (custom endpoint, realm host, default host)
- the common request headers
- composing endpoint paths and callback URLs
- JSON-decoding response bodies

It is internal to pyreleva and may change at any time.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from pyreleva._constants import DEFAULT_BASE_URL, USER_AGENT
from pyreleva._transport import HttpRequest
from pyreleva.config import ApiCredentials, RelevaConfig
from pyreleva.exceptions import RelevaInvalidResponseError
from pyreleva.models.device import DeviceType


def resolve_base_url(credentials: ApiCredentials, config: RelevaConfig) -> str:
    if config.custom_endpoint:
        return config.custom_endpoint.strip().rstrip("/")
    realm = credentials.realm.strip()
    if realm:
        return f"https://{realm}.releva.ai"
    return DEFAULT_BASE_URL


def build_headers(credentials: ApiCredentials) -> dict[str, str]:
    return {
        "Content-Type": "application/json",
        "Accept": "application/json",
        "Authorization": f"Bearer {credentials.access_token}",
        "User-Agent": USER_AGENT,
        "X-Platform": f"python/{DeviceType.current().value}",
    }


def build_url(base_url: str, endpoint: str) -> str:
    """Join *endpoint* to *base_url*; absolute http(s) URLs are used as-is."""
    if endpoint.startswith(("http://", "https://")):
        return endpoint
    if not endpoint.startswith("/"):
        endpoint = f"/{endpoint}"
    return f"{base_url}{endpoint}"


def build_json_request(
    credentials: ApiCredentials,
    config: RelevaConfig,
    endpoint: str,
    payload: Any,
    *,
    extra_headers: Mapping[str, str] | None = None,
) -> HttpRequest:
    headers = build_headers(credentials)
    if extra_headers:
        headers.update(extra_headers)
    url = build_url(resolve_base_url(credentials, config), endpoint)
    return HttpRequest.json_post(url, payload, headers)


def decode_json_object(body: bytes, *, endpoint: str) -> dict[str, Any]:
    """Decode a 2xx body that must contain a JSON object."""
    if not body.strip():
        raise RelevaInvalidResponseError(f"Empty response body from {endpoint}", endpoint=endpoint)
    try:
        decoded = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise RelevaInvalidResponseError(
            f"Invalid JSON from {endpoint}: {body[:200]!r}",
            endpoint=endpoint,
        ) from exc
    if not isinstance(decoded, dict):
        raise RelevaInvalidResponseError(
            f"Expected a JSON object from {endpoint}, got {type(decoded).__name__}",
            endpoint=endpoint,
        )
    return decoded
