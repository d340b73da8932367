"""Push (sync) endpoint.

Endpoint:
  - /api/v0/push  (send context, receive recommendations)
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from pyreleva._api._common import build_json_request, decode_json_object
from pyreleva._constants import CLIENT_PLATFORM, CLIENT_VENDOR, PUSH_ENDPOINT, SDK_VERSION
from pyreleva._transport import RetryingTransport
from pyreleva.config import ApiCredentials, RelevaConfig
from pyreleva.exceptions import RelevaInvalidResponseError
from pyreleva.models.requests import PushRequest
from pyreleva.models.responses import RelevaResponse
from pyreleva.state.tracker import TrackedSnapshot

_logger = logging.getLogger(__name__)


def build_context(session_id: str, snapshot: TrackedSnapshot, request: PushRequest) -> dict[str, Any]:
    """Compose the ``context`` block from session, tracked state and *request*."""
    flags = snapshot.flags
    context: dict[str, Any] = {"sessionId": session_id}

    if snapshot.device_id is not None:
        context["deviceId"] = snapshot.device_id
        context["deviceIdChanged"] = flags.device_id_changed

    if snapshot.profile_id is not None:
        context["profile"] = {"id": snapshot.profile_id}
        context["profileChanged"] = flags.profile_changed

    cart = request.cart if request.cart is not None else snapshot.cart
    if cart is not None:
        context["cart"] = cart.to_payload()
        context["cartChanged"] = flags.cart_changed or request.cart is not None

    if snapshot.wishlist is not None:
        context["wishlist"] = {"products": [product.to_payload() for product in snapshot.wishlist]}
        context["wishlistChanged"] = flags.wishlist_changed

    if snapshot.merge_profile_ids:
        context["mergeProfileIds"] = list(snapshot.merge_profile_ids)

    for key, value in request.context_blocks().items():
        if key == "profile" and isinstance(context.get("profile"), dict) and isinstance(value, dict):
            context["profile"] = {**value, **context["profile"]}
        else:
            context[key] = value
    return context


def build_push_payload(session_id: str, snapshot: TrackedSnapshot, request: PushRequest) -> dict[str, Any]:
    return {
        "context": build_context(session_id, snapshot, request),
        "options": {
            "client": {
                "vendor": CLIENT_VENDOR,
                "platform": CLIENT_PLATFORM,
                "version": SDK_VERSION,
            }
        },
    }


def parse_push_response(body: bytes) -> RelevaResponse:
    decoded = decode_json_object(body, endpoint=PUSH_ENDPOINT)
    try:
        return RelevaResponse.model_validate(decoded)
    except ValidationError as exc:
        raise RelevaInvalidResponseError(
            f"Unexpected push response shape: {exc.error_count()} validation error(s)",
            endpoint=PUSH_ENDPOINT,
        ) from exc


async def send_push(
    credentials: ApiCredentials,
    config: RelevaConfig,
    transport: RetryingTransport,
    payload: dict[str, Any],
) -> RelevaResponse:
    """POST a push payload and decode the response.

    Raises the transport's typed errors, or
    :class:`RelevaInvalidResponseError` if a 2xx body cannot be decoded.
    """
    request = build_json_request(credentials, config, PUSH_ENDPOINT, payload)
    body = await transport.execute(request, config.max_retry_attempts)
    response = parse_push_response(body)
    _logger.debug("Push succeeded with %d recommender(s)", len(response.recommenders))
    return response
