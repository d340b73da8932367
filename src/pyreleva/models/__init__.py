"""Value models for pyreleva."""

from pyreleva.models.cart import Cart, CartProduct, WishlistProduct
from pyreleva.models.device import DeviceType
from pyreleva.models.engagement import (
    EngagementEvent,
    EngagementEventType,
    filter_expired,
    group_by_callback_url,
    sort_by_priority,
)
from pyreleva.models.notification import NotificationData
from pyreleva.models.requests import PushRequest
from pyreleva.models.responses import RelevaResponse, SyncResult

__all__ = [
    "Cart",
    "CartProduct",
    "DeviceType",
    "EngagementEvent",
    "EngagementEventType",
    "NotificationData",
    "PushRequest",
    "RelevaResponse",
    "SyncResult",
    "WishlistProduct",
    "filter_expired",
    "group_by_callback_url",
    "sort_by_priority",
]
