"""pyreleva - Async Python client for Releva state sync and push engagement."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyreleva")
except PackageNotFoundError:
    __version__ = "0+local"
from pyreleva.batcher import BatcherState, EngagementBatcher, FlushOutcome
from pyreleva.capabilities import CapabilityProvider, NoopCapabilityProvider, RecordingCapabilityProvider
from pyreleva.client import (
    RelevaClient,
    clear_default_client,
    get_default_client,
    register_default_client,
)
from pyreleva.config import ApiCredentials, RelevaConfig
from pyreleva.exceptions import (
    RelevaConfigError,
    RelevaError,
    RelevaInvalidResponseError,
    RelevaMissingFieldError,
    RelevaNetworkError,
    RelevaServerError,
    RelevaUnauthorizedError,
)
from pyreleva.extension import AttachmentDownloader, NotificationContent, NotificationExtension
from pyreleva.models import (
    Cart,
    CartProduct,
    DeviceType,
    EngagementEvent,
    EngagementEventType,
    NotificationData,
    PushRequest,
    RelevaResponse,
    SyncResult,
    WishlistProduct,
)
from pyreleva.notifications import NotificationHandler, extract_notification_data, is_releva_message
from pyreleva.session import Session, SessionManager
from pyreleva.storage import JsonFileKeyValueStore, KeyValueStore, MemoryKeyValueStore, StorageService

__all__ = [
    "__version__",
    "ApiCredentials",
    "AttachmentDownloader",
    "BatcherState",
    "CapabilityProvider",
    "Cart",
    "CartProduct",
    "DeviceType",
    "EngagementBatcher",
    "EngagementEvent",
    "EngagementEventType",
    "FlushOutcome",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "NoopCapabilityProvider",
    "NotificationContent",
    "NotificationData",
    "NotificationExtension",
    "NotificationHandler",
    "PushRequest",
    "RecordingCapabilityProvider",
    "RelevaClient",
    "RelevaConfig",
    "RelevaConfigError",
    "RelevaError",
    "RelevaInvalidResponseError",
    "RelevaMissingFieldError",
    "RelevaNetworkError",
    "RelevaResponse",
    "RelevaServerError",
    "RelevaUnauthorizedError",
    "Session",
    "SessionManager",
    "StorageService",
    "SyncResult",
    "WishlistProduct",
    "clear_default_client",
    "extract_notification_data",
    "get_default_client",
    "is_releva_message",
    "register_default_client",
]
