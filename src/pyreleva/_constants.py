"""Internal constants shared across the library."""

from datetime import timedelta

SDK_VERSION = "0.3.0"
SCHEMA_VERSION = "1.0.0"
USER_AGENT = f"pyreleva/{SDK_VERSION}"
CLIENT_VENDOR = "Releva"
CLIENT_PLATFORM = "python"

DEFAULT_BASE_URL = "https://releva.ai"
PUSH_ENDPOINT = "/api/v0/push"
PUSH_TOKEN_ENDPOINT = "/api/v0/appPush/tokens"

#: Rolling session lifetime, measured from creation (not sliding).
SESSION_TTL = timedelta(hours=24)

#: Pending engagement events older than this are dropped on load.
ENGAGEMENT_EVENT_MAX_AGE = timedelta(days=7)

#: Retry budget for per-callback-URL engagement delivery.
ENGAGEMENT_RETRY_ATTEMPTS = 2

NETWORK_RETRY_DELAY_S = 1.0
SERVER_RETRY_DELAY_S = 2.0

# ------------------------------------------------------------------
# Notification payload markers
# ------------------------------------------------------------------

RELEVA_CLICK_ACTION = "RELEVA_NOTIFICATION_CLICK"
RELEVA_CATEGORY_PREFIX = "RELEVA"
RELEVA_DEFAULT_CATEGORY = "RELEVA_DEFAULT"
RELEVA_DYNAMIC_CATEGORY = "RELEVA_DYNAMIC"
RELEVA_ACTION_BUTTON = "RELEVA_ACTION_BUTTON"
