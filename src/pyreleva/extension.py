"""Deadline-bounded notification enrichment.

Runs in a short-lived context with a hard wall-clock budget: content is
updated from the Releva payload, and one image download is attempted. If the
download fails or the budget runs out, the content is delivered without the
attachment.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import tempfile
import time
import uuid
from collections.abc import Mapping
from pathlib import Path, PurePosixPath
from typing import Any, Protocol
from urllib.parse import urlparse

import aiohttp

from pyreleva._constants import RELEVA_DEFAULT_CATEGORY, RELEVA_DYNAMIC_CATEGORY
from pyreleva.notifications import extract_notification_data, is_releva_message

_logger = logging.getLogger(__name__)

#: Default processing budget in seconds, well inside the host extension expiry.
DEFAULT_BUDGET_S = 5.0

_MIME_EXTENSIONS: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/heic": "heic",
    "image/heif": "heif",
}

_TYPE_HINTS: dict[str, str] = {
    "jpg": "public.jpeg",
    "jpeg": "public.jpeg",
    "png": "public.png",
    "gif": "com.compuserve.gif",
    "webp": "public.webp",
    "heic": "public.heic",
    "heif": "public.heif",
}


def file_extension_for_mime(mime_type: str | None) -> str:
    if not mime_type:
        return "jpg"
    return _MIME_EXTENSIONS.get(mime_type.split(";", 1)[0].strip().lower(), "jpg")


def type_hint_for_extension(extension: str) -> str:
    return _TYPE_HINTS.get(extension.lower(), "public.image")


def _url_extension(url: str) -> str:
    suffix = PurePosixPath(urlparse(url).path).suffix
    return suffix[1:].lower() if suffix else ""


@dataclasses.dataclass(frozen=True, slots=True)
class Attachment:
    identifier: str
    path: Path
    type_hint: str


@dataclasses.dataclass(frozen=True, slots=True)
class NotificationContent:
    """Mutable-by-copy view of a notification being prepared for display."""

    payload: Mapping[Any, Any]
    title: str = ""
    body: str = ""
    category: str | None = None
    sound: str | None = None
    attachments: tuple[Attachment, ...] = ()

    def replace(self, **changes: Any) -> NotificationContent:
        return dataclasses.replace(self, **changes)


class Downloader(Protocol):
    async def download(self, url: str) -> Attachment:
        ...


class AttachmentDownloader:
    """Downloads images to a temporary directory using aiohttp.

    Parameters
    ----------
    session : aiohttp.ClientSession, optional
        Shared HTTP session. A short-lived session is opened per download
        when omitted.
    directory : path, optional
        Where downloaded files are written. Defaults to the system temp dir.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        *,
        directory: str | Path | None = None,
    ) -> None:
        self._session = session
        self._directory = Path(directory) if directory is not None else Path(tempfile.gettempdir())

    async def _fetch(self, session: aiohttp.ClientSession, url: str) -> tuple[bytes, str | None]:
        async with session.get(url) as resp:
            resp.raise_for_status()
            return await resp.read(), resp.content_type

    async def download(self, url: str) -> Attachment:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"Unsupported image URL: {url!r}")

        if self._session is not None:
            content, mime_type = await self._fetch(self._session, url)
        else:
            async with aiohttp.ClientSession() as session:
                content, mime_type = await self._fetch(session, url)

        extension = _url_extension(url) or file_extension_for_mime(mime_type)
        self._directory.mkdir(parents=True, exist_ok=True)
        path = self._directory / f"{uuid.uuid4()}.{extension}"
        path.write_bytes(content)
        _logger.debug("Downloaded %d bytes (%s) to %s", len(content), mime_type, path)
        return Attachment(identifier="image", path=path, type_hint=type_hint_for_extension(extension))


class NotificationExtension:
    """Applies Releva content to an incoming notification within a time budget."""

    def __init__(
        self,
        budget_seconds: float = DEFAULT_BUDGET_S,
        downloader: Downloader | None = None,
    ) -> None:
        if budget_seconds <= 0:
            raise ValueError("budget_seconds must be positive")
        self._budget = budget_seconds
        self._downloader: Downloader = downloader or AttachmentDownloader()

    @property
    def budget_seconds(self) -> float:
        return self._budget

    async def process(self, content: NotificationContent) -> NotificationContent:
        """Return enriched content; never raises for download problems.

        Non-Releva notifications are returned unchanged.
        """
        started = time.monotonic()
        if not is_releva_message(content.payload):
            return content

        data = extract_notification_data(content.payload)
        updated = content.replace(
            title=data.title if data.title is not None else content.title,
            body=data.body if data.body is not None else content.body,
            sound="default",
            category=RELEVA_DYNAMIC_CATEGORY if data.button else RELEVA_DEFAULT_CATEGORY,
        )
        if not data.image_url:
            return updated

        remaining = self._budget - (time.monotonic() - started)
        if remaining <= 0:
            return updated
        try:
            attachment = await asyncio.wait_for(self._downloader.download(data.image_url), timeout=remaining)
        except TimeoutError:
            _logger.debug("Image download exceeded the %.1fs budget; delivering without attachment", self._budget)
            return updated
        except (aiohttp.ClientError, OSError, ValueError) as exc:
            _logger.debug("Image attachment failed: %s", exc)
            return updated
        return updated.replace(attachments=(attachment,))
