from __future__ import annotations

import asyncio
from pathlib import Path

import aiohttp
import pytest

from pyreleva.extension import (
    Attachment,
    AttachmentDownloader,
    NotificationContent,
    NotificationExtension,
    file_extension_for_mime,
    type_hint_for_extension,
)

_RELEVA_PAYLOAD = {
    "data": {
        "click_action": "RELEVA_NOTIFICATION_CLICK",
        "title": "Sale",
        "body": "50% off",
        "imageUrl": "https://img.example.com/banner.png",
    }
}


class _FakeDownloader:
    def __init__(self, *, delay: float = 0.0, error: BaseException | None = None) -> None:
        self.delay = delay
        self.error = error
        self.urls: list[str] = []

    async def download(self, url: str) -> Attachment:
        self.urls.append(url)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return Attachment(identifier="image", path=Path("/tmp/banner.png"), type_hint="public.png")


@pytest.mark.asyncio
async def test_releva_content_is_enriched_with_attachment() -> None:
    downloader = _FakeDownloader()
    extension = NotificationExtension(downloader=downloader)

    result = await extension.process(NotificationContent(payload=_RELEVA_PAYLOAD, title="orig"))

    assert result.title == "Sale"
    assert result.body == "50% off"
    assert result.sound == "default"
    assert result.category == "RELEVA_DEFAULT"
    assert [a.type_hint for a in result.attachments] == ["public.png"]
    assert downloader.urls == ["https://img.example.com/banner.png"]


@pytest.mark.asyncio
async def test_button_selects_dynamic_category() -> None:
    payload = {"data": {"click_action": "RELEVA_NOTIFICATION_CLICK", "button": "Shop now"}}
    extension = NotificationExtension(downloader=_FakeDownloader())

    result = await extension.process(NotificationContent(payload=payload))

    assert result.category == "RELEVA_DYNAMIC"
    assert result.attachments == ()


@pytest.mark.asyncio
async def test_non_releva_content_is_unchanged() -> None:
    downloader = _FakeDownloader()
    content = NotificationContent(payload={"data": {"title": "x"}}, title="keep")

    result = await NotificationExtension(downloader=downloader).process(content)

    assert result is content
    assert downloader.urls == []


@pytest.mark.asyncio
async def test_budget_exhaustion_delivers_without_attachment() -> None:
    extension = NotificationExtension(budget_seconds=0.01, downloader=_FakeDownloader(delay=1.0))

    result = await extension.process(NotificationContent(payload=_RELEVA_PAYLOAD))

    assert result.title == "Sale"
    assert result.attachments == ()


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [aiohttp.ClientConnectionError("down"), OSError("disk full"), ValueError("bad")])
async def test_download_failure_delivers_without_attachment(error: BaseException) -> None:
    extension = NotificationExtension(downloader=_FakeDownloader(error=error))

    result = await extension.process(NotificationContent(payload=_RELEVA_PAYLOAD))

    assert result.body == "50% off"
    assert result.attachments == ()


@pytest.mark.asyncio
async def test_downloader_rejects_non_http_urls(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        await AttachmentDownloader(directory=tmp_path).download("file:///etc/passwd")


def test_budget_must_be_positive() -> None:
    with pytest.raises(ValueError):
        NotificationExtension(budget_seconds=0)


def test_default_budget_is_a_few_seconds() -> None:
    assert NotificationExtension(downloader=_FakeDownloader()).budget_seconds == 5.0


@pytest.mark.parametrize(
    ("mime", "extension"),
    [
        ("image/png", "png"),
        ("image/jpeg; charset=binary", "jpg"),
        ("IMAGE/WEBP", "webp"),
        ("application/octet-stream", "jpg"),
        (None, "jpg"),
    ],
)
def test_file_extension_for_mime(mime: str | None, extension: str) -> None:
    assert file_extension_for_mime(mime) == extension


def test_type_hint_for_extension() -> None:
    assert type_hint_for_extension("JPG") == "public.jpeg"
    assert type_hint_for_extension("gif") == "com.compuserve.gif"
    assert type_hint_for_extension("bmp") == "public.image"
