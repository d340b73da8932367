"""Host capability providers.

The engine never talks to a platform UI layer directly. Registration for
remote notifications, opening URLs and in-app navigation go through a
:class:`CapabilityProvider` supplied by the host application.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

_logger = logging.getLogger(__name__)


class CapabilityProvider(Protocol):
    """Structural interface for host capabilities."""

    def register_for_remote_notifications(self) -> None:
        ...

    def open_url(self, url: str) -> None:
        ...

    def post_deep_link(self, url: str) -> None:
        ...

    def navigate_to_screen(self, screen: str, parameters: str | None) -> None:
        ...


class NoopCapabilityProvider:
    """Provider for contexts without UI capabilities (e.g. the extension)."""

    def register_for_remote_notifications(self) -> None:
        _logger.debug("Remote notification registration unavailable in this context")

    def open_url(self, url: str) -> None:
        _logger.debug("Cannot open URL in this context: %s", url)

    def post_deep_link(self, url: str) -> None:
        _logger.debug("Cannot post deep link in this context: %s", url)

    def navigate_to_screen(self, screen: str, parameters: str | None) -> None:
        _logger.debug("Cannot navigate to screen %r in this context", screen)


@dataclass(slots=True)
class RecordingCapabilityProvider:
    """Collects every capability call in order.

    Useful for hosts that poll for navigation requests instead of handling
    them through callbacks.
    """

    calls: list[tuple[str, tuple[Any, ...]]] = field(default_factory=list)

    def register_for_remote_notifications(self) -> None:
        self.calls.append(("register_for_remote_notifications", ()))

    def open_url(self, url: str) -> None:
        self.calls.append(("open_url", (url,)))

    def post_deep_link(self, url: str) -> None:
        self.calls.append(("post_deep_link", (url,)))

    def navigate_to_screen(self, screen: str, parameters: str | None) -> None:
        self.calls.append(("navigate_to_screen", (screen, parameters)))

    def clear(self) -> None:
        self.calls.clear()
