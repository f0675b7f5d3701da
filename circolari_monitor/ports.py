"""Capabilities the monitor core depends on.

Concrete implementations live in ``scraper`` (listing and payloads) and
``notifier`` (Telegram, console); tests provide in-memory fakes.
"""

from __future__ import annotations

from typing import List, Protocol

from .models import ItemRecord


class ListingSource(Protocol):
    def fetch_page(self, page_index: int) -> List[ItemRecord]:
        """Return the items of one listing page (1-based), newest first."""
        ...


class PayloadFetcher(Protocol):
    def __call__(self, url: str) -> bytes:
        """Return the raw bytes at ``url`` or raise."""
        ...


class NotificationSink(Protocol):
    def deliver(self, text: str) -> None:
        """Deliver one message; raise if it was not accepted."""
        ...

    def reconnect(self) -> None:
        """Re-establish the connection; raise if the sink is still unreachable."""
        ...


__all__ = ["ListingSource", "PayloadFetcher", "NotificationSink"]
