"""
Pytest configuration and shared fakes.

Nothing here touches the network or sleeps: every collaborator of the core
is replaced by an in-memory fake and every delay is recorded instead.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Union

import pytest

from circolari_monitor.models import ItemRecord
from circolari_monitor.utils import HTTPError


class FakeFetcher:
    """Payload fetcher serving bytes from a dict; exceptions are raised."""

    def __init__(self, payloads: Optional[Dict[str, Union[bytes, Exception]]] = None) -> None:
        self.payloads: Dict[str, Union[bytes, Exception]] = dict(payloads or {})
        self.calls: List[str] = []

    def __call__(self, url: str) -> bytes:
        self.calls.append(url)
        value = self.payloads.get(url)
        if value is None:
            raise HTTPError(f"HTTP 404 for {url}")
        if isinstance(value, Exception):
            raise value
        return value


class FakeSink:
    """Notification sink failing the first ``fail_times`` deliveries."""

    def __init__(self, fail_times: int = 0, fail_forever: bool = False) -> None:
        self.fail_times = fail_times
        self.fail_forever = fail_forever
        self.delivered: List[str] = []
        self.attempts = 0
        self.reconnects = 0

    def deliver(self, text: str) -> None:
        self.attempts += 1
        if self.fail_forever or self.attempts <= self.fail_times:
            raise ConnectionError("sink down")
        self.delivered.append(text)

    def reconnect(self) -> None:
        self.reconnects += 1


class FakeListingSource:
    def __init__(self, pages: Dict[int, Union[List[ItemRecord], Exception]]) -> None:
        self.pages = pages
        self.requested: List[int] = []

    def fetch_page(self, page_index: int) -> List[ItemRecord]:
        self.requested.append(page_index)
        page = self.pages.get(page_index, [])
        if isinstance(page, Exception):
            raise page
        return list(page)


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def make_item(n: int, payloads: Optional[List[str]] = None) -> ItemRecord:
    identity = f"https://school.example/circolari/{n}.pdf"
    return ItemRecord(
        identity=identity,
        number=str(n),
        title=f"Circolare {n} title",
        description=f"Description {n}",
        date=f"0{n % 9 + 1}/10/2022",
        payload_urls=tuple(payloads) if payloads is not None else (identity,),
    )


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def items() -> List[ItemRecord]:
    """Three items in listing order: newest first."""
    return [make_item(3), make_item(2), make_item(1)]


@pytest.fixture
def fetcher(items) -> FakeFetcher:
    return FakeFetcher({item.identity: f"pdf-{item.number}".encode() for item in items})
