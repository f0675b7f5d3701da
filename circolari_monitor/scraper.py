from __future__ import annotations

import datetime as _dt
import logging
from typing import Callable, Iterator, List, Optional
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup
from bs4.element import Tag

from .models import ItemRecord
from .utils import HTTPError, get_http_session, retryable_request

logger = logging.getLogger(__name__)

# Drupal "views" archive markup used by the school site.
ROW_SELECTOR = "div.view-circolari-archivio-new div.view-content tr"
NUMBER_SELECTOR = "td.views-field-field-circolare-protocollo"
TITLE_LINK_SELECTOR = "td.views-field-title > a"
DESCRIPTION_SELECTOR = "td.views-field-title > p"
DATE_SELECTOR = "span.date-display-single"
ATTACHMENT_SELECTOR = "td.views-field-title span.file a[href]"


class ListingError(Exception):
    """Raised when a listing page cannot be retrieved."""


@retryable_request
def _get(session: requests.Session, url: str, **kwargs) -> requests.Response:
    """Thin wrapper around session.get with retry policy from utils.retryable_request."""
    return session.get(url, **kwargs)


def current_school_year(today: Optional[_dt.date] = None) -> str:
    """Return the school year label for ``today``, e.g. ``"2022-2023"``.

    A school year starts in September.
    """
    today = today or _dt.date.today()
    if today.month >= 9:
        return f"{today.year}-{today.year + 1}"
    return f"{today.year - 1}-{today.year}"


def _field_text(row: Tag, selector: str, default: str = "") -> str:
    el = row.select_one(selector)
    if el is None:
        return default
    return el.get_text(" ", strip=True)


def _field_href(row: Tag, selector: str) -> Optional[str]:
    el = row.select_one(selector)
    if el is None:
        return None
    href = (el.get("href") or "").strip()
    return href or None


def _attachment_urls(row: Tag, base_url: str, identity: str) -> tuple[str, ...]:
    """The item link followed by the row's file attachments, in document order."""
    urls: List[str] = [identity]
    for a in row.select(ATTACHMENT_SELECTOR):
        href = (a.get("href") or "").strip()
        if not href:
            continue
        absolute = urljoin(base_url, href)
        if absolute not in urls:
            urls.append(absolute)
    return tuple(urls)


def parse_listing(html: str, base_url: str) -> List[ItemRecord]:
    """Turn one archive page into item records, in page order.

    Rows without a link cannot be tracked and are skipped; every other field
    falls back to an empty string when missing.
    """
    soup = BeautifulSoup(html, "html.parser")
    rows = soup.select(ROW_SELECTOR)
    items: List[ItemRecord] = []
    for row in rows:
        href = _field_href(row, TITLE_LINK_SELECTOR)
        if href is None:
            # header rows have no link
            logger.debug("Skipping listing row without link: %.200s", row)
            continue
        identity = urljoin(base_url, href)
        items.append(
            ItemRecord(
                identity=identity,
                number=_field_text(row, NUMBER_SELECTOR),
                title=_field_text(row, TITLE_LINK_SELECTOR),
                description=_field_text(row, DESCRIPTION_SELECTOR),
                date=_field_text(row, DATE_SELECTOR),
                payload_urls=_attachment_urls(row, base_url, identity),
            )
        )
    return items


class HtmlListingSource:
    """Listing source backed by the school's archive page.

    ``listing_url`` may contain a ``{school_year}`` placeholder, filled in on
    every fetch so the monitor follows the archive across the September
    roll-over without a restart.
    """

    def __init__(
        self,
        listing_url: str,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
        today: Optional[Callable[[], _dt.date]] = None,
    ) -> None:
        self.listing_url = listing_url
        self.session = session or get_http_session()
        self.timeout = timeout
        self._today = today or _dt.date.today

    def resolved_url(self) -> str:
        return self.listing_url.replace("{school_year}", current_school_year(self._today()))

    def fetch_page(self, page_index: int) -> List[ItemRecord]:
        if page_index < 1:
            raise ValueError("page_index is 1-based")
        url = self.resolved_url()
        # Drupal pagers are 0-based and omit the parameter on the first page.
        params = {"page": str(page_index - 1)} if page_index > 1 else None
        try:
            resp = _get(self.session, url, params=params, timeout=self.timeout)
        except (requests.RequestException, HTTPError) as e:
            raise ListingError(f"Listing page {page_index} unavailable: {e}") from e

        items = parse_listing(resp.text, resp.url or url)
        if not items:
            logger.warning(
                "No items extracted from listing page %d (%s); did the site layout change?",
                page_index, url,
            )
        return items


def fetch_payload(
    url: str,
    *,
    session: Optional[requests.Session] = None,
    timeout: float = 30.0,
    chunk_size: int = 64 * 1024,
) -> bytes:
    """Download the full body at ``url``.

    Raises ``HTTPError`` on any network or HTTP failure; a truncated body is
    a failure too, never a shorter payload.
    """
    close_session = False
    if session is None:
        session = get_http_session()
        close_session = True
    try:
        with session.get(url, timeout=timeout, stream=True) as resp:
            if resp.status_code != 200:
                raise HTTPError(f"HTTP {resp.status_code} for {url}")
            return b"".join(_iter_body(resp, chunk_size))
    except requests.RequestException as e:
        raise HTTPError(f"Download failed for {url}: {e}") from e
    finally:
        if close_session:
            session.close()


def _iter_body(resp: requests.Response, chunk_size: int) -> Iterator[bytes]:
    for chunk in resp.iter_content(chunk_size):
        if chunk:
            yield chunk


class PayloadDownloader:
    """Payload fetcher bound to one HTTP session."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = 30.0) -> None:
        self.session = session or get_http_session()
        self.timeout = timeout

    def __call__(self, url: str) -> bytes:
        return fetch_payload(url, session=self.session, timeout=self.timeout)


__all__ = [
    "ListingError",
    "HtmlListingSource",
    "PayloadDownloader",
    "current_school_year",
    "fetch_payload",
    "parse_listing",
]
