"""Change detection: decide which listed items are new or updated.

The detector never mutates the store.  It returns staged notifications, each
carrying the tracking entry to commit once the message has been delivered.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from .fingerprint import ContentFingerprinter
from .formatting import format_new_item, format_update
from .models import CycleMode, FingerprintStore, ItemRecord, PendingNotification, TrackingEntry

logger = logging.getLogger(__name__)


class ChangeDetector:
    def __init__(
        self,
        fingerprinter: ContentFingerprinter,
        *,
        verification_window: int = 50,
        max_items: int = 0,
    ) -> None:
        self.fingerprinter = fingerprinter
        self.verification_window = verification_window
        self.max_items = max_items

    def detect(
        self,
        items: Iterable[ItemRecord],
        store: FingerprintStore,
        mode: CycleMode,
        now: float,
    ) -> List[PendingNotification]:
        """Return staged notifications for this cycle, oldest change first.

        ``items`` must be in listing order (newest first); the result is
        reversed so the channel reads chronologically.
        """
        items = list(items)
        if mode is CycleMode.VERIFICATION:
            staged = self._verify(items[: self.verification_window], store, now)
        else:
            if self.max_items > 0:
                items = items[: self.max_items]
            staged = self._discover(items, store, now)
        staged.reverse()
        logger.info("%s cycle staged %d notification(s) from %d item(s)",
                    mode.value.capitalize(), len(staged), len(items))
        return staged

    def _discover(
        self, items: List[ItemRecord], store: FingerprintStore, now: float
    ) -> List[PendingNotification]:
        staged: List[PendingNotification] = []
        staged_ids: set[str] = set()
        for item in items:
            if item.identity in store or item.identity in staged_ids:
                continue
            digest = self.fingerprinter.fingerprint(item.payload_urls)
            if digest is None:
                logger.warning("Skipping new item %s: payload not available, will retry", item.identity)
                continue
            entry = TrackingEntry(first_seen_at=now, content_digest=digest, update_count=0)
            staged.append(
                PendingNotification(
                    identity=item.identity,
                    kind="new",
                    text=format_new_item(item),
                    entry=entry,
                )
            )
            staged_ids.add(item.identity)
            logger.info("New item %s (%s)", item.number or "?", item.identity)
        return staged

    def _verify(
        self, items: List[ItemRecord], store: FingerprintStore, now: float
    ) -> List[PendingNotification]:
        staged: List[PendingNotification] = []
        checked: set[str] = set()
        for item in items:
            if item.identity in checked:
                continue
            checked.add(item.identity)
            stored = store.get(item.identity)
            if stored is None:
                continue
            update = self._check_one(item, stored, now)
            if update is not None:
                staged.append(update)
        return staged

    def _check_one(
        self, item: ItemRecord, stored: TrackingEntry, now: float
    ) -> Optional[PendingNotification]:
        digest = self.fingerprinter.fingerprint(item.payload_urls)
        if digest is None:
            logger.warning("Skipping verification of %s: payload not available", item.identity)
            return None
        if len(digest) != len(stored.content_digest):
            logger.warning(
                "Stored digest for %s has %d bytes, expected %d; not comparable",
                item.identity, len(stored.content_digest), len(digest),
            )
            return None
        if digest == stored.content_digest:
            return None

        update_count = stored.update_count + 1
        entry = TrackingEntry(
            first_seen_at=stored.first_seen_at,
            content_digest=digest,
            update_count=update_count,
        )
        logger.info("Item %s changed (update #%d)", item.identity, update_count)
        return PendingNotification(
            identity=item.identity,
            kind="update",
            text=format_update(item, update_count, int(now * 1000)),
            entry=entry,
        )


__all__ = ["ChangeDetector"]
