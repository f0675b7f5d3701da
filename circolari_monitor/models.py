"""Domain types shared by the detector, the delivery pipeline and persistence.

The fingerprint store is a plain value: it is loaded once at start-up,
passed explicitly into every cycle and saved back by the delivery pipeline.
Nothing in here talks to the network or the disk.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple


class CycleMode(enum.Enum):
    DISCOVERY = "discovery"
    VERIFICATION = "verification"


@dataclass(frozen=True)
class ItemRecord:
    """One row of the listing, as produced by a listing source."""

    identity: str
    number: str = ""
    title: str = ""
    description: str = ""
    date: str = ""
    payload_urls: Tuple[str, ...] = ()


@dataclass(frozen=True)
class TrackingEntry:
    first_seen_at: float
    content_digest: bytes
    update_count: int = 0


@dataclass(frozen=True)
class PendingNotification:
    """A rendered message plus the store mutation it implies once delivered."""

    identity: str
    kind: str  # "new" | "update"
    text: str
    entry: TrackingEntry


@dataclass
class FingerprintStore:
    """Everything the monitor remembers between runs.

    Kept as three independent mappings because that is how they are
    persisted: a state file written by an older release may carry only the
    first one or two of them.
    """

    first_seen: Dict[str, float] = field(default_factory=dict)
    digests: Dict[str, bytes] = field(default_factory=dict)
    update_counts: Dict[str, int] = field(default_factory=dict)

    def __contains__(self, identity: object) -> bool:
        return identity in self.first_seen

    def __len__(self) -> int:
        return len(self.first_seen)

    def get(self, identity: str) -> Optional[TrackingEntry]:
        """Return the tracking entry for ``identity``, or None without a digest."""
        digest = self.digests.get(identity)
        if digest is None:
            return None
        return TrackingEntry(
            first_seen_at=self.first_seen.get(identity, 0.0),
            content_digest=digest,
            update_count=self.update_counts.get(identity, 0),
        )

    def commit(self, identity: str, entry: TrackingEntry) -> None:
        """Apply one delivered entry.

        ``first_seen`` is only written the first time an identity is seen and
        the update counter never goes backwards.
        """
        self.first_seen.setdefault(identity, entry.first_seen_at)
        self.digests[identity] = entry.content_digest
        previous = self.update_counts.get(identity, 0)
        self.update_counts[identity] = max(previous, entry.update_count)


@dataclass(frozen=True)
class MonitorSettings:
    """Operational knobs consumed by the core; built by ``config.build_settings``."""

    listing_url: str
    state_file: str
    check_interval_seconds: float = 600.0
    verification_period: int = 36
    verification_window: int = 50
    max_pages: int = 1
    max_items_per_cycle: int = 0
    fetch_delay_seconds: float = 3.0
    delivery_delay_seconds: float = 5.0
    reconnect_delay_seconds: float = 60.0
    request_timeout_seconds: float = 30.0


__all__ = [
    "CycleMode",
    "ItemRecord",
    "TrackingEntry",
    "PendingNotification",
    "FingerprintStore",
    "MonitorSettings",
]
