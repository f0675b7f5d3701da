"""Content fingerprinting of item payloads.

Each payload is hashed on its own and the per-payload digests are hashed
again in listing order, so a bundle of documents reduces to one fixed-size
digest.  A bundle is fingerprinted completely or not at all.
"""

from __future__ import annotations

import hashlib
import logging
import time
from typing import Callable, Iterable, Optional

from .ports import PayloadFetcher

logger = logging.getLogger(__name__)

DIGEST_SIZE = hashlib.sha1().digest_size


def payload_digest(data: bytes) -> bytes:
    return hashlib.sha1(data).digest()


def combine_digests(digests: Iterable[bytes]) -> bytes:
    return hashlib.sha1(b"".join(digests)).digest()


class ContentFingerprinter:
    """Fetches an item's payloads and reduces them to one SHA-1 digest."""

    def __init__(
        self,
        fetch: PayloadFetcher,
        *,
        delay_seconds: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._fetch = fetch
        self._delay = delay_seconds
        self._sleep = sleep

    def fingerprint(self, payload_urls: Iterable[str]) -> Optional[bytes]:
        """Return the bundle digest, or None if any payload could not be fetched."""
        digests: list[bytes] = []
        for url in payload_urls:
            try:
                data = self._fetch(url)
            except Exception:
                logger.warning("Could not fetch payload %s", url, exc_info=True)
                return None
            finally:
                # courtesy delay applies to failed requests too
                if self._delay > 0:
                    self._sleep(self._delay)
            digests.append(payload_digest(data))
            logger.debug("Hashed %s (%d bytes)", url, len(data))
        return combine_digests(digests)


__all__ = ["ContentFingerprinter", "DIGEST_SIZE", "combine_digests", "payload_digest"]
