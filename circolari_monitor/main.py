from __future__ import annotations

import argparse
import logging
import sys
import time
from typing import Callable, List, Optional, Sequence

from . import __version__, config
from .db import load_store, save_store
from .delivery import DeliveryPipeline
from .detector import ChangeDetector
from .fingerprint import ContentFingerprinter
from .models import CycleMode, FingerprintStore, ItemRecord, MonitorSettings
from .notifier import ConsoleNotifier, TelegramNotifier
from .ports import ListingSource
from .scraper import HtmlListingSource, PayloadDownloader
from .utils import RetryPolicy, get_http_session

APP_NAME = "CircolariMonitor"

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


class Monitor:
    """Runs discovery/verification cycles on a fixed schedule.

    One cycle: read the listing pages, let the detector stage notifications
    against the store, hand them to the delivery pipeline.  Cycles never
    overlap and an exception inside a cycle never stops the loop.
    """

    def __init__(
        self,
        source: ListingSource,
        detector: ChangeDetector,
        pipeline: DeliveryPipeline,
        store: FingerprintStore,
        *,
        interval_seconds: float = 600.0,
        verification_period: int = 36,
        max_pages: int = 1,
        clock: Callable[[], float] = time.time,
        monotonic: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if verification_period < 1:
            raise ValueError("verification_period must be at least 1")
        self.source = source
        self.detector = detector
        self.pipeline = pipeline
        self.store = store
        self.interval_seconds = interval_seconds
        self.verification_period = verification_period
        self.max_pages = max_pages
        self.cycle_index = 0
        self._clock = clock
        self._monotonic = monotonic
        self._sleep = sleep

    def mode_for(self, cycle_index: int) -> CycleMode:
        if cycle_index % self.verification_period == 0:
            return CycleMode.VERIFICATION
        return CycleMode.DISCOVERY

    def collect_items(self) -> Optional[List[ItemRecord]]:
        """Read pages ``1..max_pages`` in order; None if every page failed."""
        items: List[ItemRecord] = []
        failures = 0
        for page_index in range(1, self.max_pages + 1):
            try:
                page = self.source.fetch_page(page_index)
            except Exception:
                failures += 1
                logger.exception("Could not read listing page %d", page_index)
                continue
            items.extend(page)
        if failures == self.max_pages:
            return None
        return items

    def run_cycle(self) -> int:
        """Run one cycle and return the number of delivered notifications."""
        self.cycle_index += 1
        mode = self.mode_for(self.cycle_index)
        logger.info("Cycle %d (%s) starting", self.cycle_index, mode.value)

        items = self.collect_items()
        if items is None:
            logger.error("Cycle %d: listing unavailable, nothing checked", self.cycle_index)
            self.pipeline.flush(self.store)
            return 0

        staged = self.detector.detect(items, self.store, mode, self._clock())
        delivered = self.pipeline.deliver(staged, self.store)
        if not delivered:
            logger.info("Cycle %d: no changes", self.cycle_index)
        return delivered

    def run_forever(self, max_cycles: Optional[int] = None) -> None:
        completed = 0
        while max_cycles is None or completed < max_cycles:
            started = self._monotonic()
            try:
                self.run_cycle()
            except Exception:
                logger.exception("Unexpected error during cycle %d", self.cycle_index)
            completed += 1
            elapsed = self._monotonic() - started
            remaining = self.interval_seconds - elapsed
            if remaining > 0:
                self._sleep(remaining)


def build_monitor(settings: MonitorSettings, *, test_mode: bool = False) -> Monitor:
    """Wire the production collaborators around a freshly loaded store."""
    session = get_http_session()
    source = HtmlListingSource(
        settings.listing_url, session=session, timeout=settings.request_timeout_seconds
    )
    fingerprinter = ContentFingerprinter(
        PayloadDownloader(session=session, timeout=settings.request_timeout_seconds),
        delay_seconds=settings.fetch_delay_seconds,
    )
    detector = ChangeDetector(
        fingerprinter,
        verification_window=settings.verification_window,
        max_items=settings.max_items_per_cycle,
    )

    if test_mode:
        sink = ConsoleNotifier()
    else:
        sink = TelegramNotifier(
            config.TELEGRAM_BOT_TOKEN or "",
            config.TELEGRAM_CHANNEL_ID or "",
            timeout=settings.request_timeout_seconds,
        )

    state_file = settings.state_file
    pipeline = DeliveryPipeline(
        sink,
        persist=lambda store: save_store(store, state_file),
        delivery_delay_seconds=settings.delivery_delay_seconds,
        retry_policy=RetryPolicy(delay_seconds=settings.reconnect_delay_seconds),
    )
    return Monitor(
        source,
        detector,
        pipeline,
        load_store(state_file),
        interval_seconds=settings.check_interval_seconds,
        verification_period=settings.verification_period,
        max_pages=settings.max_pages,
    )


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="circolari-monitor",
        description="Announce new and updated school circulars on Telegram.",
    )
    parser.add_argument(
        "--test",
        action="store_true",
        help="print messages to the terminal instead of posting them to Telegram",
    )
    parser.add_argument("--once", action="store_true", help="run a single cycle and exit")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Initialise and run the monitoring loop."""
    args = parse_args(argv)
    setup_logging()
    logger.info("--- %s v%s ---", APP_NAME, __version__)

    try:
        config.validate(test_mode=args.test)
    except config.ConfigError as e:
        logger.error("Invalid configuration: %s", e)
        sys.exit(1)

    if args.test:
        logger.info("Test mode: messages are printed to the terminal instead of Telegram")

    settings = config.build_settings()
    monitor = build_monitor(settings, test_mode=args.test)
    logger.info(
        "Watching %s every %ss (verification every %d cycles, last %d items)",
        settings.listing_url,
        settings.check_interval_seconds,
        settings.verification_period,
        settings.verification_window,
    )

    if args.once:
        monitor.run_cycle()
        return
    monitor.run_forever()


if __name__ == "__main__":
    main()
