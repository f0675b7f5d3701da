"""Ordered, blocking delivery of a cycle's notifications.

Messages go out strictly one after the other.  A message that cannot be
delivered blocks the pipeline: the sink is reconnected and the message is
retried until it goes through.  The store only learns about an item after
its message was accepted, and is persisted once the whole batch is out.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Sequence

from tenacity import RetryCallState

from .models import FingerprintStore, PendingNotification
from .ports import NotificationSink
from .utils import RetryPolicy

logger = logging.getLogger(__name__)


class DeliveryError(Exception):
    """Raised when a bounded retry policy gives up on a notification."""


class DeliveryPipeline:
    def __init__(
        self,
        sink: NotificationSink,
        *,
        persist: Callable[[FingerprintStore], None],
        delivery_delay_seconds: float = 5.0,
        retry_policy: Optional[RetryPolicy] = None,
        reconnect_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.sink = sink
        self.persist = persist
        self.delivery_delay_seconds = delivery_delay_seconds
        self.retry_policy = retry_policy or RetryPolicy(delay_seconds=60.0)
        self.reconnect_policy = reconnect_policy or self.retry_policy
        self._sleep = sleep
        self.dirty = False

    def deliver(self, notifications: Sequence[PendingNotification], store: FingerprintStore) -> int:
        """Deliver ``notifications`` in order, then persist ``store``.

        Returns the number of delivered messages.  Nothing is persisted when
        delivery gave up.  An empty batch only saves commits left unsaved by
        an earlier call (a failed save or an abandoned batch).
        """
        if not notifications:
            self.flush(store)
            return 0

        for index, notification in enumerate(notifications, start=1):
            self._deliver_one(notification)
            store.commit(notification.identity, notification.entry)
            self.dirty = True
            logger.info(
                "Delivered %s notification %d/%d for %s",
                notification.kind, index, len(notifications), notification.identity,
            )
            if self.delivery_delay_seconds > 0:
                self._sleep(self.delivery_delay_seconds)

        self._save(store)
        logger.info("State saved after %d delivered notification(s)", len(notifications))
        return len(notifications)

    def flush(self, store: FingerprintStore) -> None:
        """Persist ``store`` if it holds delivered entries not yet on disk."""
        if not self.dirty:
            return
        logger.info("Retrying save of previously delivered notifications")
        self._save(store)

    def _save(self, store: FingerprintStore) -> None:
        # dirty stays set when persist raises, so the next call retries
        self.persist(store)
        self.dirty = False

    def _deliver_one(self, notification: PendingNotification) -> None:
        try:
            for attempt in self.retry_policy.retrying(before_sleep=self._reconnect):
                with attempt:
                    self.sink.deliver(notification.text)
        except Exception as e:
            raise DeliveryError(
                f"Gave up delivering {notification.kind} notification for {notification.identity}"
            ) from e

    def _reconnect(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.error(
            "Delivery attempt %d failed (%s); reconnecting",
            retry_state.attempt_number, exc,
        )
        for attempt in self.reconnect_policy.retrying(before_sleep=_log_reconnect_failure):
            with attempt:
                self.sink.reconnect()


def _log_reconnect_failure(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.error("Reconnect attempt %d failed (%s); retrying", retry_state.attempt_number, exc)


__all__ = ["DeliveryError", "DeliveryPipeline"]
