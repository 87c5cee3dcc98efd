"""
Change Feed

Row-level change notifications from the store, delivered synchronously
to subscribers right after a successful write.

Consumers patch their in-memory snapshot from each event and then
recompute summaries from the full snapshot. The feed itself knows
nothing about summaries.
"""

from collections.abc import Callable
from typing import Optional, Union

import structlog

from meterlog.models.reading import (
    ChangeEvent,
    ChangeTable,
    ChangeType,
    House,
    Reading,
)


logger = structlog.get_logger(__name__)

ChangeCallback = Callable[[ChangeEvent], object]


class Subscription:
    """Handle returned by ChangeFeed.subscribe()."""

    def __init__(
        self,
        feed: "ChangeFeed",
        callback: ChangeCallback,
        user_id: Optional[str] = None,
        table: Optional[ChangeTable] = None,
    ):
        self._feed = feed
        self.callback = callback
        self.user_id = user_id
        self.table = table

    @property
    def active(self) -> bool:
        return self._feed.is_subscribed(self)

    def matches(self, event: ChangeEvent) -> bool:
        if self.table is not None and event.table != self.table:
            return False
        if self.user_id is not None and event.user_id != self.user_id:
            return False
        return True

    def unsubscribe(self) -> None:
        self._feed.unsubscribe(self)


class ChangeFeed:
    """
    In-process publish/subscribe for store changes.

    A callback that raises is logged and skipped; the remaining
    subscribers still receive the event.
    """

    def __init__(self):
        self._subscriptions: list[Subscription] = []

    def subscribe(
        self,
        callback: ChangeCallback,
        user_id: Optional[str] = None,
        table: Optional[ChangeTable] = None,
    ) -> Subscription:
        """
        Register a callback.

        Args:
            callback: Called with every matching ChangeEvent
            user_id: Only deliver changes for this user
            table: Only deliver changes for this table
        """
        subscription = Subscription(self, callback, user_id=user_id, table=table)
        self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def is_subscribed(self, subscription: Subscription) -> bool:
        return subscription in self._subscriptions

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def publish(self, event: ChangeEvent) -> int:
        """
        Deliver an event to every matching subscriber.

        Returns the number of callbacks that completed.
        """
        delivered = 0
        # Copy: a callback may unsubscribe itself
        for subscription in list(self._subscriptions):
            if not subscription.matches(event):
                continue
            try:
                subscription.callback(event)
                delivered += 1
            except Exception as e:
                logger.error(
                    "change_callback_failed",
                    event_type=event.event_type.value,
                    table=event.table.value,
                    error=str(e),
                )
        return delivered

    def publish_change(
        self,
        event_type: ChangeType,
        table: ChangeTable,
        new: Optional[Union[Reading, House]] = None,
        old: Optional[Union[Reading, House]] = None,
    ) -> int:
        return self.publish(ChangeEvent(
            event_type=event_type,
            table=table,
            new=new,
            old=old,
        ))
