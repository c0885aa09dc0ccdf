from __future__ import annotations

import logging
import threading
from itertools import count
from typing import Callable, Generic, TypeVar

from domain.base_types import UserId

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SUBSCRIPTION_IDS = count(1)


class Subscription(Generic[T]):
    """Handle returned by ``SubscriptionHub.subscribe``; no callbacks fire after ``cancel``."""

    def __init__(self, hub: SubscriptionHub[T], owner_id: UserId, callback: Callable[[list[T]], None]) -> None:
        self.id = next(_SUBSCRIPTION_IDS)
        self.owner_id = owner_id
        self.callback = callback
        self._hub = hub
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        self._hub._remove(self)


class SubscriptionHub(Generic[T]):
    """Push-based change feed for per-owner collections.

    Publishers send the owner's full collection after every change; every
    active subscription of that owner receives it.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._subscriptions: dict[UserId, dict[int, Subscription[T]]] = {}
        self._lock = threading.Lock()

    def subscribe(
        self,
        owner_id: UserId,
        callback: Callable[[list[T]], None],
        *,
        initial: list[T] | None = None,
    ) -> Subscription[T]:
        subscription: Subscription[T] = Subscription(self, owner_id, callback)
        with self._lock:
            self._subscriptions.setdefault(owner_id, {})[subscription.id] = subscription
        logger.debug("%s: owner %s subscribed (%d)", self.name, owner_id, subscription.id)
        if initial is not None:
            self._deliver(subscription, initial)
        return subscription

    def publish(self, owner_id: UserId, items: list[T]) -> None:
        with self._lock:
            targets = list(self._subscriptions.get(owner_id, {}).values())
        for subscription in targets:
            self._deliver(subscription, items)

    def cancel_owner(self, owner_id: UserId) -> int:
        """Cancel every subscription of ``owner_id``, e.g. when their session ends."""
        with self._lock:
            targets = list(self._subscriptions.pop(owner_id, {}).values())
        for subscription in targets:
            subscription.cancel()
        if targets:
            logger.debug("%s: cancelled %d subscriptions of owner %s", self.name, len(targets), owner_id)
        return len(targets)

    def subscriber_count(self, owner_id: UserId) -> int:
        with self._lock:
            return len(self._subscriptions.get(owner_id, {}))

    def _remove(self, subscription: Subscription[T]) -> None:
        with self._lock:
            owned = self._subscriptions.get(subscription.owner_id)
            if owned is None:
                return
            owned.pop(subscription.id, None)
            if not owned:
                del self._subscriptions[subscription.owner_id]

    def _deliver(self, subscription: Subscription[T], items: list[T]) -> None:
        if not subscription.active:
            return
        try:
            subscription.callback(list(items))
        except Exception:
            logger.exception("%s: subscriber %d of owner %s failed", self.name, subscription.id, subscription.owner_id)


__all__ = ["Subscription", "SubscriptionHub"]
