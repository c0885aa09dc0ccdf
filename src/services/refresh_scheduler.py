from __future__ import annotations

import logging
import threading
from datetime import timedelta
from enum import StrEnum
from itertools import count
from typing import Callable, Iterable

from domain.base_types import CoinId
from domain.pricing import PRICE_TTL, PriceEntry, PriceProvider

logger = logging.getLogger(__name__)

PriceCallback = Callable[[dict[CoinId, PriceEntry]], None]

_SUBSCRIPTION_IDS = count(1)


class AppState(StrEnum):
    ACTIVE = "active"
    BACKGROUND = "background"
    INACTIVE = "inactive"


class PriceSubscription:
    def __init__(self, scheduler: PriceRefreshScheduler, coin_ids: Iterable[CoinId], callback: PriceCallback) -> None:
        self.id = next(_SUBSCRIPTION_IDS)
        self.coin_ids: frozenset[CoinId] = frozenset(coin_ids)
        self.callback = callback
        self._scheduler = scheduler
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def update(self, coin_ids: Iterable[CoinId]) -> None:
        """Replace the watched id set; newly added ids are fetched right away."""
        if not self._active:
            return
        self._scheduler._change(self, frozenset(coin_ids))

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        self._scheduler._remove(self)


class PriceRefreshScheduler:
    """Keeps subscribed coin prices current.

    Refreshes happen on the first subscription, on every ``interval`` tick of
    the background thread while anyone is subscribed, and whenever the app
    returns to the foreground. Each refresh asks the price provider once for
    the union of all subscribed ids; each subscriber is then called with the
    entries for its own ids, an empty map when it follows none. Cancelling subscriptions never touches the cache.
    """

    def __init__(self, prices: PriceProvider, *, interval: timedelta = PRICE_TTL) -> None:
        if interval <= timedelta(0):
            msg = "interval must be positive"
            raise ValueError(msg)
        self._prices = prices
        self.interval = interval
        self._subscriptions: dict[int, PriceSubscription] = {}
        self._last_prices: dict[CoinId, PriceEntry] = {}
        self._app_state = AppState.ACTIVE
        self._lock = threading.Lock()
        self._refresh_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def last_prices(self) -> dict[CoinId, PriceEntry]:
        with self._lock:
            return dict(self._last_prices)

    @property
    def app_state(self) -> AppState:
        return self._app_state

    def subscribe(self, coin_ids: Iterable[CoinId], callback: PriceCallback) -> PriceSubscription:
        subscription = PriceSubscription(self, coin_ids, callback)
        with self._lock:
            first = not self._subscriptions
            self._subscriptions[subscription.id] = subscription
            covered = subscription.coin_ids <= self._last_prices.keys()
            known = dict(self._last_prices)

        if first or not covered:
            self.refresh()
        else:
            self._deliver(subscription, known)
        return subscription

    def refresh(self) -> dict[CoinId, PriceEntry]:
        """Fetch the union of subscribed ids and broadcast the result."""
        with self._refresh_lock:
            with self._lock:
                wanted = set().union(*(sub.coin_ids for sub in self._subscriptions.values()))
                subscribed = bool(self._subscriptions)
            if not subscribed:
                return {}

            prices: dict[CoinId, PriceEntry] = {}
            if wanted:
                logger.info("Refreshing prices for %d subscribed coins", len(wanted))
                prices = self._prices.fetch_prices(wanted)

            with self._lock:
                self._last_prices.update(prices)
                targets = list(self._subscriptions.values())
            for subscription in targets:
                self._deliver(subscription, prices)
            return prices

    def on_app_state_change(self, state: AppState) -> None:
        previous, self._app_state = self._app_state, state
        if state == AppState.ACTIVE and previous != AppState.ACTIVE:
            logger.info("App returned to foreground, refreshing prices")
            self.refresh()

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="price-refresh", daemon=True)
        self._thread.start()
        logger.info("Price refresh thread started (every %ss)", int(self.interval.total_seconds()))

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def _run(self) -> None:
        while not self._stop.wait(self.interval.total_seconds()):
            if not self.subscriber_count():
                continue
            try:
                self.refresh()
            except Exception:
                logger.exception("Scheduled price refresh failed")

    def _change(self, subscription: PriceSubscription, coin_ids: frozenset[CoinId]) -> None:
        with self._lock:
            subscription.coin_ids = coin_ids
            covered = coin_ids <= self._last_prices.keys()
            known = dict(self._last_prices)
        if covered:
            self._deliver(subscription, known)
        else:
            self.refresh()

    def _remove(self, subscription: PriceSubscription) -> None:
        with self._lock:
            self._subscriptions.pop(subscription.id, None)

    @staticmethod
    def _deliver(subscription: PriceSubscription, prices: dict[CoinId, PriceEntry]) -> None:
        if not subscription.active:
            return
        own = {coin_id: prices[coin_id] for coin_id in subscription.coin_ids if coin_id in prices}
        try:
            subscription.callback(own)
        except Exception:
            logger.exception("Price subscriber %d failed", subscription.id)


__all__ = ["AppState", "PriceCallback", "PriceRefreshScheduler", "PriceSubscription"]
