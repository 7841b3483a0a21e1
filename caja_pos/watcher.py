"""Polling watchers that surface externally-created work (web orders, table charges) once per session."""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any, Callable, Protocol

from caja_pos.config import POLL_INTERVAL_SECONDS, SEEN_SET_LIMIT
from caja_pos.constant import CLOSED_ORDER_STATES, TABLE_CHARGES_KIND, WEB_ORDERS_KIND
from caja_pos.logs import get_logger
from caja_pos.models import Operator, PendingEvent, now_local, parse_timestamp
from caja_pos.persistence import SessionStorage

logger = get_logger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class Timer(Protocol):
    def stop(self) -> None: ...


class Scheduler(Protocol):
    """Textual's timer API; the running App satisfies it."""

    def set_timer(self, delay: float, callback: Callable[[], Any]) -> Timer: ...

    def set_interval(self, interval: float, callback: Callable[[], Any]) -> Timer: ...


class PersistedSeenSet:
    """Bounded, insertion-ordered ids already surfaced; the oldest are evicted past `limit`."""

    def __init__(self, storage: SessionStorage, kind: str, location_id: str, limit: int = SEEN_SET_LIMIT) -> None:
        self.storage = storage
        self.key = f"{kind}_{location_id}"
        self.limit = limit

    def ids(self) -> list[str]:
        raw = self.storage.get_json(self.key, [])
        if not isinstance(raw, list):
            return []
        return [str(item) for item in raw]

    def __contains__(self, item_id: object) -> bool:
        return item_id in self.ids()

    def __len__(self) -> int:
        return len(self.ids())

    def add(self, item_id: str) -> None:
        ids = self.ids()
        if item_id in ids:
            return
        ids.append(item_id)
        self.storage.set_json(self.key, ids[-self.limit :])


def item_id(item: dict[str, Any]) -> str:
    return str(item.get("_id") or item.get("id") or "")


def event_time(item: dict[str, Any]) -> datetime:
    stamp = parse_timestamp(item.get("fecha") or item.get("createdAt") or item.get("updatedAt"))
    return stamp or _EPOCH


def web_order_state(order: dict[str, Any]) -> str:
    return str(order.get("estado_pedido") or order.get("estado") or order.get("status") or "pendiente").lower()


def is_open_web_order(order: dict[str, Any]) -> bool:
    return web_order_state(order) not in CLOSED_ORDER_STATES


def always_open(_: dict[str, Any]) -> bool:
    return True


class NotificationWatcher:
    """Poll, compare against the seen set, alert on the newest unseen open item.

    At most one item is surfaced per tick; the rest stay unseen and surface
    on later ticks. Poll failures are absorbed and the next tick retries.
    """

    def __init__(
        self,
        kind: str,
        fetch: Callable[[], list[dict[str, Any]]],
        is_open: Callable[[dict[str, Any]], bool],
        storage: SessionStorage,
        scheduler: Scheduler,
        on_alert: Callable[[PendingEvent], None],
        sound: Callable[[], None] | None = None,
        interval: float = POLL_INTERVAL_SECONDS,
        dispatch: Callable[[Callable[[], Any]], Any] | None = None,
        seen_limit: int = SEEN_SET_LIMIT,
    ) -> None:
        self.kind = kind
        self.fetch = fetch
        self.is_open = is_open
        self.storage = storage
        self.scheduler = scheduler
        self.on_alert = on_alert
        self.sound = sound
        self.interval = interval
        self.dispatch = dispatch
        self.seen_limit = seen_limit
        self.location_id = ""
        self.seen: PersistedSeenSet | None = None
        self._timer: Timer | None = None
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def active(self) -> bool:
        return self._timer is not None

    def update_context(self, operator: Operator | None, location_id: str) -> None:
        """Run only while a till-capable operator has an active location."""
        qualifies = operator is not None and operator.can_manage_till and bool(location_id)
        if not qualifies:
            self.deactivate()
            return
        if self.active and location_id == self.location_id:
            return
        self.deactivate()
        self.activate(location_id)

    def activate(self, location_id: str) -> None:
        with self._lock:
            self._generation += 1
            self.location_id = location_id
            self.seen = PersistedSeenSet(self.storage, self.kind, location_id, self.seen_limit)
        logger.info("watcher_activated", kind=self.kind, location_id=location_id)
        self._timer = self.scheduler.set_interval(self.interval, self._tick)
        self._tick()

    def deactivate(self) -> None:
        if self._timer is not None:
            self._timer.stop()
            self._timer = None
            logger.info("watcher_deactivated", kind=self.kind, location_id=self.location_id)
        with self._lock:
            self._generation += 1
            self.location_id = ""
            self.seen = None

    def _tick(self) -> None:
        if self.dispatch is not None:
            self.dispatch(self.check)
        else:
            self.check()

    def _play_sound(self) -> None:
        if self.sound is None:
            return
        try:
            self.sound()
        except Exception as exc:
            logger.debug("alert_sound_failed", kind=self.kind, error=str(exc))

    def check(self) -> PendingEvent | None:
        with self._lock:
            generation = self._generation
            seen = self.seen
        if seen is None:
            return None

        try:
            items = self.fetch()
        except Exception as exc:
            logger.debug("watcher_poll_failed", kind=self.kind, error=str(exc))
            return None

        candidates = [
            item for item in items or [] if isinstance(item, dict) and item_id(item) and self.is_open(item)
        ]
        candidates.sort(key=event_time, reverse=True)

        with self._lock:
            if generation != self._generation:
                logger.debug("watcher_result_discarded", kind=self.kind)
                return None
            try:
                seen_ids = set(seen.ids())
                fresh = next((item for item in candidates if item_id(item) not in seen_ids), None)
                if fresh is None:
                    return None
                # Marked before alerting so an overlapping tick cannot pick it again.
                seen.add(item_id(fresh))
            except Exception as exc:
                logger.warning("watcher_seen_set_failed", kind=self.kind, error=str(exc))
                return None

        event = PendingEvent(event_id=item_id(fresh), payload=fresh, discovered_at=now_local())
        logger.info("watcher_alert", kind=self.kind, event_id=event.event_id)
        self._play_sound()
        self.on_alert(event)
        return event


def build_web_order_watcher(backend: Any, storage: SessionStorage, scheduler: Scheduler, **kwargs: Any) -> NotificationWatcher:
    return NotificationWatcher(
        kind=WEB_ORDERS_KIND,
        fetch=backend.list_pending_web_orders,
        is_open=is_open_web_order,
        storage=storage,
        scheduler=scheduler,
        **kwargs,
    )


def build_table_charge_watcher(
    backend: Any, storage: SessionStorage, scheduler: Scheduler, **kwargs: Any
) -> NotificationWatcher:
    return NotificationWatcher(
        kind=TABLE_CHARGES_KIND,
        fetch=backend.list_pending_table_charges,
        is_open=always_open,
        storage=storage,
        scheduler=scheduler,
        **kwargs,
    )
