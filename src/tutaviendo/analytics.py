"""Local analytics event log for store dashboards.

The log records visits, orders and product views per store, keeps itself
bounded (retention horizon, persisted-size cap, quota recovery) and answers
the dashboard's aggregate queries for a date range.
"""

import json
import threading
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable

from . import config
from .errors import PersistenceError, ValidationError
from .kv_store import KeyValueStore, MemoryKeyValueStore, SaveResult
from .models import (
    EVENT_ORDER,
    EVENT_PRODUCT_VIEW,
    EVENT_TYPES,
    EVENT_VISIT,
    AnalyticsEvent,
    AnalyticsStats,
    DateRange,
    EventData,
    ProductViews,
    ensure_aware,
    parse_timestamp,
)
from .observability import get_logger
from .session import get_session_id


class StoreState(Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"


class PruneTimer:
    """Runs a callback every `interval` seconds until cancelled."""

    def __init__(self, interval: float, callback: Callable[[], Any]):
        self.interval = interval
        self.callback = callback
        self._timer: threading.Timer | None = None
        self._lock = threading.Lock()
        self._cancelled = False

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._cancelled

    def start(self) -> None:
        with self._lock:
            self._cancelled = False
            self._schedule()

    def _schedule(self) -> None:
        self._timer = threading.Timer(self.interval, self._run)
        self._timer.daemon = True
        self._timer.start()

    def _run(self) -> None:
        try:
            self.callback()
        except Exception as e:  # the sweep must keep running
            get_logger().error("analytics_prune_failed", error=str(e))
        with self._lock:
            if not self._cancelled:
                self._schedule()

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AnalyticsStore:
    """Owns the event log, the visit dedup index and their persistence."""

    def __init__(
        self,
        local_store: KeyValueStore | None = None,
        session_store: KeyValueStore | None = None,
        clock: Callable[[], datetime] | None = None,
        retention_days: int = config.RETENTION_DAYS,
        max_persisted_events: int = config.MAX_PERSISTED_EVENTS,
        overflow_keep_events: int = config.OVERFLOW_KEEP_EVENTS,
        visit_index_days: int = config.VISIT_INDEX_DAYS,
        prune_interval: float = config.PRUNE_INTERVAL_SECONDS,
    ):
        """
        Initialize AnalyticsStore.

        Args:
            local_store: Durable key-value store for the log and visit index.
            session_store: Session-scoped store holding the session token.
            clock: Returns the current time; override for testing.
            retention_days: Events older than this are pruned.
            max_persisted_events: Only the newest N events are written.
            overflow_keep_events: Events kept in memory after a quota failure.
            visit_index_days: Days of visit dedup entries to keep.
            prune_interval: Seconds between background retention sweeps.
        """
        self.local_store = local_store if local_store is not None else MemoryKeyValueStore()
        self.session_store = session_store if session_store is not None else MemoryKeyValueStore()
        self.clock = clock or _utc_now
        self.retention_days = retention_days
        self.max_persisted_events = max_persisted_events
        self.overflow_keep_events = overflow_keep_events
        self.visit_index_days = visit_index_days
        self.prune_interval = prune_interval

        self._events: list[AnalyticsEvent] = []
        self._state = StoreState.UNINITIALIZED
        self._lock = threading.RLock()
        self._timer: PruneTimer | None = None
        self._session_id: str | None = None
        self._logger = get_logger()

    # --- Lifecycle ---

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def events(self) -> tuple[AnalyticsEvent, ...]:
        with self._lock:
            return tuple(self._events)

    @property
    def session_id(self) -> str:
        if self._session_id is None:
            self._session_id = get_session_id(self.session_store)
        return self._session_id

    def init(self) -> "AnalyticsStore":
        """Load the persisted log and start the periodic retention sweep."""
        self.load_log()
        if self._timer is None:
            self._timer = PruneTimer(self.prune_interval, self.prune)
            self._timer.start()
        return self

    def dispose(self) -> None:
        """Stop the retention sweep. In-memory events are kept."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def __enter__(self) -> "AnalyticsStore":
        return self.init()

    def __exit__(self, *exc: object) -> None:
        self.dispose()

    def _now(self) -> datetime:
        return ensure_aware(self.clock())

    def _ensure_ready(self) -> None:
        if self._state is not StoreState.READY:
            self.load_log()

    # --- Loading ---

    def load_log(self) -> list[AnalyticsEvent]:
        """
        Read the persisted log and prune it to the retention horizon.

        Corrupted or non-array data is discarded and the log starts empty;
        nothing is raised to the caller.

        Returns:
            The events now in memory.
        """
        with self._lock:
            self._state = StoreState.LOADING
            self._events = self._read_events()
            self._state = StoreState.READY
            self.prune()
            return list(self._events)

    def _read_events(self) -> list[AnalyticsEvent]:
        try:
            raw = self.local_store.get(config.EVENTS_KEY)
        except PersistenceError as e:
            self._logger.warning("analytics_log_unreadable", error=str(e))
            return []

        if raw is None:
            return []

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            self._discard_stored_log(f"invalid JSON: {e}")
            return []

        if not isinstance(data, list):
            self._discard_stored_log(f"expected array, got {type(data).__name__}")
            return []

        events: list[AnalyticsEvent] = []
        skipped = 0
        for item in data:
            try:
                event = AnalyticsEvent.from_dict(item)
                parse_timestamp(event.timestamp)
            except (KeyError, TypeError, ValueError, AttributeError):
                skipped += 1
                continue
            events.append(event)

        if skipped:
            self._logger.warning("analytics_events_skipped", count=skipped)
        return events

    def _discard_stored_log(self, reason: str) -> None:
        self._logger.warning("analytics_log_discarded", reason=reason)
        try:
            self.local_store.remove(config.EVENTS_KEY)
        except PersistenceError as e:
            self._logger.warning("analytics_persist_failed", error=str(e))

    # --- Retention ---

    def prune(self) -> int:
        """
        Drop events older than the retention horizon.

        Returns:
            Number of events removed.
        """
        with self._lock:
            cutoff = self._now() - timedelta(days=self.retention_days)
            kept = [e for e in self._events if e.occurred_at >= cutoff]
            removed = len(self._events) - len(kept)
            if removed:
                self._events = kept
                self._logger.info("analytics_pruned", removed=removed, remaining=len(kept))
                self._persist()
            return removed

    # --- Recording ---

    def record_event(
        self, type: str, store_id: str, data: EventData | None = None
    ) -> AnalyticsEvent:
        """
        Append a new event to the log and persist it.

        Persistence failures are logged, never raised.

        Raises:
            ValidationError: If the event type is unknown.
        """
        if type not in EVENT_TYPES:
            raise ValidationError({"type": f"unknown event type '{type}'"})

        with self._lock:
            self._ensure_ready()
            event = AnalyticsEvent.create(type, store_id, data=data, now=self._now())
            self._events = [*self._events, event]
            self._persist()
            return event

    def record_visit(self, store_id: str, session_id: str | None = None) -> bool:
        """
        Record a visit unless this session already did today for the store.

        Args:
            store_id: Store being visited.
            session_id: Visitor session; defaults to this store's own session.

        Returns:
            True if an event was recorded, False if it was a duplicate.
        """
        with self._lock:
            session_id = session_id or self.session_id
            today = self._now().date()
            key = f"{session_id}:{store_id}:{today.isoformat()}"
            index = self._load_visit_index()
            if key in index:
                self._logger.debug("visit_already_tracked", store_id=store_id)
                return False

            self.record_event(EVENT_VISIT, store_id, EventData(session_id=session_id))
            index[key] = today.isoformat()
            self._save_visit_index(index, today)
            return True

    def record_order(
        self,
        store_id: str,
        order_value: float,
        customer_name: str,
        items: list[dict[str, Any]],
    ) -> AnalyticsEvent:
        return self.record_event(
            EVENT_ORDER,
            store_id,
            EventData(order_value=float(order_value), customer_name=customer_name, items=items),
        )

    def record_product_view(
        self, store_id: str, product_id: str, session_id: str | None = None
    ) -> AnalyticsEvent:
        return self.record_event(
            EVENT_PRODUCT_VIEW,
            store_id,
            EventData(product_id=product_id, session_id=session_id or self.session_id),
        )

    # --- Visit dedup index ---

    def _load_visit_index(self) -> dict[str, str]:
        try:
            raw = self.local_store.get(config.VISITS_KEY)
            data = json.loads(raw) if raw else {}
        except (PersistenceError, json.JSONDecodeError) as e:
            self._logger.warning("visit_index_discarded", error=str(e))
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _save_visit_index(self, index: dict[str, str], today: date) -> None:
        oldest = (today - timedelta(days=self.visit_index_days - 1)).isoformat()
        recent = {k: v for k, v in index.items() if v >= oldest}
        try:
            result = self.local_store.set(config.VISITS_KEY, json.dumps(recent))
        except PersistenceError as e:
            self._logger.warning("analytics_persist_failed", key=config.VISITS_KEY, error=str(e))
            return
        if result is SaveResult.QUOTA_EXCEEDED:
            self._logger.warning("analytics_quota_exceeded", key=config.VISITS_KEY)

    # --- Persistence ---

    def _write_events(self, events: list[AnalyticsEvent]) -> SaveResult:
        payload = json.dumps([e.to_dict() for e in events], ensure_ascii=False, default=str)
        return self.local_store.set(config.EVENTS_KEY, payload)

    def _persist(self) -> None:
        """Save the newest events; on quota failure shrink the log and retry once."""
        try:
            result = self._write_events(self._events[-self.max_persisted_events:])
            if result is SaveResult.SAVED:
                return

            self._logger.warning(
                "analytics_quota_exceeded",
                key=config.EVENTS_KEY,
                events=len(self._events),
                keeping=self.overflow_keep_events,
            )
            self._events = self._events[-self.overflow_keep_events:]
            result = self._write_events(self._events)
            if result is SaveResult.QUOTA_EXCEEDED:
                self._logger.warning("analytics_persist_abandoned", events=len(self._events))
        except (PersistenceError, TypeError, ValueError) as e:
            self._logger.warning("analytics_persist_failed", key=config.EVENTS_KEY, error=str(e))

    # --- Queries ---

    def _matching(
        self, store_id: str, type: str, date_range: DateRange | None
    ) -> list[AnalyticsEvent]:
        with self._lock:
            self._ensure_ready()
            return [
                e
                for e in self._events
                if e.type == type
                and e.store_id == store_id
                and (date_range is None or date_range.contains(e.occurred_at))
            ]

    def get_visit_count(self, store_id: str, date_range: DateRange | None = None) -> int:
        """Number of distinct calendar days with at least one visit."""
        return len({e.day for e in self._matching(store_id, EVENT_VISIT, date_range)})

    def get_order_count(self, store_id: str, date_range: DateRange | None = None) -> int:
        return len(self._matching(store_id, EVENT_ORDER, date_range))

    def get_order_value_sum(self, store_id: str, date_range: DateRange | None = None) -> float:
        """Sum of order values; orders without a value count as 0."""
        return sum(
            (e.data.order_value or 0) if e.data else 0
            for e in self._matching(store_id, EVENT_ORDER, date_range)
        )

    def get_top_products(
        self,
        store_id: str,
        date_range: DateRange | None = None,
        limit: int = config.TOP_PRODUCTS_LIMIT,
    ) -> list[ProductViews]:
        views = Counter(
            e.data.product_id
            for e in self._matching(store_id, EVENT_PRODUCT_VIEW, date_range)
            if e.data and e.data.product_id
        )
        return [ProductViews(product_id=pid, views=n) for pid, n in views.most_common(limit)]

    def get_stats(self, store_id: str, date_range: DateRange | None = None) -> AnalyticsStats:
        """Dashboard summary for a store."""
        return AnalyticsStats(
            visits=self.get_visit_count(store_id, date_range),
            orders=self.get_order_count(store_id, date_range),
            order_value=self.get_order_value_sum(store_id, date_range),
            top_products=self.get_top_products(store_id, date_range),
        )
