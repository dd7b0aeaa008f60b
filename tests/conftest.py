"""Pytest fixtures for tutaviendo tests."""

import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest
import structlog

from tutaviendo.analytics import AnalyticsStore
from tutaviendo.kv_store import MemoryKeyValueStore
from tutaviendo.models import Order, OrderItem, Product


@pytest.fixture
def temp_dir():
    """Create a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo logging configuration done by CLI tests."""
    yield
    structlog.reset_defaults()


class FakeClock:
    """A settable clock for AnalyticsStore."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def local_store():
    return MemoryKeyValueStore()


@pytest.fixture
def analytics(local_store, clock):
    """A loaded AnalyticsStore over in-memory storage with a fixed clock."""
    store = AnalyticsStore(local_store=local_store, clock=clock)
    store.load_log()
    yield store
    store.dispose()


def make_order(**overrides) -> Order:
    """Build an order with two lines (2 x 10.00 and 1 x 5.50)."""
    fields = dict(
        items=[
            OrderItem(Product("p1", "Camiseta", 10.0), 2),
            OrderItem(Product("p2", "Gorra", 5.5), 1),
        ],
        customer_name="Ana",
        payment_method="Efectivo",
        delivery_method="Recogida en Tienda",
        currency_code="USD",
        store_name="Tienda Sol",
    )
    fields.update(overrides)
    return Order(**fields)
