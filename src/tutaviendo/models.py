"""Data models for tutaviendo."""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any
import random
import string
import time


EVENT_VISIT = "visit"
EVENT_ORDER = "order"
EVENT_PRODUCT_VIEW = "product_view"
EVENT_TYPES = (EVENT_VISIT, EVENT_ORDER, EVENT_PRODUCT_VIEW)

_BASE36 = string.digits + string.ascii_lowercase


def format_timestamp(moment: datetime) -> str:
    """Render an aware datetime as an ISO 8601 UTC instant with a Z suffix."""
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 instant; naive values are taken as UTC."""
    moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def ensure_aware(moment: datetime) -> datetime:
    """Attach UTC to naive datetimes so they compare with event instants."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def _base36(number: int) -> str:
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def _generate_id(now: datetime | None = None) -> str:
    """Generate an event ID: base36 millisecond timestamp plus a random suffix."""
    millis = int((now.timestamp() if now else time.time()) * 1000)
    suffix = "".join(random.choices(_BASE36, k=9))
    return f"{_base36(millis)}{suffix}"


@dataclass(frozen=True)
class Product:
    """The slice of a catalog product the order message needs."""

    id: str
    name: str
    price: float

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "price": self.price}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Product":
        return cls(id=str(data["id"]), name=data["name"], price=float(data["price"]))


@dataclass(frozen=True)
class OrderItem:
    """A cart line: a product and a positive quantity."""

    product: Product
    quantity: int

    @property
    def subtotal(self) -> float:
        return self.product.price * self.quantity

    def to_dict(self) -> dict[str, Any]:
        return {"product": self.product.to_dict(), "quantity": self.quantity}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OrderItem":
        return cls(product=Product.from_dict(data["product"]), quantity=int(data["quantity"]))


@dataclass
class Order:
    """An order assembled from the cart form, consumed by the message composer."""

    items: list[OrderItem]
    customer_name: str
    payment_method: str  # display label, e.g. "Efectivo"
    delivery_method: str  # display label, e.g. "Envío a Domicilio"
    currency_code: str
    store_name: str
    address: str | None = None
    comments: str | None = None
    customer_phone: str | None = None
    delivery_cost: float = 0.0

    @property
    def subtotal(self) -> float:
        return sum(item.subtotal for item in self.items)

    @property
    def total(self) -> float:
        return self.subtotal + self.delivery_cost

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Order":
        return cls(
            items=[
                OrderItem.from_dict(i)
                for i in data.get("items", [])
                if int(i.get("quantity", 0)) > 0
            ],
            customer_name=data["customer_name"],
            payment_method=data.get("payment_method", ""),
            delivery_method=data.get("delivery_method", ""),
            currency_code=data.get("currency_code", "USD"),
            store_name=data.get("store_name", ""),
            address=data.get("address"),
            comments=data.get("comments"),
            customer_phone=data.get("customer_phone"),
            delivery_cost=float(data.get("delivery_cost") or 0),
        )


@dataclass(frozen=True)
class MessageTemplate:
    """Merchant-editable message wording.

    `greeting` may contain `{storeName}` and `introduction` may contain
    `{customerName}`; these are the only placeholders.
    """

    greeting: str
    introduction: str
    closing: str
    include_phone: bool = True
    include_comments: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "greeting": self.greeting,
            "introduction": self.introduction,
            "closing": self.closing,
            "include_phone": self.include_phone,
            "include_comments": self.include_comments,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MessageTemplate":
        return cls(
            greeting=data.get("greeting", ""),
            introduction=data.get("introduction", ""),
            closing=data.get("closing", ""),
            include_phone=data.get("include_phone", True),
            include_comments=data.get("include_comments", True),
        )


@dataclass(frozen=True)
class EventData:
    """Optional payload attached to an analytics event."""

    product_id: str | None = None
    order_value: float | None = None
    customer_name: str | None = None
    items: list[dict[str, Any]] | None = None
    session_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.product_id is not None:
            result["productId"] = self.product_id
        if self.order_value is not None:
            result["orderValue"] = self.order_value
        if self.customer_name is not None:
            result["customerName"] = self.customer_name
        if self.items is not None:
            result["items"] = self.items
        if self.session_id is not None:
            result["sessionId"] = self.session_id
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EventData":
        """Build from stored JSON; raises ValueError for mistyped fields."""
        order_value = data.get("orderValue")
        if order_value is not None and (
            isinstance(order_value, bool) or not isinstance(order_value, (int, float))
        ):
            raise ValueError(f"orderValue must be a number, got {order_value!r}")
        for key in ("productId", "customerName", "sessionId"):
            if data.get(key) is not None and not isinstance(data[key], str):
                raise ValueError(f"{key} must be a string, got {data[key]!r}")
        items = data.get("items")
        if items is not None and not isinstance(items, list):
            raise ValueError(f"items must be a list, got {items!r}")

        return cls(
            product_id=data.get("productId"),
            order_value=order_value,
            customer_name=data.get("customerName"),
            items=items,
            session_id=data.get("sessionId"),
        )


@dataclass(frozen=True)
class AnalyticsEvent:
    """An immutable entry of the analytics event log."""

    id: str
    type: str  # one of EVENT_TYPES
    store_id: str
    timestamp: str  # ISO 8601 UTC instant
    data: EventData | None = None

    @property
    def occurred_at(self) -> datetime:
        return parse_timestamp(self.timestamp)

    @property
    def day(self) -> date:
        """Calendar day (UTC) the event belongs to."""
        return self.occurred_at.astimezone(timezone.utc).date()

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "storeId": self.store_id,
            "timestamp": self.timestamp,
        }
        if self.data is not None:
            result["data"] = self.data.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnalyticsEvent":
        payload = None
        if data.get("data") is not None:
            if not isinstance(data["data"], dict):
                raise ValueError(f"data must be an object, got {data['data']!r}")
            payload = EventData.from_dict(data["data"])
        return cls(
            id=data["id"],
            type=data["type"],
            store_id=data["storeId"],
            timestamp=data["timestamp"],
            data=payload,
        )

    @classmethod
    def create(
        cls,
        type: str,
        store_id: str,
        data: EventData | None = None,
        now: datetime | None = None,
    ) -> "AnalyticsEvent":
        """Create a new event with generated ID and timestamp."""
        moment = now or datetime.now(timezone.utc)
        return cls(
            id=_generate_id(moment),
            type=type,
            store_id=store_id,
            timestamp=format_timestamp(moment),
            data=data,
        )


@dataclass(frozen=True)
class DateRange:
    """Inclusive query window over event timestamps."""

    start: datetime
    end: datetime
    label: str = ""

    def contains(self, moment: datetime) -> bool:
        return ensure_aware(self.start) <= moment <= ensure_aware(self.end)


@dataclass
class ProductViews:
    """View count for one product."""

    product_id: str
    views: int


@dataclass
class AnalyticsStats:
    """Dashboard summary for one store and date range."""

    visits: int
    orders: int
    order_value: float
    top_products: list[ProductViews] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "visits": self.visits,
            "orders": self.orders,
            "order_value": self.order_value,
            "top_products": [
                {"product_id": p.product_id, "views": p.views} for p in self.top_products
            ],
        }
