"""FastAPI REST API for tutaviendo order messages and store analytics."""

import threading
from contextlib import asynccontextmanager
from datetime import date
from typing import Optional

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import __version__
from .analytics import AnalyticsStore
from .cart import CheckoutForm, StoreSettings, build_order, validate_checkout
from .date_ranges import custom_range, preset_range, preset_ranges
from .errors import (
    EncodingError,
    PersistenceError,
    TutaviendoError,
    UnknownRangeError,
    ValidationError,
)
from .kv_store import FileKeyValueStore, MemoryKeyValueStore
from .models import DateRange, MessageTemplate, Order, OrderItem, Product
from .whatsapp import (
    build_deep_link,
    compose_message,
    sanitize_message,
    validate_message,
)


# --- Pydantic Schemas ---


class ProductSchema(BaseModel):
    id: str
    name: str
    price: float = Field(..., ge=0)


class OrderItemSchema(BaseModel):
    product: ProductSchema
    quantity: int = Field(..., ge=1)


class MessageTemplateSchema(BaseModel):
    greeting: str
    introduction: str
    closing: str
    include_phone: bool = True
    include_comments: bool = True


class OrderSchema(BaseModel):
    items: list[OrderItemSchema]
    customer_name: str = Field(..., min_length=1)
    payment_method: str
    delivery_method: str
    currency_code: str = "USD"
    store_name: str
    address: Optional[str] = None
    comments: Optional[str] = None
    customer_phone: Optional[str] = None
    delivery_cost: float = Field(default=0.0, ge=0)


class ComposeRequest(BaseModel):
    order: OrderSchema
    template: Optional[MessageTemplateSchema] = None


class ComposeResponse(BaseModel):
    message: str
    valid: bool
    sanitized: str


class LinkRequest(BaseModel):
    destination: str = Field(..., description="Phone number; non-digits are stripped")
    message: str


class LinkResponse(BaseModel):
    url: str


class StoreSettingsSchema(BaseModel):
    name: str
    currency: str = "USD"
    whatsapp: str = Field(..., min_length=1)
    delivery_cost: float = Field(default=0.0, ge=0)
    message_template: Optional[MessageTemplateSchema] = None


class CustomerSchema(BaseModel):
    name: str
    address: str = ""
    payment_method: str = "cash"
    delivery_method: str = "pickup"
    comments: str = ""
    phone: str = ""


class CheckoutRequest(BaseModel):
    store: StoreSettingsSchema
    items: list[OrderItemSchema]
    customer: CustomerSchema


class CheckoutResponse(BaseModel):
    message: str
    url: str
    total: float
    event_id: str


class ProductViewRequest(BaseModel):
    product_id: str


class VisitResponse(BaseModel):
    tracked: bool


class EventResponse(BaseModel):
    id: str
    type: str
    store_id: str
    timestamp: str


class ProductViewsSchema(BaseModel):
    product_id: str
    views: int


class StatsResponse(BaseModel):
    store_id: str
    range_label: Optional[str] = None
    visits: int
    orders: int
    order_value: float
    top_products: list[ProductViewsSchema]


class DateRangeSchema(BaseModel):
    name: str
    label: str
    start: str
    end: str


# --- Helper Functions ---

_analytics_store: AnalyticsStore | None = None
_analytics_store_lock = threading.Lock()


def get_analytics_store() -> AnalyticsStore:
    """Get the process-wide AnalyticsStore, starting it on first use.

    Starting loads the persisted log and arms the daily retention sweep.
    """
    global _analytics_store
    with _analytics_store_lock:
        if _analytics_store is None:
            _analytics_store = AnalyticsStore(
                local_store=FileKeyValueStore(),
                session_store=MemoryKeyValueStore(),
            ).init()
        return _analytics_store


def _template_from_schema(schema: MessageTemplateSchema | None) -> MessageTemplate | None:
    if schema is None:
        return None
    return MessageTemplate(**schema.model_dump())


def _items_from_schema(items: list[OrderItemSchema]) -> list[OrderItem]:
    return [
        OrderItem(product=Product(**i.product.model_dump()), quantity=i.quantity)
        for i in items
    ]


def _order_from_schema(schema: OrderSchema) -> Order:
    data = schema.model_dump(exclude={"items"})
    return Order(items=_items_from_schema(schema.items), **data)


def _resolve_range(
    range_name: str | None, start: date | None, end: date | None
) -> DateRange | None:
    if start is not None or end is not None:
        if start is None or end is None:
            raise ValidationError({"range": "both start and end are required"})
        return custom_range(start, end)
    if range_name:
        return preset_range(range_name)
    return None


# --- FastAPI App ---


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _analytics_store
    yield
    with _analytics_store_lock:
        if _analytics_store is not None:
            _analytics_store.dispose()
            _analytics_store = None


app = FastAPI(
    title="tutaviendo API",
    description="Order messages for WhatsApp and store analytics",
    version=__version__,
    lifespan=lifespan,
)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Global Exception Handler ---


# Map exception types to HTTP status codes
ERROR_STATUS_CODES: dict[type, int] = {
    ValidationError: 400,
    UnknownRangeError: 400,
    EncodingError: 422,
    PersistenceError: 500,
}


@app.exception_handler(TutaviendoError)
async def tutaviendo_error_handler(request: Request, exc: TutaviendoError) -> JSONResponse:
    """Map TutaviendoError subclasses to appropriate HTTP responses."""
    status_code = ERROR_STATUS_CODES.get(type(exc), 500)
    content: dict[str, object] = {"detail": str(exc), "error_type": type(exc).__name__}
    if isinstance(exc, ValidationError):
        content["errors"] = exc.errors
    return JSONResponse(status_code=status_code, content=content)


# --- Endpoints ---


@app.get("/api/health")
def health_check(store: AnalyticsStore = Depends(get_analytics_store)):
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": __version__,
        "analytics_state": store.state.value,
        "event_count": len(store.events),
    }


# --- Message Endpoints ---


@app.post("/api/messages/compose", response_model=ComposeResponse)
def compose(request: ComposeRequest):
    """Render an order as WhatsApp message text."""
    message = compose_message(
        _order_from_schema(request.order), _template_from_schema(request.template)
    )
    valid = validate_message(message)
    return ComposeResponse(
        message=message,
        valid=valid,
        sanitized=message if valid else sanitize_message(message),
    )


@app.post("/api/messages/link", response_model=LinkResponse)
def link(request: LinkRequest):
    """Build a WhatsApp deep link for a message."""
    return LinkResponse(url=build_deep_link(request.destination, request.message))


# --- Store Endpoints ---


@app.post("/api/stores/{store_id}/checkout", response_model=CheckoutResponse)
def checkout(
    store_id: str,
    request: CheckoutRequest,
    store: AnalyticsStore = Depends(get_analytics_store),
):
    """
    Validate a cart, build the message link and record the order event.

    The order is recorded only once the link was built. The client opens
    the returned URL; nothing is sent from the server.
    """
    settings = StoreSettings(
        id=store_id,
        name=request.store.name,
        currency=request.store.currency,
        whatsapp=request.store.whatsapp,
        delivery_cost=request.store.delivery_cost,
        message_template=_template_from_schema(request.store.message_template),
    )
    items = _items_from_schema(request.items)
    form = CheckoutForm(**request.customer.model_dump())
    validate_checkout(form, items)

    order = build_order(items, form, settings)
    message = compose_message(order, settings.message_template)
    if not validate_message(message):
        message = sanitize_message(message)
    url = build_deep_link(settings.whatsapp or "", message)

    event = store.record_order(
        store_id,
        order_value=order.total,
        customer_name=order.customer_name,
        items=[
            {"productId": i.product.id, "quantity": i.quantity, "price": i.product.price}
            for i in order.items
        ],
    )

    return CheckoutResponse(
        message=message,
        url=url,
        total=order.total,
        event_id=event.id,
    )


@app.post("/api/stores/{store_id}/visits", response_model=VisitResponse)
def track_visit(
    store_id: str,
    x_session_id: Optional[str] = Header(default=None),
    store: AnalyticsStore = Depends(get_analytics_store),
):
    """
    Record a catalog visit (once per session per day).

    Clients identify their browsing session with an `X-Session-Id` header.
    Without it the visit is deduplicated against the server's own session,
    so only the first such visit of the day is tracked.
    """
    return VisitResponse(tracked=store.record_visit(store_id, session_id=x_session_id))


@app.post("/api/stores/{store_id}/product-views", response_model=EventResponse, status_code=201)
def track_product_view(
    store_id: str,
    request: ProductViewRequest,
    x_session_id: Optional[str] = Header(default=None),
    store: AnalyticsStore = Depends(get_analytics_store),
):
    """Record a product detail view."""
    event = store.record_product_view(store_id, request.product_id, session_id=x_session_id)
    return EventResponse(
        id=event.id, type=event.type, store_id=event.store_id, timestamp=event.timestamp
    )


@app.get("/api/stores/{store_id}/stats", response_model=StatsResponse)
def get_stats(
    store_id: str,
    range_name: Optional[str] = Query(
        default=None, alias="range", description="Preset name, e.g. 'last_7_days'"
    ),
    start: Optional[date] = Query(default=None),
    end: Optional[date] = Query(default=None),
    store: AnalyticsStore = Depends(get_analytics_store),
):
    """Dashboard stats for a store, optionally limited to a date range."""
    date_range = _resolve_range(range_name, start, end)
    stats = store.get_stats(store_id, date_range)
    return StatsResponse(
        store_id=store_id,
        range_label=date_range.label if date_range else None,
        visits=stats.visits,
        orders=stats.orders,
        order_value=stats.order_value,
        top_products=[
            ProductViewsSchema(product_id=p.product_id, views=p.views)
            for p in stats.top_products
        ],
    )


@app.get("/api/date-ranges", response_model=list[DateRangeSchema])
def list_date_ranges():
    """List the dashboard's preset date ranges as of now."""
    return [
        DateRangeSchema(
            name=name,
            label=r.label,
            start=r.start.isoformat(),
            end=r.end.isoformat(),
        )
        for name, r in preset_ranges().items()
    ]
