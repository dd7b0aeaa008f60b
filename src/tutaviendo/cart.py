"""Cart arithmetic and checkout form handling."""

import re
from dataclasses import dataclass, replace

from .errors import ValidationError
from .models import MessageTemplate, Order, OrderItem, Product

PAYMENT_METHODS: dict[str, str] = {
    "cash": "Efectivo",
    "transfer": "Transferencia Bancaria",
}

DELIVERY_METHODS: dict[str, str] = {
    "pickup": "Recogida en Tienda",
    "delivery": "Envío a Domicilio",
}

_WHATSAPP_RE = re.compile(r"^\+?[1-9]\d{1,14}$")


@dataclass
class StoreSettings:
    """The store configuration checkout reads from."""

    id: str
    name: str
    currency: str = "USD"
    whatsapp: str | None = None
    delivery_cost: float = 0.0
    message_template: MessageTemplate | None = None


@dataclass
class CheckoutForm:
    """Values typed by the customer in the cart modal."""

    name: str
    address: str = ""
    payment_method: str = "cash"
    delivery_method: str = "pickup"
    comments: str = ""
    phone: str = ""


def add_item(items: list[OrderItem], product: Product, quantity: int = 1) -> list[OrderItem]:
    """Add a product to the cart, merging with an existing line for it."""
    for i, item in enumerate(items):
        if item.product.id == product.id:
            updated = list(items)
            updated[i] = replace(item, quantity=item.quantity + quantity)
            return updated
    return [*items, OrderItem(product=product, quantity=quantity)]


def remove_item(items: list[OrderItem], product_id: str) -> list[OrderItem]:
    return [item for item in items if item.product.id != product_id]


def update_quantity(items: list[OrderItem], product_id: str, quantity: int) -> list[OrderItem]:
    """Set a line's quantity; zero or less removes the line."""
    if quantity <= 0:
        return remove_item(items, product_id)
    return [
        replace(item, quantity=quantity) if item.product.id == product_id else item
        for item in items
    ]


def cart_subtotal(items: list[OrderItem]) -> float:
    return sum(item.product.price * item.quantity for item in items)


def delivery_cost_for(delivery_method: str, configured_cost: float | None) -> float:
    """Only home delivery carries the store's configured cost."""
    if delivery_method != "delivery":
        return 0.0
    return float(configured_cost or 0)


def validate_whatsapp(phone: str) -> bool:
    return bool(_WHATSAPP_RE.match(re.sub(r"\s", "", phone or "")))


def validate_checkout(form: CheckoutForm, items: list[OrderItem]) -> None:
    """
    Check the cart form before an order is sent.

    Raises:
        ValidationError: With one message per offending field.
    """
    errors: dict[str, str] = {}

    if not form.name.strip():
        errors["name"] = "El nombre es requerido"
    if form.phone.strip() and not validate_whatsapp(form.phone):
        errors["phone"] = "Número de teléfono inválido"
    if form.payment_method not in PAYMENT_METHODS:
        errors["payment_method"] = f"Método de pago desconocido: {form.payment_method}"
    if form.delivery_method not in DELIVERY_METHODS:
        errors["delivery_method"] = f"Método de entrega desconocido: {form.delivery_method}"
    if not items:
        errors["items"] = "El carrito está vacío"

    if errors:
        raise ValidationError(errors)


def build_order(items: list[OrderItem], form: CheckoutForm, store: StoreSettings) -> Order:
    """Turn a validated cart form into an Order with display labels."""
    return Order(
        items=[item for item in items if item.quantity > 0],
        customer_name=form.name.strip(),
        address=form.address,
        payment_method=PAYMENT_METHODS.get(form.payment_method, form.payment_method),
        delivery_method=DELIVERY_METHODS.get(form.delivery_method, form.delivery_method),
        comments=form.comments,
        customer_phone=form.phone,
        delivery_cost=delivery_cost_for(form.delivery_method, store.delivery_cost),
        currency_code=store.currency,
        store_name=store.name,
    )
