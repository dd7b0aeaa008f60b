"""WhatsApp order message composition and deep links."""

import re
import webbrowser
from dataclasses import dataclass
from typing import Callable
from urllib.parse import quote

from . import config
from .currency import format_currency
from .errors import EncodingError
from .models import MessageTemplate, Order
from .observability import get_logger

STORE_NAME_TOKEN = "{storeName}"
CUSTOMER_NAME_TOKEN = "{customerName}"

DEFAULT_MESSAGE_TEMPLATE = MessageTemplate(
    greeting="¡Hola {storeName}!",
    introduction="Soy {customerName}.\nMe gustaría hacer el siguiente pedido:",
    closing="¡Muchas gracias!",
    include_phone=True,
    include_comments=True,
)

SAFE_EMOJI_TEMPLATE = MessageTemplate(
    greeting="¡Hola {storeName}! ✨",
    introduction="Soy {customerName}.\nMe gustaría hacer el siguiente pedido:",
    closing="¡Muchas gracias! 😊",
    include_phone=True,
    include_comments=True,
)

ITEMS_HEADER = "🛍️ Mi Pedido:"
TOTAL_LABEL = "💰 Total a Pagar:"
PAYMENT_LABEL = "💳 Forma de Pago:"
DELIVERY_LABEL = "🚚 Entrega:"
COMMENTS_LABEL = "💬 Comentarios:"
PHONE_LABEL = "📱 Mi Teléfono:"

REPLACEMENT_CHAR = "\ufffd"

# Emoji that some WhatsApp clients mangle when they arrive through a URL
EMOJI_REPLACEMENTS: dict[str, str] = {
    "👋": "✨",
    "🙏": "😊",
    "🛒": "🛍️",
}

# encodeURIComponent leaves these unescaped
_URI_COMPONENT_SAFE = "-_.!~*'()"

DISPATCH_ERROR_MESSAGE = (
    "There was a problem generating the WhatsApp link. Please try again."
)


@dataclass
class DispatchResult:
    """Outcome of handing a message to the messaging client."""

    url: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _has_text(value: str | None) -> bool:
    return bool(value and value.strip())


def compose_message(order: Order, template: MessageTemplate | None = None) -> str:
    """
    Render an order as the plain-text WhatsApp message.

    The layout is fixed: greeting, introduction, item lines, total, payment
    and delivery lines, optional comments and phone, closing. Optional fields
    that are missing are left out; this never raises for them.

    Args:
        order: The order to render.
        template: Merchant wording; DEFAULT_MESSAGE_TEMPLATE when None.

    Returns:
        The message text.
    """
    template = template or DEFAULT_MESSAGE_TEMPLATE
    currency = order.currency_code
    delivery_cost = order.delivery_cost or 0

    message = template.greeting.replace(STORE_NAME_TOKEN, order.store_name) + "\n\n"
    message += template.introduction.replace(CUSTOMER_NAME_TOKEN, order.customer_name) + "\n\n"

    message += f"{ITEMS_HEADER}\n"
    subtotal = 0.0
    for item in order.items:
        item_total = item.product.price * item.quantity
        subtotal += item_total
        message += f"  - {item.product.name}"
        if item.quantity > 1:
            message += f" (x{item.quantity})"
        message += f" - {format_currency(item_total, currency)}\n"

    message += f"\n{TOTAL_LABEL} {format_currency(subtotal + delivery_cost, currency)}\n\n"

    message += f"{PAYMENT_LABEL} {order.payment_method}\n"
    message += f"{DELIVERY_LABEL} {order.delivery_method}"
    if delivery_cost > 0:
        message += f" (+{format_currency(delivery_cost, currency)} envío)"

    if template.include_comments and _has_text(order.comments):
        message += f"\n\n{COMMENTS_LABEL} {order.comments}"

    if template.include_phone and _has_text(order.customer_phone):
        message += f"\n{PHONE_LABEL} {order.customer_phone}"

    message += f"\n\n{template.closing}"

    return message


def clean_phone_number(destination_id: str) -> str:
    """Keep only the ASCII digits of a phone number."""
    return re.sub(r"[^0-9]", "", destination_id or "")


def build_deep_link(
    destination_id: str, message: str, host: str | None = None
) -> str:
    """
    Build a `https://<host>/<digits>?text=<message>` link.

    The message is percent-encoded the way encodeURIComponent does it.

    Raises:
        EncodingError: If the message cannot be encoded (e.g. lone surrogates).
    """
    phone = clean_phone_number(destination_id)
    try:
        encoded = quote(message, safe=_URI_COMPONENT_SAFE, encoding="utf-8", errors="strict")
    except (UnicodeEncodeError, TypeError) as e:
        raise EncodingError(str(e)) from e

    return f"https://{host or config.WHATSAPP_HOST}/{phone}?text={encoded}"


def _utf16_length(message: str) -> int:
    return len(message.encode("utf-16-le", errors="surrogatepass")) // 2


def validate_message(message: str) -> bool:
    """Return False if the message has replacement characters or is too long."""
    logger = get_logger()

    if REPLACEMENT_CHAR in message:
        logger.warning("message_content_warning", reason="replacement_character")
        return False

    length = _utf16_length(message)
    if length > config.MAX_MESSAGE_LENGTH:
        logger.warning(
            "message_content_warning",
            reason="too_long",
            length=length,
            limit=config.MAX_MESSAGE_LENGTH,
        )
        return False

    return True


def sanitize_message(message: str) -> str:
    """Swap known-problematic emoji for safe ones and drop replacement characters."""
    for emoji, safe in EMOJI_REPLACEMENTS.items():
        message = message.replace(emoji, safe)
    return message.replace(REPLACEMENT_CHAR, "")


def dispatch_message(
    destination_id: str,
    message: str,
    opener: Callable[[str], object] | None = None,
) -> DispatchResult:
    """
    Validate, sanitize if needed, build the deep link and open it.

    Args:
        destination_id: The store's WhatsApp number, in any format.
        message: Message text.
        opener: Navigation callback; defaults to webbrowser.open.

    Returns:
        DispatchResult with the URL that was opened, or the user-facing
        error message when no link could be built.
    """
    logger = get_logger()
    opener = opener or webbrowser.open

    if not validate_message(message):
        message = sanitize_message(message)
        logger.info("message_sanitized")

    try:
        url = build_deep_link(destination_id, message)
    except EncodingError as e:
        logger.error("deep_link_failed", reason=e.reason)
        return DispatchResult(error=DISPATCH_ERROR_MESSAGE)

    logger.debug("deep_link_built", url=url)
    try:
        opener(url)
    except webbrowser.Error as e:
        logger.error("deep_link_open_failed", reason=str(e))
        return DispatchResult(url=url, error=DISPATCH_ERROR_MESSAGE)

    return DispatchResult(url=url)


def send_order(
    order: Order,
    destination_id: str,
    template: MessageTemplate | None = None,
    opener: Callable[[str], object] | None = None,
) -> DispatchResult:
    """Compose the order message and dispatch it to the store's number."""
    message = compose_message(order, template)
    return dispatch_message(destination_id, message, opener=opener)
