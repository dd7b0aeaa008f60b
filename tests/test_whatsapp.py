"""Tests for WhatsApp message composition and deep links."""

from urllib.parse import parse_qs, unquote, urlsplit

import pytest
from structlog.testing import capture_logs

from tutaviendo.errors import EncodingError
from tutaviendo.models import MessageTemplate, OrderItem, Product
from tutaviendo.whatsapp import (
    DEFAULT_MESSAGE_TEMPLATE,
    DISPATCH_ERROR_MESSAGE,
    SAFE_EMOJI_TEMPLATE,
    build_deep_link,
    clean_phone_number,
    compose_message,
    dispatch_message,
    sanitize_message,
    send_order,
    validate_message,
)

from .conftest import make_order

EXPECTED_DEFAULT = (
    "¡Hola Tienda Sol!\n"
    "\n"
    "Soy Ana.\n"
    "Me gustaría hacer el siguiente pedido:\n"
    "\n"
    "🛍️ Mi Pedido:\n"
    "  - Camiseta (x2) - $20.00\n"
    "  - Gorra - $5.50\n"
    "\n"
    "💰 Total a Pagar: $25.50\n"
    "\n"
    "💳 Forma de Pago: Efectivo\n"
    "🚚 Entrega: Recogida en Tienda\n"
    "\n"
    "¡Muchas gracias!"
)


class TestComposeMessage:
    def test_default_layout(self):
        assert compose_message(make_order()) == EXPECTED_DEFAULT

    def test_explicit_default_template_matches_implicit(self):
        order = make_order()
        assert compose_message(order, DEFAULT_MESSAGE_TEMPLATE) == compose_message(order)

    def test_placeholders_substituted_everywhere(self):
        template = MessageTemplate(
            greeting="{storeName} / {storeName}",
            introduction="{customerName} aquí, {customerName}",
            closing="Adiós",
        )
        message = compose_message(make_order(), template)

        assert "Tienda Sol / Tienda Sol" in message
        assert "Ana aquí, Ana" in message
        assert "{storeName}" not in message
        assert "{customerName}" not in message

    def test_template_without_placeholders(self):
        template = MessageTemplate(greeting="Hola", introduction="Pedido:", closing="Gracias")
        message = compose_message(make_order(), template)

        assert message.startswith("Hola\n\nPedido:\n\n")
        assert message.endswith("\n\nGracias")

    def test_total_includes_delivery_cost(self):
        message = compose_message(
            make_order(delivery_method="Envío a Domicilio", delivery_cost=3.0)
        )

        assert "💰 Total a Pagar: $28.50" in message
        assert "🚚 Entrega: Envío a Domicilio (+$3.00 envío)" in message

    def test_no_delivery_cost_suffix_when_free(self):
        assert "envío)" not in compose_message(make_order(delivery_cost=0))

    def test_currency_symbol_applied_to_all_amounts(self):
        message = compose_message(make_order(currency_code="EUR", delivery_cost=2))

        assert "  - Camiseta (x2) - €20.00" in message
        assert "💰 Total a Pagar: €27.50" in message
        assert "(+€2.00 envío)" in message

    def test_unknown_currency_falls_back(self):
        message = compose_message(make_order(currency_code="ZZZ"))
        assert "💰 Total a Pagar: $25.50" in message

    def test_single_quantity_has_no_multiplier(self):
        order = make_order(items=[OrderItem(Product("p", "Taza", 4.0), 1)])
        assert "  - Taza - $4.00\n" in compose_message(order)

    def test_comments_and_phone_included(self):
        message = compose_message(
            make_order(comments="Sin cebolla", customer_phone="+1 809 555 0101")
        )

        assert message.endswith(
            "🚚 Entrega: Recogida en Tienda\n"
            "\n"
            "💬 Comentarios: Sin cebolla\n"
            "📱 Mi Teléfono: +1 809 555 0101\n"
            "\n"
            "¡Muchas gracias!"
        )

    def test_comments_excluded_by_template(self):
        template = MessageTemplate(
            greeting="Hola", introduction="Soy {customerName}", closing="Chao",
            include_comments=False,
        )
        message = compose_message(make_order(comments="Sin cebolla"), template)
        assert "Comentarios" not in message

    def test_blank_optional_fields_are_omitted(self):
        message = compose_message(make_order(comments="   ", customer_phone=""))

        assert "Comentarios" not in message
        assert "Teléfono" not in message

    def test_phone_excluded_by_template(self):
        template = MessageTemplate(
            greeting="Hola", introduction="Soy {customerName}", closing="Chao",
            include_phone=False,
        )
        message = compose_message(make_order(customer_phone="8095550101"), template)
        assert "Teléfono" not in message

    def test_empty_items_still_composes(self):
        message = compose_message(make_order(items=[]))

        assert "🛍️ Mi Pedido:\n\n💰 Total a Pagar: $0.00" in message

    def test_safe_emoji_template(self):
        message = compose_message(make_order(), SAFE_EMOJI_TEMPLATE)

        assert message.startswith("¡Hola Tienda Sol! ✨")
        assert message.endswith("¡Muchas gracias! 😊")


class TestBuildDeepLink:
    def test_strips_non_digits_from_phone(self):
        url = build_deep_link("+1 (809) 555-0101", "hola")
        assert url == "https://wa.me/18095550101?text=hola"

    def test_encodes_like_encode_uri_component(self):
        url = build_deep_link("1", "a b&c=d/é!*'()")
        assert url == "https://wa.me/1?text=a%20b%26c%3Dd%2F%C3%A9!*'()"

    def test_round_trip(self):
        message = compose_message(make_order(comments="Línea 1\nLínea 2 👋 #5 & más"))
        url = build_deep_link("8095550101", message)

        query = urlsplit(url).query
        assert query.startswith("text=")
        assert unquote(query[len("text="):]) == message
        assert parse_qs(query)["text"] == [message]

    def test_custom_host(self):
        assert build_deep_link("1", "x", host="api.whatsapp.com").startswith(
            "https://api.whatsapp.com/1?"
        )

    def test_lone_surrogate_raises_encoding_error(self):
        with pytest.raises(EncodingError):
            build_deep_link("1", "broken \ud83d text")


def test_clean_phone_number_ignores_non_ascii_digits():
    assert clean_phone_number("٣12-34") == "1234"


class TestValidateMessage:
    def test_normal_message_is_valid(self):
        assert validate_message(EXPECTED_DEFAULT) is True

    def test_replacement_character_is_invalid(self):
        with capture_logs() as logs:
            assert validate_message("hola \ufffd") is False
        assert logs[0]["event"] == "message_content_warning"
        assert logs[0]["reason"] == "replacement_character"

    def test_length_limit(self):
        assert validate_message("a" * 4096) is True
        assert validate_message("a" * 4097) is False

    def test_length_counts_utf16_units(self):
        # Each emoji outside the BMP is two UTF-16 code units
        assert validate_message("😊" * 2048) is True
        assert validate_message("😊" * 2049) is False


class TestSanitizeMessage:
    def test_replaces_problem_emoji(self):
        assert sanitize_message("👋 hola 🙏 🛒") == "✨ hola 😊 🛍️"

    def test_strips_replacement_characters(self):
        assert sanitize_message("a\ufffdb\ufffd") == "ab"

    @pytest.mark.parametrize(
        "message",
        ["", "plain", "👋🙏🛒\ufffd", "🛍️ ya seguro", EXPECTED_DEFAULT + "\ufffd👋"],
    )
    def test_idempotent(self, message):
        once = sanitize_message(message)
        assert sanitize_message(once) == once


class TestDispatchMessage:
    def test_opens_deep_link(self):
        opened = []
        result = dispatch_message("809-555-0101", "hola", opener=opened.append)

        assert result.ok
        assert opened == ["https://wa.me/8095550101?text=hola"]
        assert result.url == opened[0]

    def test_invalid_message_is_sanitized_before_sending(self):
        opened = []
        dispatch_message("1", "hola 👋\ufffd", opener=opened.append)

        assert unquote(opened[0].split("text=", 1)[1]) == "hola ✨"

    def test_encoding_failure_reports_error_without_navigating(self):
        opened = []
        with capture_logs() as logs:
            result = dispatch_message("1", "bad \udc00", opener=opened.append)

        assert opened == []
        assert not result.ok
        assert result.url is None
        assert result.error == DISPATCH_ERROR_MESSAGE
        assert any(entry["event"] == "deep_link_failed" for entry in logs)


def test_send_order_composes_and_dispatches():
    opened = []
    result = send_order(make_order(), "+1 809 555 0101", opener=opened.append)

    assert result.ok
    assert opened[0].startswith("https://wa.me/18095550101?text=")
    assert unquote(opened[0].split("text=", 1)[1]) == EXPECTED_DEFAULT
