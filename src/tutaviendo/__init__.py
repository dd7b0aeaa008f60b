"""Tutaviendo storefront core: WhatsApp order messages and store analytics."""

__version__ = "0.1.0"
