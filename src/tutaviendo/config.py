"""Configuration constants for tutaviendo.

Values that depend on the deployment can be overridden through environment
variables; the rest are fixed limits of the messaging platform or of the
analytics log.
"""

import os
from pathlib import Path

# Can be overridden via TUTAVIENDO_DATA_DIR environment variable
_default_data_dir = Path(__file__).parent.parent.parent / "data"
DATA_DIR = Path(os.environ.get("TUTAVIENDO_DATA_DIR", _default_data_dir))

# Messaging platform
WHATSAPP_HOST = os.environ.get("TUTAVIENDO_WHATSAPP_HOST", "wa.me")
MAX_MESSAGE_LENGTH = 4096  # UTF-16 code units

# Analytics log limits
RETENTION_DAYS = 90
MAX_PERSISTED_EVENTS = 1000
OVERFLOW_KEEP_EVENTS = 500
VISIT_INDEX_DAYS = 7
PRUNE_INTERVAL_SECONDS = 24 * 60 * 60
TOP_PRODUCTS_LIMIT = 5

# Storage keys (local store unless noted)
EVENTS_KEY = "tutaviendo_analytics"
VISITS_KEY = "tutaviendo_visits"
SESSION_KEY = "tutaviendo_session"  # session store

STORAGE_QUOTA_BYTES = int(os.environ.get("TUTAVIENDO_STORAGE_QUOTA", 5 * 1024 * 1024))
