"""Per-session identity used to deduplicate visits."""

import random
import string
import time

from . import config
from .kv_store import KeyValueStore

_ALPHABET = string.digits + string.ascii_lowercase


def generate_session_id() -> str:
    """Return a token like 'session_1718000000000_k3j9x0a2b'."""
    suffix = "".join(random.choices(_ALPHABET, k=9))
    return f"session_{int(time.time() * 1000)}_{suffix}"


def get_session_id(session_store: KeyValueStore) -> str:
    """Get the session token, creating and storing it on first use."""
    session_id = session_store.get(config.SESSION_KEY)
    if not session_id:
        session_id = generate_session_id()
        session_store.set(config.SESSION_KEY, session_id)
    return session_id
