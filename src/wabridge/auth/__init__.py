from __future__ import annotations

from .state import KeyStore, SessionState, SessionStore
from .store import MultiFileKeyStore, MultiFileSessionStore

__all__ = [
    "KeyStore",
    "MultiFileKeyStore",
    "MultiFileSessionStore",
    "SessionState",
    "SessionStore",
]
