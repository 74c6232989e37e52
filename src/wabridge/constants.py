from __future__ import annotations

from enum import IntEnum

SESSION_DIRECTORY_NAME = "baileys_sessions"
STORE_FILENAME = "baileys_store.json"
STORE_FLUSH_INTERVAL_S = 10.0

S_WHATSAPP_NET = "@s.whatsapp.net"
G_US = "@g.us"
C_US = "@c.us"
STATUS_BROADCAST = "status@broadcast"

# Reference token prefixes for non-text inbound messages.
REF_LOCATION = "_event_location_"
REF_MEDIA = "_event_media_"
REF_DOCUMENT = "_event_document_"
REF_VOICE_NOTE = "_event_voice_note_"


class DisconnectReason(IntEnum):
    """Close status codes reported by the underlying connection (mirrors Baileys)."""

    LOGGED_OUT = 401
    FORBIDDEN = 403
    CONNECTION_LOST = 408
    TIMED_OUT = 408
    MULTIDEVICE_MISMATCH = 411
    CONNECTION_CLOSED = 428
    CONNECTION_REPLACED = 440
    BAD_SESSION = 500
    UNAVAILABLE_SERVICE = 503
    RESTART_REQUIRED = 515
