"""
wabridge: a stable, typed event/command surface over a WhatsApp Web
(Baileys-style) connection.

The connection itself (transport, encryption, wire format) is supplied by the
application through a `ConnectionFactory`; this package manages its lifecycle,
normalizes inbound events and routes outbound sends.
"""

from __future__ import annotations

from .config import ProviderConfig
from .connection import Connection, ConnectionFactory, RawEvent
from .exceptions import WABridgeError
from .lifecycle import ConnectionState
from .media import MediaDescriptor, SourceKind
from .messages import NormalizedMessage
from .provider import WhatsAppProvider
from .router import Button, ButtonsOptions, DeliveryResult, MediaOptions, StickerOptions, TextOptions

__all__ = [
    "Button",
    "ButtonsOptions",
    "Connection",
    "ConnectionFactory",
    "ConnectionState",
    "DeliveryResult",
    "MediaDescriptor",
    "MediaOptions",
    "NormalizedMessage",
    "ProviderConfig",
    "RawEvent",
    "SourceKind",
    "StickerOptions",
    "TextOptions",
    "WABridgeError",
    "WhatsAppProvider",
]

__version__ = "0.1.0"
