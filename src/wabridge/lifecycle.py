"""
Connection lifecycle.

    DISCONNECTED --start()--> CONNECTING --"open"--> OPEN
    CONNECTING/OPEN --"close"--> CLOSED --> DISCONNECTED --> CONNECTING

A close with status LOGGED_OUT wipes the persisted session before reconnecting
(fresh QR login); any other close reconnects with the existing session. A
failure inside `start()` is published as `auth_failure` and not retried.

All raw events of the active connection go through one demultiplexing loop and
a fixed dispatch table, so handlers run one at a time in arrival order.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable, Mapping
from pathlib import Path
from typing import Any

from .auth.state import SessionState, SessionStore
from .config import ProviderConfig
from .connection import Connection, ConnectionFactory, RawEvent, dig
from .constants import DisconnectReason
from .exceptions import AuthFailure, SessionInvalidated, TransientDisconnect, WABridgeError
from .normalizer import EventNormalizer
from .store import ConversationStore
from .util.asyncio import cancel_suppress, ensure_task, run_every
from .util.events import EventHub

logger = logging.getLogger(__name__)

Handler = Callable[[Connection, Any], Awaitable[None]]


class ConnectionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class ConnectionLifecycle:
    def __init__(
        self,
        *,
        factory: ConnectionFactory,
        session_store: SessionStore,
        hub: EventHub,
        config: ProviderConfig | None = None,
        store: ConversationStore | None = None,
        normalizer: EventNormalizer | None = None,
    ) -> None:
        self.config = config or ProviderConfig()
        self.factory = factory
        self.session_store = session_store
        self.hub = hub
        self.store = store or ConversationStore(
            max_messages_per_chat=self.config.store_max_messages_per_chat
        )
        self.normalizer = normalizer or EventNormalizer()

        self.state = ConnectionState.DISCONNECTED
        self.last_disconnect: WABridgeError | None = None
        # Usable for outbound sends only while OPEN.
        self.vendor: Connection | None = None

        self._conn: Connection | None = None
        self._session: SessionState | None = None
        self._wired = False
        self._closing = False
        self._initialized = False
        self._loop_task: asyncio.Task[None] | None = None
        self._persist_task: asyncio.Task[None] | None = None

        self._handlers: dict[str, Handler] = {
            "connection.update": self._on_connection_update,
            "messages.upsert": self._on_messages_upsert,
            "messages.update": self._on_messages_update,
            "creds.update": self._on_creds_update,
        }

    @property
    def store_path(self) -> Path:
        return Path(self.config.session_dir).expanduser() / self.config.store_filename

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self.state:
            logger.info("connection state %s -> %s", self.state.value, state.value)
        self.state = state

    async def start(self) -> None:
        if self._closing:
            return
        await self._ensure_initialized()
        await self._drop_connection()

        self._set_state(ConnectionState.CONNECTING)
        try:
            session = await self.session_store.load()
            conn = await self.factory(session, config=self.config, get_message=self.get_message)
        except Exception as e:
            self._set_state(ConnectionState.DISCONNECTED)
            err = e if isinstance(e, AuthFailure) else AuthFailure(f"session bring-up failed: {e}")
            if err is not e:
                err.__cause__ = e
            logger.error("%s", err)
            await self.hub.publish("auth_failure", err)
            return

        self._session = session
        self._conn = conn
        self._loop_task = ensure_task(self._demux(conn), name="wabridge.demux")

    async def close(self) -> None:
        """Stop the connection and the store flush task. The lifecycle cannot be restarted."""

        self._closing = True
        await cancel_suppress(self._persist_task)
        self._persist_task = None
        await self._drop_connection()
        if self._initialized:
            await self.flush_store()
        self._set_state(ConnectionState.DISCONNECTED)

    async def get_message(self, key: Mapping[str, Any] | Any) -> Any | None:
        return await self.store.load_message(key)

    async def flush_store(self) -> None:
        await self.store.write_to_file(self.store_path)

    async def _ensure_initialized(self) -> None:
        if self._initialized:
            return
        self._initialized = True
        await self.store.read_from_file(self.store_path)
        self._persist_task = ensure_task(
            run_every(
                self.config.store_flush_interval_s,
                self.flush_store,
                on_error=lambda e: logger.warning("store snapshot failed: %s", e),
            ),
            name="wabridge.store.flush",
        )

    async def _drop_connection(self) -> None:
        conn, self._conn = self._conn, None
        self.vendor = None
        self._wired = False
        task, self._loop_task = self._loop_task, None
        await cancel_suppress(task)
        if conn is not None:
            await self._close_quietly(conn)

    async def _close_quietly(self, conn: Connection) -> None:
        try:
            await conn.close()
        except Exception as e:
            logger.debug("error closing connection: %s", e)

    async def _demux(self, conn: Connection) -> None:
        async for event in conn.events():
            if conn is not self._conn:
                return
            await self._dispatch(conn, event)
            if conn is not self._conn:
                return

        if conn is self._conn and not self._closing:
            logger.warning("event stream ended without a close update")
            await self._on_close(conn, None)

    async def _dispatch(self, conn: Connection, event: RawEvent) -> None:
        self.store.observe(event)
        handler = self._handlers.get(event.name)
        if handler is None:
            return
        try:
            await handler(conn, event.payload)
        except Exception:
            logger.exception("handler for %r failed", event.name)

    async def _on_connection_update(self, conn: Connection, update: Any) -> None:
        connection = dig(update, "connection")
        if connection == "close":
            status = dig(update, "lastDisconnect", "error", "output", "statusCode")
            await self._on_close(conn, status)
            return

        if connection == "open":
            self._set_state(ConnectionState.OPEN)
            self.vendor = conn
            self._wired = True
            self.last_disconnect = None
            await self.hub.publish("ready", True)

        qr = dig(update, "qr")
        if qr:
            await self.hub.publish("qr", qr)

    async def _on_close(self, conn: Connection, status: Any) -> None:
        self._set_state(ConnectionState.CLOSED)
        self._conn = None
        self.vendor = None
        self._wired = False
        await self._close_quietly(conn)

        if status == DisconnectReason.LOGGED_OUT:
            self.last_disconnect = SessionInvalidated("logged out")
            logger.warning("session logged out; wiping %s", self.config.session_dir)
            await self.session_store.clear()
            self.store.clear()
            self._session = None
        else:
            self.last_disconnect = TransientDisconnect(status)
            logger.warning("%s; reconnecting", self.last_disconnect)

        self._set_state(ConnectionState.DISCONNECTED)
        if self._closing:
            return
        if self.config.reconnect_delay_s > 0:
            await asyncio.sleep(self.config.reconnect_delay_s)
        await self.start()

    async def _on_messages_upsert(self, conn: Connection, payload: Any) -> None:
        if not self._wired:
            return
        msg = self.normalizer.normalize_upsert(payload)
        if msg is not None:
            await self.hub.publish("message", msg)

    async def _on_messages_update(self, conn: Connection, payload: Any) -> None:
        if not self._wired:
            return
        for msg in await self.normalizer.normalize_poll_updates(payload, self.get_message):
            await self.hub.publish("message", msg)

    async def _on_creds_update(self, conn: Connection, payload: Any) -> None:
        if self._session is None:
            return
        if isinstance(payload, Mapping):
            self._session.creds.update(payload)
        await self.session_store.save_creds()
