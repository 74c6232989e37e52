from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any

from .auth.state import SessionStore
from .auth.store import MultiFileSessionStore
from .config import ProviderConfig
from .connection import Connection, ConnectionFactory, Presence
from .lifecycle import ConnectionLifecycle, ConnectionState
from .media import MediaAcquirer
from .normalizer import EventNormalizer
from .polls import PollAggregator, aggregate_poll_votes
from .router import (
    Button,
    DeliveryResult,
    DispatchRouter,
    SendOptions,
    StickerMaker,
    StickerOptions,
    raw_sticker,
)
from .store import ConversationStore
from .transcode import AudioTranscoder
from .util.events import EventHub, Listener


class WhatsAppProvider:
    """
    High-level facade the application talks to.

    Events: `ready`, `qr(challenge)`, `auth_failure(error)`, `message(NormalizedMessage)`.
    Commands return a `DeliveryResult` or raise a `WABridgeError` subclass.
    """

    def __init__(
        self,
        *,
        factory: ConnectionFactory,
        session_store: SessionStore,
        config: ProviderConfig | None = None,
        acquirer: MediaAcquirer | None = None,
        transcoder: AudioTranscoder | None = None,
        sticker_maker: StickerMaker = raw_sticker,
        poll_aggregator: PollAggregator = aggregate_poll_votes,
    ) -> None:
        self.config = config or ProviderConfig()
        self.events = EventHub()
        self.store = ConversationStore(max_messages_per_chat=self.config.store_max_messages_per_chat)
        self.lifecycle = ConnectionLifecycle(
            factory=factory,
            session_store=session_store,
            hub=self.events,
            config=self.config,
            store=self.store,
            normalizer=EventNormalizer(aggregate=poll_aggregator),
        )
        self.router = DispatchRouter(
            lambda: self.lifecycle.vendor,
            config=self.config,
            acquirer=acquirer,
            transcoder=transcoder,
            sticker_maker=sticker_maker,
        )

    @classmethod
    def from_session_folder(
        cls,
        factory: ConnectionFactory,
        folder: str | Path | None = None,
        *,
        config: ProviderConfig | None = None,
        **kwargs: Any,
    ) -> WhatsAppProvider:
        """Convenience constructor using a Baileys-like multi-file session folder."""

        config = config or ProviderConfig()
        if folder is not None:
            config.session_dir = str(folder)
        return cls(
            factory=factory,
            session_store=MultiFileSessionStore(config.session_dir),
            config=config,
            **kwargs,
        )

    @property
    def state(self) -> ConnectionState:
        return self.lifecycle.state

    @property
    def vendor(self) -> Connection | None:
        return self.lifecycle.vendor

    def on(self, event: str, listener: Listener) -> None:
        self.events.subscribe(event, listener)

    def off(self, event: str, listener: Listener) -> None:
        self.events.unsubscribe(event, listener)

    async def wait_for(self, event: str, *, timeout_s: float | None = None) -> Any:
        return await self.events.wait_for(event, timeout_s=timeout_s)

    async def start(self) -> None:
        await self.lifecycle.start()

    async def close(self) -> None:
        await self.lifecycle.close()

    async def send_message(
        self, number: str, message: str, options: SendOptions | None = None
    ) -> DeliveryResult:
        return await self.router.send(number, message, options)

    async def send_text(self, number: str, message: str) -> DeliveryResult:
        return await self.router.send_text(number, message)

    async def send_media(self, number: str, media: str | Path, text: str | None = None) -> DeliveryResult:
        return await self.router.send_media(number, media, text)

    async def send_image(self, number: str, file_path: str | Path, text: str | None = None) -> DeliveryResult:
        return await self.router.send_image(number, file_path, text)

    async def send_video(self, number: str, file_path: str | Path, text: str | None = None) -> DeliveryResult:
        return await self.router.send_video(number, file_path, text)

    async def send_audio(self, number: str, audio_path: str | Path) -> DeliveryResult:
        return await self.router.send_audio(number, audio_path)

    async def send_file(self, number: str, file_path: str | Path) -> DeliveryResult:
        return await self.router.send_file(number, file_path)

    async def send_buttons(self, number: str, text: str, buttons: Sequence[Button | str]) -> DeliveryResult:
        return await self.router.send_buttons(number, text, buttons)

    async def send_poll(self, number: str, text: str, options: Sequence[str]) -> DeliveryResult:
        return await self.router.send_poll(number, text, options)

    async def send_location(
        self, jid: str, latitude: float, longitude: float, quoted: Any | None = None
    ) -> DeliveryResult:
        return await self.router.send_location(jid, latitude, longitude, quoted)

    async def send_contact(
        self,
        jid: str,
        contact_number: str,
        display_name: str,
        quoted: Any | None = None,
        *,
        organization: str | None = None,
    ) -> DeliveryResult:
        return await self.router.send_contact(
            jid, contact_number, display_name, quoted, organization=organization
        )

    async def send_sticker(
        self,
        jid: str,
        reference: str | Path,
        options: StickerOptions | None = None,
        quoted: Any | None = None,
    ) -> DeliveryResult:
        return await self.router.send_sticker(jid, reference, options, quoted)

    async def send_presence_update(self, jid: str, presence: Presence) -> None:
        await self.router.send_presence_update(jid, presence)
