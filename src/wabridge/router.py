"""
Outbound sends.

`send()` routes on a tagged `SendOptions` value:

- `ButtonsOptions`: a single-choice poll with the button labels as options
  (a single label fails without sending; no labels at all sends plain text),
- `MediaOptions`: acquire the media and dispatch by content-type family
  (audio is transcoded and sent as a voice note),
- `TextOptions` / None: plain text.

Structured sends (location, contact, presence, sticker) are direct translations
and do not go through that tree.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .config import ProviderConfig
from .connection import Connection, Presence
from .exceptions import NotConnectedError, ValidationError
from .jid import format_phone, is_valid_contact
from .media import MediaAcquirer, content_type_for
from .transcode import AudioTranscoder

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DeliveryResult:
    ok: bool
    receipt: Any | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class Button:
    body: str


@dataclass(frozen=True, slots=True)
class TextOptions:
    pass


@dataclass(frozen=True, slots=True)
class ButtonsOptions:
    buttons: Sequence[Button | str]

    @property
    def labels(self) -> list[str]:
        return [b if isinstance(b, str) else b.body for b in self.buttons]


@dataclass(frozen=True, slots=True)
class MediaOptions:
    media: str | Path


SendOptions = TextOptions | ButtonsOptions | MediaOptions


@dataclass(slots=True)
class StickerOptions:
    pack: str = ""
    author: str = ""
    quality: int | None = None
    type: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


StickerMaker = Callable[[Path, StickerOptions], Awaitable[Mapping[str, Any]]]


async def raw_sticker(path: Path, options: StickerOptions) -> Mapping[str, Any]:
    """Pass the file through unchanged; real image processing is pluggable."""

    data = await asyncio.to_thread(path.read_bytes)
    return {"sticker": data}


def build_vcard(contact_number: str, display_name: str, *, organization: str | None = None) -> str:
    number = contact_number.replace(" ", "")
    waid = number.replace("+", "")
    lines = ["BEGIN:VCARD", "VERSION:3.0", f"FN:{display_name}"]
    if organization:
        lines.append(f"ORG:{organization};")
    lines.append(f"TEL;type=CELL;type=VOICE;waid={waid}:{number}")
    lines.append("END:VCARD")
    return "\n".join(lines)


class DispatchRouter:
    def __init__(
        self,
        connection: Callable[[], Connection | None],
        *,
        config: ProviderConfig | None = None,
        acquirer: MediaAcquirer | None = None,
        transcoder: AudioTranscoder | None = None,
        sticker_maker: StickerMaker = raw_sticker,
    ) -> None:
        self.config = config or ProviderConfig()
        self._connection = connection
        self.acquirer = acquirer or MediaAcquirer(timeout_s=self.config.download_timeout_s)
        self.transcoder = transcoder or AudioTranscoder(
            ffmpeg_path=self.config.ffmpeg_path, bitrate=self.config.audio_bitrate
        )
        self.sticker_maker = sticker_maker

    def _vendor(self) -> Connection:
        conn = self._connection()
        if conn is None:
            raise NotConnectedError("connection is not open")
        return conn

    @staticmethod
    def target(number: str) -> str:
        jid = format_phone(number)
        if not is_valid_contact(jid):
            raise ValidationError(f"invalid contact identifier: {number!r}")
        return jid

    async def _send(
        self, number: str, content: Mapping[str, Any], *, quoted: Any | None = None
    ) -> DeliveryResult:
        jid = self.target(number)
        receipt = await self._vendor().send_message(jid, content, quoted=quoted)
        return DeliveryResult(ok=True, receipt=receipt)

    async def send(
        self, number: str, message: str, options: SendOptions | None = None
    ) -> DeliveryResult:
        if isinstance(options, ButtonsOptions) and options.labels:
            return await self.send_poll(number, message, options.labels)
        if isinstance(options, MediaOptions):
            return await self.send_media(number, options.media, message)
        return await self.send_text(number, message)

    async def send_text(self, number: str, message: str) -> DeliveryResult:
        return await self._send(number, {"text": message})

    async def send_media(
        self, number: str, media: str | Path, text: str | None = None
    ) -> DeliveryResult:
        jid = self.target(number)
        try:
            desc = await self.acquirer.acquire(media)
            family = desc.family
            if family == "image":
                return await self.send_image(jid, desc.local_path, text)
            if family == "video":
                return await self.send_video(jid, desc.local_path, text)
            if family == "audio":
                voice = await self.transcoder.transcode(desc.local_path, self.config.audio_format)
                return await self.send_audio(jid, voice)
            return await self.send_file(jid, desc.local_path)
        except Exception as e:
            logger.error("sending media %s to %s failed: %s", media, jid, e)
            raise

    async def send_image(
        self, number: str, file_path: str | Path, text: str | None = None
    ) -> DeliveryResult:
        data = await asyncio.to_thread(Path(file_path).read_bytes)
        return await self._send(number, {"image": data, "caption": text or ""})

    async def send_video(
        self, number: str, file_path: str | Path, text: str | None = None
    ) -> DeliveryResult:
        data = await asyncio.to_thread(Path(file_path).read_bytes)
        return await self._send(
            number, {"video": data, "caption": text or "", "gifPlayback": self.config.gif_playback}
        )

    async def send_audio(self, number: str, audio_path: str | Path) -> DeliveryResult:
        return await self._send(number, {"audio": {"url": str(audio_path)}, "ptt": True})

    async def send_file(self, number: str, file_path: str | Path) -> DeliveryResult:
        p = Path(file_path)
        return await self._send(
            number,
            {
                "document": {"url": str(p)},
                "mimetype": content_type_for(p) or "application/octet-stream",
                "fileName": p.name,
            },
        )

    async def send_buttons(
        self, number: str, text: str, buttons: Sequence[Button | str]
    ) -> DeliveryResult:
        labels = ButtonsOptions(buttons).labels
        return await self._send(
            number,
            {
                "text": text,
                "footer": "",
                "buttons": [
                    {"buttonId": f"id-btn-{i}", "buttonText": {"displayText": label}, "type": 1}
                    for i, label in enumerate(labels)
                ],
                "headerType": 1,
            },
        )

    async def send_poll(self, number: str, text: str, options: Sequence[str]) -> DeliveryResult:
        jid = self.target(number)
        if len(options) < 2:
            logger.debug("not sending poll to %s: %d option(s)", jid, len(options))
            return DeliveryResult(ok=False, error="a poll needs at least 2 options")
        return await self._send(
            jid, {"poll": {"name": text, "values": list(options), "selectableCount": 1}}
        )

    async def send_location(
        self, jid: str, latitude: float, longitude: float, quoted: Any | None = None
    ) -> DeliveryResult:
        await self._send(
            jid,
            {"location": {"degreesLatitude": latitude, "degreesLongitude": longitude}},
            quoted=quoted,
        )
        return DeliveryResult(ok=True)

    async def send_contact(
        self,
        jid: str,
        contact_number: str,
        display_name: str,
        quoted: Any | None = None,
        *,
        organization: str | None = None,
    ) -> DeliveryResult:
        vcard = build_vcard(contact_number, display_name, organization=organization)
        await self._send(
            jid,
            {"contacts": {"displayName": display_name, "contacts": [{"vcard": vcard}]}},
            quoted=quoted,
        )
        return DeliveryResult(ok=True)

    async def send_presence_update(self, jid: str, presence: Presence) -> None:
        await self._vendor().send_presence_update(presence, self.target(jid))

    async def send_sticker(
        self,
        jid: str,
        reference: str | Path,
        options: StickerOptions | None = None,
        quoted: Any | None = None,
    ) -> DeliveryResult:
        target = self.target(jid)
        opts = options or StickerOptions()
        opts = replace(
            opts,
            quality=self.config.sticker_quality if opts.quality is None else opts.quality,
            type=self.config.sticker_type if opts.type is None else opts.type,
        )

        desc = await self.acquirer.acquire(reference)
        content = await self.sticker_maker(desc.local_path, opts)
        return await self._send(target, content, quoted=quoted)
