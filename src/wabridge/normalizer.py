"""
Inbound event normalization.

`messages.upsert` batches become at most one `NormalizedMessage`; poll votes
arriving through `messages.update` become `poll` messages.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Iterable
from typing import Any

from .connection import GetMessage, dig
from .constants import REF_DOCUMENT, REF_LOCATION, REF_MEDIA, REF_VOICE_NOTE
from .jid import format_phone, is_broadcast, is_valid_contact
from .messages import MessageType, NormalizedMessage
from .polls import PollAggregator, aggregate_poll_votes, most_voted

logger = logging.getLogger(__name__)


def generate_ref(prefix: str = "") -> str:
    return f"{prefix}_{uuid.uuid4()}" if prefix else str(uuid.uuid4())


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def classify(message: Any) -> tuple[MessageType, str | None]:
    """
    Return `(type, reference_prefix)` for a message body; first match wins.

    A location only counts when both coordinates are numeric.
    """

    location = dig(message, "locationMessage")
    if location is not None and _is_number(dig(location, "degreesLatitude")) and _is_number(
        dig(location, "degreesLongitude")
    ):
        return "location", REF_LOCATION
    if dig(message, "imageMessage") is not None:
        return "image", REF_MEDIA
    if dig(message, "documentMessage") is not None:
        return "file", REF_DOCUMENT
    if dig(message, "audioMessage") is not None:
        return "voice", REF_VOICE_NOTE
    return "text", None


def interactive_reply(message: Any) -> str | None:
    """Display text of a quick-reply button or list selection, list taking priority."""

    list_title = dig(message, "listResponseMessage", "title")
    if list_title:
        return str(list_title)
    button_text = dig(message, "buttonsResponseMessage", "selectedDisplayText")
    if button_text:
        return str(button_text)
    return None


class EventNormalizer:
    def __init__(self, *, aggregate: PollAggregator = aggregate_poll_votes) -> None:
        self._aggregate = aggregate

    def normalize_upsert(self, payload: Any) -> NormalizedMessage | None:
        if dig(payload, "type") != "notify":
            logger.debug("dropping upsert of type %r", dig(payload, "type"))
            return None

        messages = dig(payload, "messages") or []
        if not messages:
            return None
        entry = messages[0]
        message = dig(entry, "message")
        sender = dig(entry, "key", "remoteJid")

        if dig(message, "pollUpdateMessage") is not None:
            logger.debug("dropping poll update message from %s", sender)
            return None
        if is_broadcast(sender):
            logger.debug("dropping status broadcast")
            return None
        if dig(entry, "key", "fromMe"):
            logger.debug("dropping own message to %s", sender)
            return None

        msg_type, prefix = classify(message)
        if prefix is not None:
            body = generate_ref(prefix)
        else:
            body = dig(message, "extendedTextMessage", "text") or dig(message, "conversation") or ""

        if not is_valid_contact(sender):
            logger.debug("dropping message with invalid sender %r", sender)
            return None

        reply = interactive_reply(message)
        if reply is not None:
            body = reply

        return NormalizedMessage(
            from_jid=format_phone(sender),
            type=msg_type,
            body=str(body),
            raw=entry,
        )

    async def normalize_poll_updates(
        self, updates: Iterable[Any], get_message: GetMessage
    ) -> list[NormalizedMessage]:
        out: list[NormalizedMessage] = []
        for item in updates or []:
            poll_updates = dig(item, "update", "pollUpdates")
            if not poll_updates:
                continue
            key = dig(item, "key")
            remote = dig(key, "remoteJid")
            poll_creation = await get_message(key)
            if not poll_creation:
                logger.debug("poll creation message %s not found", dig(key, "id"))
                continue

            results = self._aggregate(poll_creation, poll_updates)
            if asyncio.iscoroutine(results):
                results = await results
            out.append(
                NormalizedMessage(
                    from_jid=format_phone(str(remote)) if remote else "",
                    type="poll",
                    body=most_voted(results),
                    raw=item,
                    voters=poll_creation,
                )
            )
        return out
