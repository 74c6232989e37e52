from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from .connection import RawEvent, dig
from .util import json as bufferjson

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ChatInfo:
    jid: str
    name: str | None = None
    last_message_at: int | None = None


@dataclass(slots=True)
class ContactInfo:
    """
    Best-effort contact metadata.

    `notify` is the "push name" the contact has set for themselves.
    """

    jid: str
    name: str | None = None
    notify: str | None = None


@dataclass(slots=True)
class MessageInfo:
    id: str
    chat_jid: str
    sender_jid: str | None
    timestamp_s: int
    message: Any | None = None  # the message content (`message` field of the raw entry)


class ConversationStore:
    """
    In-memory mirror of conversation metadata fed by the connection's event stream.

    It exists so poll updates (and the connection's own retry logic) can look up
    previously-seen messages. It is snapshotted to a JSON file periodically.
    """

    def __init__(self, *, max_messages_per_chat: int = 100) -> None:
        self.max_messages_per_chat = max_messages_per_chat
        self._chats: dict[str, ChatInfo] = {}
        self._messages: dict[str, list[MessageInfo]] = {}
        self._contacts: dict[str, ContactInfo] = {}

    def clear(self) -> None:
        self._chats.clear()
        self._messages.clear()
        self._contacts.clear()

    def observe(self, event: RawEvent) -> None:
        """Index the messages carried by an upsert, regardless of its type."""

        if event.name != "messages.upsert":
            return
        for entry in dig(event.payload, "messages") or []:
            self._index_entry(entry)

    def _index_entry(self, entry: Any) -> None:
        chat_jid = dig(entry, "key", "remoteJid")
        msg_id = dig(entry, "key", "id")
        if not chat_jid or not msg_id:
            return
        sender = dig(entry, "key", "participant") or (None if dig(entry, "key", "fromMe") else chat_jid)
        ts = dig(entry, "messageTimestamp")
        timestamp_s = int(ts) if isinstance(ts, (int, float)) else 0

        self.upsert_chat(ChatInfo(jid=chat_jid, last_message_at=timestamp_s or None))
        push_name = dig(entry, "pushName")
        if sender and push_name:
            self.upsert_contact(ContactInfo(jid=sender, notify=push_name))

        existing = self.find_message(chat_jid, msg_id)
        if existing is not None:
            existing.message = dig(entry, "message") or existing.message
            return
        self.add_message(
            MessageInfo(
                id=msg_id,
                chat_jid=chat_jid,
                sender_jid=sender,
                timestamp_s=timestamp_s,
                message=dig(entry, "message"),
            )
        )

    def upsert_chat(self, chat: ChatInfo) -> None:
        existing = self._chats.get(chat.jid)
        if existing is None:
            self._chats[chat.jid] = chat
            return
        # Merge, preferring new non-null values.
        existing.name = chat.name or existing.name
        existing.last_message_at = chat.last_message_at or existing.last_message_at

    def upsert_contact(self, contact: ContactInfo) -> None:
        existing = self._contacts.get(contact.jid)
        if existing is None:
            self._contacts[contact.jid] = contact
            return
        existing.name = contact.name or existing.name
        existing.notify = contact.notify or existing.notify

    def add_message(self, msg: MessageInfo) -> None:
        msgs = self._messages.setdefault(msg.chat_jid, [])
        msgs.append(msg)
        if len(msgs) > self.max_messages_per_chat:
            del msgs[: len(msgs) - self.max_messages_per_chat]

    def list_chats(self) -> list[ChatInfo]:
        return list(self._chats.values())

    def get_contact(self, jid: str) -> ContactInfo | None:
        return self._contacts.get(jid)

    def get_messages(self, chat_jid: str, *, limit: int = 50) -> list[MessageInfo]:
        msgs = self._messages.get(chat_jid) or []
        if limit <= 0:
            return []
        return msgs[-limit:]

    def find_message(self, chat_jid: str, msg_id: str) -> MessageInfo | None:
        if not msg_id:
            return None
        for m in reversed(self._messages.get(chat_jid) or []):
            if m.id == msg_id:
                return m
        return None

    async def load_message(self, key: Mapping[str, Any] | Any) -> Any | None:
        """Return the message content for a key (`remoteJid` + `id`), if known."""

        found = self.find_message(dig(key, "remoteJid") or "", dig(key, "id") or "")
        return found.message if found else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "chats": [asdict(c) for c in self._chats.values()],
            "contacts": [asdict(c) for c in self._contacts.values()],
            "messages": {jid: [asdict(m) for m in msgs] for jid, msgs in self._messages.items()},
        }

    def load_dict(self, data: Mapping[str, Any]) -> None:
        for c in data.get("chats") or []:
            self.upsert_chat(ChatInfo(**c))
        for c in data.get("contacts") or []:
            self.upsert_contact(ContactInfo(**c))
        for msgs in (data.get("messages") or {}).values():
            for m in msgs:
                self.add_message(MessageInfo(**m))

    async def write_to_file(self, path: Path) -> None:
        data = bufferjson.dumps(self.to_dict())
        await asyncio.to_thread(_write_atomic, path, data)

    async def read_from_file(self, path: Path) -> bool:
        """Load a snapshot if one exists. A corrupt snapshot is logged and ignored."""

        if not path.exists():
            return False
        try:
            raw = await asyncio.to_thread(path.read_text, "utf-8")
            data = bufferjson.loads(raw)
            if not isinstance(data, dict):
                raise TypeError("store snapshot did not contain an object")
            self.load_dict(data)
        except (OSError, ValueError, TypeError) as e:
            logger.warning("ignoring unreadable store snapshot %s: %s", path, e)
            return False
        return True


def _write_atomic(path: Path, data: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_text(data, "utf-8")
    tmp.replace(path)
