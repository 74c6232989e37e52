from __future__ import annotations

from pathlib import Path

import pytest
from fakes import upsert

from wabridge.connection import RawEvent
from wabridge.store import ConversationStore


def test_observe_indexes_upserted_messages() -> None:
    store = ConversationStore()
    payload = upsert({"conversation": "hi"}, msg_id="M1")
    payload["messages"][0]["pushName"] = "Ann"
    payload["messages"][0]["messageTimestamp"] = 1700000000
    store.observe(RawEvent("messages.upsert", payload))
    store.observe(RawEvent("connection.update", {"connection": "open"}))

    [chat] = store.list_chats()
    assert chat.jid == "123@s.whatsapp.net"
    assert chat.last_message_at == 1700000000
    contact = store.get_contact("123@s.whatsapp.net")
    assert contact is not None and contact.notify == "Ann"
    msg = store.find_message("123@s.whatsapp.net", "M1")
    assert msg is not None and msg.message == {"conversation": "hi"}


def test_messages_per_chat_are_capped() -> None:
    store = ConversationStore(max_messages_per_chat=3)
    for i in range(5):
        store.observe(RawEvent("messages.upsert", upsert({"conversation": str(i)}, msg_id=str(i))))
    assert [m.id for m in store.get_messages("123@s.whatsapp.net")] == ["2", "3", "4"]


@pytest.mark.asyncio
async def test_snapshot_roundtrip(tmp_path: Path) -> None:
    store = ConversationStore()
    store.observe(RawEvent("messages.upsert", upsert({"imageMessage": {"jpegThumbnail": b"\x00\x01"}}, msg_id="IMG")))
    path = tmp_path / "nested" / "baileys_store.json"
    await store.write_to_file(path)

    loaded = ConversationStore()
    assert await loaded.read_from_file(path) is True
    got = await loaded.load_message({"remoteJid": "123@s.whatsapp.net", "id": "IMG"})
    assert got == {"imageMessage": {"jpegThumbnail": b"\x00\x01"}}


@pytest.mark.asyncio
async def test_missing_or_corrupt_snapshot_is_ignored(tmp_path: Path) -> None:
    store = ConversationStore()
    assert await store.read_from_file(tmp_path / "nope.json") is False
    bad = tmp_path / "bad.json"
    bad.write_text("[1, 2", "utf-8")
    assert await store.read_from_file(bad) is False
    assert store.list_chats() == []
