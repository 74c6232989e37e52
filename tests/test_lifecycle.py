from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import pytest
from fakes import FakeFactory, MemorySessionStore, drain, upsert, wait_until

from wabridge.config import ProviderConfig
from wabridge.constants import DisconnectReason
from wabridge.exceptions import AuthFailure, SessionInvalidated, TransientDisconnect
from wabridge.lifecycle import ConnectionLifecycle, ConnectionState
from wabridge.util.events import EventHub


def _lifecycle(
    tmp_path: Path, factory: FakeFactory, store: MemorySessionStore | None = None, **config: Any
) -> tuple[ConnectionLifecycle, EventHub, list[tuple[str, Any]]]:
    hub = EventHub()
    seen: list[tuple[str, Any]] = []
    for name in ("ready", "qr", "auth_failure", "message"):
        hub.subscribe(name, lambda v, _n=name: seen.append((_n, v)))
    lc = ConnectionLifecycle(
        factory=factory,
        session_store=store or MemorySessionStore(),
        hub=hub,
        config=ProviderConfig(session_dir=str(tmp_path), **config),
    )
    return lc, hub, seen


def _close(status: int | None) -> dict[str, Any]:
    return {"connection": "close", "lastDisconnect": {"error": {"output": {"statusCode": status}}}}


@pytest.mark.asyncio
async def test_open_emits_ready_and_wires_messages(tmp_path: Path) -> None:
    factory = FakeFactory()
    lc, _hub, seen = _lifecycle(tmp_path, factory)
    try:
        await lc.start()
        assert lc.state is ConnectionState.CONNECTING
        conn = factory.current

        # Messages before "open" are not wired yet.
        conn.push("messages.upsert", upsert({"conversation": "early"}))
        conn.push("connection.update", {"connection": "open"})
        conn.push("messages.upsert", upsert({"conversation": "hi"}))
        await drain(conn)

        assert lc.state is ConnectionState.OPEN
        assert lc.vendor is conn
        assert seen[0] == ("ready", True)
        messages = [v for n, v in seen if n == "message"]
        assert [m.body for m in messages] == ["hi"]
    finally:
        await lc.close()


@pytest.mark.asyncio
async def test_qr_does_not_leave_connecting(tmp_path: Path) -> None:
    factory = FakeFactory()
    lc, _hub, seen = _lifecycle(tmp_path, factory)
    try:
        await lc.start()
        factory.current.push("connection.update", {"qr": "2@abc"})
        await drain(factory.current)
        assert seen == [("qr", "2@abc")]
        assert lc.state is ConnectionState.CONNECTING
        assert lc.vendor is None
    finally:
        await lc.close()


@pytest.mark.asyncio
async def test_logged_out_wipes_session_and_reconnects(tmp_path: Path) -> None:
    factory = FakeFactory()
    store = MemorySessionStore({"me": {"id": "1@s.whatsapp.net"}})
    lc, _hub, _seen = _lifecycle(tmp_path, factory, store)
    try:
        await lc.start()
        first = factory.current
        first.push("connection.update", {"connection": "open"})
        first.push("connection.update", _close(DisconnectReason.LOGGED_OUT))
        await wait_until(lambda: len(factory.connections) == 2)

        assert store.clears == 1
        assert store.loads == 2
        assert factory.sessions[-1].creds == {}
        assert first.closed
        assert isinstance(lc.last_disconnect, SessionInvalidated)
        assert lc.state is ConnectionState.CONNECTING
        assert lc.vendor is None
    finally:
        await lc.close()


@pytest.mark.asyncio
async def test_transient_close_reconnects_with_existing_session(tmp_path: Path) -> None:
    factory = FakeFactory()
    store = MemorySessionStore({"me": {"id": "1@s.whatsapp.net"}})
    lc, _hub, _seen = _lifecycle(tmp_path, factory, store)
    try:
        await lc.start()
        factory.current.push("connection.update", {"connection": "open"})
        factory.current.push("connection.update", _close(DisconnectReason.CONNECTION_LOST))
        await wait_until(lambda: len(factory.connections) == 2)

        assert store.clears == 0
        assert factory.sessions[-1].creds == {"me": {"id": "1@s.whatsapp.net"}}
        assert isinstance(lc.last_disconnect, TransientDisconnect)
        assert lc.last_disconnect.status_code == 408

        factory.current.push("connection.update", {"connection": "open"})
        await drain(factory.current)
        assert lc.state is ConnectionState.OPEN
        assert lc.last_disconnect is None
    finally:
        await lc.close()


@pytest.mark.asyncio
async def test_start_failure_publishes_auth_failure(tmp_path: Path) -> None:
    factory = FakeFactory()
    store = MemorySessionStore(fail=OSError("unreadable"))
    lc, _hub, seen = _lifecycle(tmp_path, factory, store)
    try:
        await lc.start()
        assert factory.connections == []
        assert lc.state is ConnectionState.DISCONNECTED
        assert len(seen) == 1
        name, err = seen[0]
        assert name == "auth_failure"
        assert isinstance(err, AuthFailure)
        assert isinstance(err.__cause__, OSError)
    finally:
        await lc.close()


@pytest.mark.asyncio
async def test_creds_update_is_saved(tmp_path: Path) -> None:
    factory = FakeFactory()
    store = MemorySessionStore()
    lc, _hub, _seen = _lifecycle(tmp_path, factory, store)
    try:
        await lc.start()
        factory.current.push("creds.update", {"registered": True})
        await drain(factory.current)
        assert store.saves == 1
        assert store.saved[-1] == {"registered": True}
    finally:
        await lc.close()


@pytest.mark.asyncio
async def test_poll_update_uses_store_lookup(tmp_path: Path) -> None:
    import hashlib

    factory = FakeFactory()
    lc, _hub, seen = _lifecycle(tmp_path, factory)
    try:
        await lc.start()
        conn = factory.current
        conn.push("connection.update", {"connection": "open"})
        poll = {"pollCreationMessage": {"name": "Q", "options": [{"optionName": "A"}, {"optionName": "B"}]}}
        # The creation message is indexed even though it comes from us.
        conn.push("messages.upsert", upsert(poll, msg_id="POLL", from_me=True, type_="append"))
        conn.push(
            "messages.update",
            [
                {
                    "key": {"remoteJid": "123@s.whatsapp.net", "id": "POLL"},
                    "update": {
                        "pollUpdates": [
                            {
                                "pollUpdateMessageKey": {"remoteJid": "123@s.whatsapp.net"},
                                "vote": {"selectedOptions": [hashlib.sha256(b"B").digest()]},
                            }
                        ]
                    },
                },
                {
                    "key": {"remoteJid": "123@s.whatsapp.net", "id": "UNKNOWN"},
                    "update": {"pollUpdates": [{}]},
                },
            ],
        )
        await drain(conn)

        polls = [v for n, v in seen if n == "message"]
        assert len(polls) == 1
        assert polls[0].type == "poll"
        assert polls[0].body == "B"
        assert polls[0].voters == poll
    finally:
        await lc.close()


@pytest.mark.asyncio
async def test_message_order_is_preserved(tmp_path: Path) -> None:
    factory = FakeFactory()
    lc, _hub, seen = _lifecycle(tmp_path, factory)
    try:
        await lc.start()
        conn = factory.current
        conn.push("connection.update", {"connection": "open"})
        for i in range(10):
            conn.push("messages.upsert", upsert({"conversation": str(i)}, msg_id=str(i)))
        await drain(conn)
        assert [v.body for n, v in seen if n == "message"] == [str(i) for i in range(10)]
    finally:
        await lc.close()


@pytest.mark.asyncio
async def test_store_snapshot_is_flushed_periodically_and_stopped_on_close(tmp_path: Path) -> None:
    factory = FakeFactory()
    lc, _hub, _seen = _lifecycle(tmp_path, factory, store_flush_interval_s=0.01)
    await lc.start()
    factory.current.push("messages.upsert", upsert({"conversation": "keep"}, msg_id="M1"))
    await drain(factory.current)

    await wait_until(lambda: lc.store_path.exists())
    await lc.close()

    assert lc._persist_task is None
    assert lc.state is ConnectionState.DISCONNECTED
    assert factory.current.closed

    lc.store_path.unlink()
    await asyncio.sleep(0.05)
    assert not lc.store_path.exists()


@pytest.mark.asyncio
async def test_snapshot_is_loaded_on_start(tmp_path: Path) -> None:
    factory = FakeFactory()
    lc, _hub, _seen = _lifecycle(tmp_path, factory)
    await lc.start()
    factory.current.push("messages.upsert", upsert({"conversation": "old"}, msg_id="OLD"))
    await drain(factory.current)
    await lc.close()

    factory2 = FakeFactory()
    lc2, _hub2, _seen2 = _lifecycle(tmp_path, factory2)
    try:
        await lc2.start()
        got = await factory2.get_message({"remoteJid": "123@s.whatsapp.net", "id": "OLD"})
        assert got == {"conversation": "old"}
    finally:
        await lc2.close()
