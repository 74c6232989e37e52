from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

Listener = Callable[..., Awaitable[None]] | Callable[..., None]
Predicate = Callable[..., bool]

# Upward events: ready(True), qr(challenge), auth_failure(error), message(NormalizedMessage).
EVENTS = frozenset({"ready", "qr", "auth_failure", "message"})


@dataclass(slots=True)
class _Waiter:
    future: asyncio.Future[Any]
    predicate: Predicate | None

    def offer(self, args: tuple[Any, ...]) -> bool:
        if self.predicate is not None and not self.predicate(*args):
            return False
        self.future.set_result(args[0] if len(args) == 1 else args)
        return True


class EventHub:
    """
    Fan-out of the provider's upward events to the application.

    Only names in `events` are accepted; a misspelled name raises `ValueError`
    instead of silently never firing. Listeners (sync or async) run in
    registration order and are awaited one by one, so the application sees
    events in publish order. A failing listener is logged and skipped.
    """

    def __init__(self, events: Iterable[str] = EVENTS) -> None:
        self.events = frozenset(events)
        self._listeners: dict[str, list[Listener]] = {name: [] for name in self.events}
        self._waiters: dict[str, list[_Waiter]] = {name: [] for name in self.events}

    def _check(self, event: str) -> str:
        if event not in self.events:
            raise ValueError(f"unknown event: {event!r}")
        return event

    def subscribe(self, event: str, listener: Listener) -> None:
        self._listeners[self._check(event)].append(listener)

    def unsubscribe(self, event: str, listener: Listener) -> None:
        with contextlib.suppress(ValueError):
            self._listeners[self._check(event)].remove(listener)

    async def publish(self, event: str, *args: Any) -> bool:
        """Deliver `args` to waiters and listeners; False if nobody was there to receive it."""

        self._check(event)
        waiters = self._waiters[event]
        delivered = [w for w in waiters if not w.future.done() and w.offer(args)]
        self._waiters[event] = [w for w in waiters if not w.future.done()]

        listeners = list(self._listeners[event])
        for listener in listeners:
            try:
                res = listener(*args)
                if asyncio.iscoroutine(res):
                    await res
            except Exception:
                logger.exception("listener for %r failed", event)

        return bool(delivered or listeners)

    async def wait_for(
        self,
        event: str,
        *,
        predicate: Predicate | None = None,
        timeout_s: float | None = None,
    ) -> Any:
        """
        Wait for the next publish of `event` that satisfies `predicate`.

        The waiter is registered before the first suspension point, so a publish
        scheduled right after this call is not missed.
        """
        self._check(event)
        waiter = _Waiter(asyncio.get_running_loop().create_future(), predicate)
        self._waiters[event].append(waiter)
        try:
            return await asyncio.wait_for(waiter.future, timeout=timeout_s)
        finally:
            with contextlib.suppress(ValueError):
                self._waiters[event].remove(waiter)
