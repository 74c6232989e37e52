"""
Default poll-vote aggregation.

Votes reference options by the SHA-256 of the option name. The result lists
every option of the poll-creation message (in order) with its voters; votes for
unknown hashes are collected under "Unknown".
"""

from __future__ import annotations

import hashlib
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from .connection import dig


@dataclass(slots=True)
class PollOptionVotes:
    name: str
    voters: list[str] = field(default_factory=list)


PollAggregator = Callable[[Any, Iterable[Any]], Awaitable[list[PollOptionVotes]] | list[PollOptionVotes]]


def poll_options(message: Any) -> list[str]:
    for field_name in ("pollCreationMessage", "pollCreationMessageV2", "pollCreationMessageV3"):
        opts = dig(message, field_name, "options")
        if opts:
            return [str(dig(o, "optionName") or "") for o in opts]
    return []


def option_hash(name: str) -> str:
    return hashlib.sha256(name.encode("utf-8")).hexdigest()


def _hash_key(option: Any) -> str:
    if isinstance(option, (bytes, bytearray, memoryview)):
        return bytes(option).hex()
    return str(option).lower()


def key_author(key: Any, me_id: str = "me") -> str:
    if dig(key, "fromMe"):
        return me_id
    return str(dig(key, "participant") or dig(key, "remoteJid") or "")


def aggregate_poll_votes(message: Any, poll_updates: Iterable[Any]) -> list[PollOptionVotes]:
    tally: dict[str, PollOptionVotes] = {}
    for name in poll_options(message):
        tally.setdefault(option_hash(name), PollOptionVotes(name=name))

    for update in poll_updates or []:
        vote = dig(update, "vote")
        if not vote:
            continue
        voter = key_author(dig(update, "pollUpdateMessageKey"))
        for option in dig(vote, "selectedOptions") or []:
            tally.setdefault(_hash_key(option), PollOptionVotes(name="Unknown")).voters.append(voter)
    return list(tally.values())


def most_voted(results: Iterable[Any]) -> str:
    """Name of the option with the most voters; first in poll order on a tie, "" if no votes."""

    best_name = ""
    best_count = 0
    for r in results:
        count = len(dig(r, "voters") or [])
        if count > best_count:
            best_name, best_count = str(dig(r, "name") or ""), count
    return best_name
