"""
Contact identifier (JID) helpers.

A contact is addressed either as an individual (`<digits>@s.whatsapp.net`) or a
group (`<id>@g.us`). `format_phone` is idempotent: formatting an already-clean
identifier returns it unchanged.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .constants import C_US, G_US, S_WHATSAPP_NET, STATUS_BROADCAST

_USER_RE = re.compile(r"^\d+$")
_GROUP_RE = re.compile(r"^\d+(-\d+)?$")
_LID = "@lid"


@dataclass(frozen=True, slots=True)
class Jid:
    user: str
    server: str
    device: int | None = None


def jid_decode(jid: str | None) -> Jid | None:
    if not jid:
        return None
    sep = jid.find("@")
    if sep < 0:
        return None
    server = jid[sep + 1 :]
    user, _, device = jid[:sep].partition(":")
    return Jid(user=user, server=server, device=int(device) if device.isdigit() else None)


def is_group(jid: str) -> bool:
    return jid.endswith(G_US)


def is_broadcast(jid: str | None) -> bool:
    return jid == STATUS_BROADCAST


def format_phone(contact: str, *, full: bool = False) -> str:
    """
    Normalize a phone number or JID.

    With `full=False` (default) the domain is attached; with `full=True` only the
    bare user part is returned. `+`, spaces and device suffixes are dropped for
    individual contacts; `c.us` addresses are mapped to `s.whatsapp.net`.
    """

    contact = contact.strip()
    if is_group(contact):
        return contact[: -len(G_US)] if full else contact
    if contact.endswith(_LID):
        return contact[: -len(_LID)] if full else contact

    for suffix in (S_WHATSAPP_NET, C_US):
        if contact.endswith(suffix):
            contact = contact[: -len(suffix)]
            break
    user = contact.split(":", 1)[0].replace(" ", "").replace("+", "")
    return user if full else f"{user}{S_WHATSAPP_NET}"


def is_valid_contact(jid: str | None) -> bool:
    """True for a well-formed individual, group or LID identifier."""

    dec = jid_decode(jid)
    if not dec or not dec.user:
        return False
    if dec.server == "g.us":
        return bool(_GROUP_RE.match(dec.user))
    if dec.server in ("s.whatsapp.net", "c.us", "lid"):
        return bool(_USER_RE.match(dec.user))
    return False
