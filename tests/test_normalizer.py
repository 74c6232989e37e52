from __future__ import annotations

from fakes import upsert

from wabridge.constants import REF_DOCUMENT, REF_LOCATION, REF_MEDIA, REF_VOICE_NOTE
from wabridge.normalizer import EventNormalizer, generate_ref


def test_plain_conversation_text() -> None:
    payload = {
        "type": "notify",
        "messages": [
            {"key": {"remoteJid": "123@s.whatsapp.net", "fromMe": False}, "message": {"conversation": "hi"}}
        ],
    }
    msg = EventNormalizer().normalize_upsert(payload)

    assert msg is not None
    assert msg.from_jid == "123@s.whatsapp.net"
    assert msg.type == "text"
    assert msg.body == "hi"
    assert msg.raw is payload["messages"][0]
    assert msg.voters is None
    assert msg.to_dict()["from"] == "123@s.whatsapp.net"


def test_extended_text_preferred_over_conversation() -> None:
    msg = EventNormalizer().normalize_upsert(
        upsert({"extendedTextMessage": {"text": "styled"}, "conversation": "plain"})
    )
    assert msg is not None
    assert msg.body == "styled"


def test_filtered_events_emit_nothing() -> None:
    n = EventNormalizer()
    assert n.normalize_upsert(upsert({"conversation": "x"}, type_="append")) is None
    assert n.normalize_upsert(upsert({"pollUpdateMessage": {}})) is None
    assert n.normalize_upsert(upsert({"conversation": "x"}, jid="status@broadcast")) is None
    assert n.normalize_upsert(upsert({"conversation": "x"}, from_me=True)) is None
    assert n.normalize_upsert({"type": "notify", "messages": []}) is None


def test_invalid_sender_is_dropped() -> None:
    n = EventNormalizer()
    assert n.normalize_upsert(upsert({"conversation": "x"}, jid="garbage")) is None
    assert n.normalize_upsert(upsert({"conversation": "x"}, jid="abc@s.whatsapp.net")) is None


def test_group_sender_is_kept() -> None:
    msg = EventNormalizer().normalize_upsert(upsert({"conversation": "x"}, jid="123-456@g.us"))
    assert msg is not None
    assert msg.from_jid == "123-456@g.us"


def test_media_types_get_reference_tokens() -> None:
    n = EventNormalizer()
    cases = [
        ({"locationMessage": {"degreesLatitude": 1.5, "degreesLongitude": 2}}, "location", REF_LOCATION),
        ({"imageMessage": {"mimetype": "image/jpeg"}}, "image", REF_MEDIA),
        ({"documentMessage": {"fileName": "a.pdf"}}, "file", REF_DOCUMENT),
        ({"audioMessage": {"ptt": True}}, "voice", REF_VOICE_NOTE),
    ]
    for message, expected_type, prefix in cases:
        msg = n.normalize_upsert(upsert(message))
        assert msg is not None
        assert msg.type == expected_type
        assert msg.body.startswith(prefix + "_")


def test_reference_tokens_are_fresh() -> None:
    assert generate_ref(REF_MEDIA) != generate_ref(REF_MEDIA)
    assert generate_ref().count("-") == 4


def test_location_requires_numeric_coordinates() -> None:
    msg = EventNormalizer().normalize_upsert(
        upsert({"locationMessage": {"degreesLatitude": "1.5", "degreesLongitude": 2.0}})
    )
    assert msg is not None
    assert msg.type == "text"


def test_location_wins_over_other_media() -> None:
    msg = EventNormalizer().normalize_upsert(
        upsert(
            {
                "locationMessage": {"degreesLatitude": 1.0, "degreesLongitude": 2.0},
                "imageMessage": {},
                "audioMessage": {},
            }
        )
    )
    assert msg is not None
    assert msg.type == "location"


def test_image_wins_over_document_and_audio() -> None:
    msg = EventNormalizer().normalize_upsert(
        upsert({"imageMessage": {}, "documentMessage": {}, "audioMessage": {}})
    )
    assert msg is not None
    assert msg.type == "image"


def test_button_reply_overrides_body_but_not_type() -> None:
    msg = EventNormalizer().normalize_upsert(
        upsert(
            {
                "locationMessage": {"degreesLatitude": 1.0, "degreesLongitude": 2.0},
                "buttonsResponseMessage": {"selectedDisplayText": "Yes"},
            }
        )
    )
    assert msg is not None
    assert msg.type == "location"
    assert msg.body == "Yes"


def test_list_reply_overrides_body() -> None:
    msg = EventNormalizer().normalize_upsert(
        upsert({"conversation": "", "listResponseMessage": {"title": "Option B"}})
    )
    assert msg is not None
    assert msg.type == "text"
    assert msg.body == "Option B"
