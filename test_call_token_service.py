import base64
import json
import struct

import pytest

from call_token_service import (
    APP_ID_INVALID, EFFECTIVE_TIME_INVALID, SECRET_INVALID, USER_ID_INVALID,
    build_room_payload, decode_token04, generate_channel_name, generate_token04,
)
from errors import TokenError

SECRET = "0123456789abcdef0123456789abcdef"


def test_channel_name_is_order_independent():
    assert generate_channel_name("zed", "amy") == "amy_zed"
    assert generate_channel_name("amy", "zed") == "amy_zed"


def test_room_payload_privileges():
    publisher = json.loads(build_room_payload("room-1"))
    audience = json.loads(build_room_payload("room-1", role="audience"))
    assert publisher["privilege"] == {"1": 1, "2": 1}
    assert audience["privilege"] == {"1": 1, "2": 0}
    assert publisher["room_id"] == "room-1"


def test_token_layout():
    token = generate_token04(123456, "user-1", SECRET, 3600, now=1_700_000_000)
    assert token.startswith("04")

    raw = base64.b64decode(token[2:])
    assert struct.unpack(">q", raw[:8])[0] == 1_700_003_600
    assert struct.unpack(">H", raw[8:10])[0] == 16
    iv = raw[10:26]
    assert all(chr(b) in "0123456789abcdefghijklmnopqrstuvwxyz" for b in iv)
    cipher_len = struct.unpack(">H", raw[26:28])[0]
    assert cipher_len % 16 == 0
    assert len(raw) == 28 + cipher_len


def test_token_decrypts_to_claims():
    payload = build_room_payload("amy_zed")
    token = generate_token04(123456, "user-1", SECRET, 600, payload, now=1_700_000_000)

    info = decode_token04(token, SECRET)
    assert info["app_id"] == 123456
    assert info["user_id"] == "user-1"
    assert info["ctime"] == 1_700_000_000
    assert info["expire"] == info["_expire_header"] == 1_700_000_600
    assert info["payload"] == payload
    assert -(2 ** 31) <= info["nonce"] < 2 ** 31


@pytest.mark.parametrize(
    "args, code",
    [
        ((0, "u", SECRET, 60), APP_ID_INVALID),
        (("123", "u", SECRET, 60), APP_ID_INVALID),
        ((1, "", SECRET, 60), USER_ID_INVALID),
        ((1, "u", "short", 60), SECRET_INVALID),
        ((1, "u", SECRET, 0), EFFECTIVE_TIME_INVALID),
    ],
)
def test_invalid_arguments(args, code):
    with pytest.raises(TokenError) as exc:
        generate_token04(*args)
    assert exc.value.code == code
