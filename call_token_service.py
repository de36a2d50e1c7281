"""
Call tokens for the real-time voice/video SDK.

Implements ZEGOCLOUD's Token04 format:

    "04" + base64( expire:int64 BE | len(iv):uint16 BE | iv |
                   len(cipher):uint16 BE | AES-CBC(json token info) )
"""

import base64
import json
import secrets
import string
import struct
import time

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from errors import TokenError

APP_ID_INVALID = 1
USER_ID_INVALID = 3
SECRET_INVALID = 5
EFFECTIVE_TIME_INVALID = 6

_IV_ALPHABET = string.digits + string.ascii_lowercase

PRIVILEGE_LOGIN_ROOM = 1
PRIVILEGE_PUBLISH_STREAM = 2


def generate_channel_name(user_id1: str, user_id2: str) -> str:
    """Channel name shared by both participants regardless of who calls."""
    return "_".join(sorted([str(user_id1), str(user_id2)]))


def build_room_payload(room_id: str, role: str = "publisher") -> str:
    return json.dumps(
        {
            "room_id": room_id,
            "privilege": {
                str(PRIVILEGE_LOGIN_ROOM): 1,
                str(PRIVILEGE_PUBLISH_STREAM): 1 if role == "publisher" else 0,
            },
            "stream_id_list": None,
        }
    )


def _make_nonce() -> int:
    return secrets.randbelow(2 ** 32) - 2 ** 31


def _make_iv() -> str:
    return "".join(secrets.choice(_IV_ALPHABET) for _ in range(16))


def _aes_encrypt(plain_text: str, key: bytes, iv: bytes) -> bytes:
    if len(key) not in (16, 24, 32):
        raise TokenError(SECRET_INVALID, f"Invalid key length: {len(key)}")
    padder = padding.PKCS7(128).padder()
    padded = padder.update(plain_text.encode("utf-8")) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return encryptor.update(padded) + encryptor.finalize()


def generate_token04(app_id, user_id, secret, effective_time_in_seconds, payload="", now=None):
    if not app_id or not isinstance(app_id, int) or isinstance(app_id, bool):
        raise TokenError(APP_ID_INVALID, "appID invalid")
    if not user_id or not isinstance(user_id, str):
        raise TokenError(USER_ID_INVALID, "userId invalid")
    if not secret or not isinstance(secret, str) or len(secret) != 32:
        raise TokenError(SECRET_INVALID, "secret must be a 32 byte string")
    if not effective_time_in_seconds or not isinstance(effective_time_in_seconds, int):
        raise TokenError(EFFECTIVE_TIME_INVALID, "effectiveTimeInSeconds invalid")

    create_time = int(now if now is not None else time.time())
    token_info = {
        "app_id": app_id,
        "user_id": user_id,
        "nonce": _make_nonce(),
        "ctime": create_time,
        "expire": create_time + effective_time_in_seconds,
        "payload": payload or "",
    }

    iv = _make_iv().encode("ascii")
    encrypted = _aes_encrypt(json.dumps(token_info, separators=(",", ":")), secret.encode("utf-8"), iv)

    packed = (
        struct.pack(">q", token_info["expire"])
        + struct.pack(">H", len(iv))
        + iv
        + struct.pack(">H", len(encrypted))
        + encrypted
    )
    return "04" + base64.b64encode(packed).decode("ascii")


def decode_token04(token: str, secret: str) -> dict:
    """Inverse of generate_token04; used to verify tokens."""
    if not token.startswith("04"):
        raise TokenError(SECRET_INVALID, "not a Token04 string")
    raw = base64.b64decode(token[2:])
    expire = struct.unpack(">q", raw[:8])[0]
    iv_len = struct.unpack(">H", raw[8:10])[0]
    iv = raw[10:10 + iv_len]
    offset = 10 + iv_len
    cipher_len = struct.unpack(">H", raw[offset:offset + 2])[0]
    cipher_text = raw[offset + 2:offset + 2 + cipher_len]

    decryptor = Cipher(algorithms.AES(secret.encode("utf-8")), modes.CBC(iv)).decryptor()
    padded = decryptor.update(cipher_text) + decryptor.finalize()
    unpadder = padding.PKCS7(128).unpadder()
    info = json.loads(unpadder.update(padded) + unpadder.finalize())
    info["_expire_header"] = expire
    return info
