"""Wire encodings: binary fields travel as base64, hashes are shown as hex."""

import base64
import binascii


def to_b64(data: bytes) -> str:
    return base64.b64encode(bytes(data)).decode()


def from_b64(value: str) -> bytes:
    """Strict base64 decode; raises ValueError on anything malformed."""
    if not isinstance(value, str) or not value:
        raise ValueError("Expected a non-empty base64 string")
    try:
        return base64.b64decode(value, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64: {e}") from e


def to_hex(data: bytes) -> str:
    return bytes(data).hex()
