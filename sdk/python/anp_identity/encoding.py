"""Byte encodings used in DID documents and signatures.

- Multibase: ``z`` prefix + base58btc of the raw public key
- base64url: RFC 4648 URL-safe alphabet, no padding
- Uncompressed EC points: ``0x04 || X(32) || Y(32)``
"""

import base64
import secrets

import base58

from anp_identity.errors import KeyError, SerializationError

# Multibase prefix for base58btc
BASE58BTC_PREFIX = "z"

UNCOMPRESSED_POINT_PREFIX = 0x04
COORDINATE_SIZE = 32


def b64url_encode(data: bytes) -> str:
    """Encode bytes as unpadded base64url."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(text: str) -> bytes:
    """Decode base64url text, with or without padding.

    Only the canonical encoding is accepted: standard-alphabet characters
    and non-zero trailing bits are rejected.
    """
    if "+" in text or "/" in text:
        raise SerializationError("invalid base64url: standard alphabet characters")
    padding = "=" * (-len(text) % 4)
    try:
        raw = base64.b64decode(text + padding, altchars=b"-_", validate=True)
    except (ValueError, TypeError) as exc:
        raise SerializationError(f"invalid base64url: {exc}") from exc
    if b64url_encode(raw) != text.rstrip("="):
        raise SerializationError("invalid base64url: non-canonical encoding")
    return raw


def random_id(size: int = 16) -> str:
    """Random identifier: ``size`` CSPRNG bytes as base64url."""
    return b64url_encode(secrets.token_bytes(size))


def encode_multibase(public_key: bytes) -> str:
    """Encode raw key bytes as a base58btc multibase string."""
    return BASE58BTC_PREFIX + base58.b58encode(public_key).decode("ascii")


def decode_multibase(value: str) -> bytes:
    """Decode a base58btc multibase string back to raw bytes."""
    if not value.startswith(BASE58BTC_PREFIX):
        raise SerializationError("multibase value must use base58btc (z prefix)")
    try:
        return base58.b58decode(value[1:])
    except ValueError as exc:
        raise SerializationError(f"invalid base58 encoding: {exc}") from exc


def split_uncompressed_point(point: bytes) -> tuple[bytes, bytes]:
    """Split an uncompressed EC point into its X and Y coordinates."""
    if len(point) != 1 + 2 * COORDINATE_SIZE or point[0] != UNCOMPRESSED_POINT_PREFIX:
        raise KeyError(f"expected 65-byte uncompressed point, got {len(point)} bytes")
    return point[1 : 1 + COORDINATE_SIZE], point[1 + COORDINATE_SIZE :]


def join_uncompressed_point(x: bytes, y: bytes) -> bytes:
    """Rebuild an uncompressed EC point from its coordinates."""
    if len(x) != COORDINATE_SIZE or len(y) != COORDINATE_SIZE:
        raise KeyError("EC coordinates must be 32 bytes each")
    return bytes([UNCOMPRESSED_POINT_PREFIX]) + x + y
