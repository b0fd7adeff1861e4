"""Canonicalization and payload signing.

The default canonical form sorts top-level keys only; nested objects keep
their insertion order. For the flat ``{nonce, timestamp, service, did}``
payload this is the same byte string other did:wba agents sign.
Pass ``recursive=True`` for fully recursive canonical JSON when nested
payloads must be byte-identical across implementations.

Algorithm behaviour:
- Ed25519 signs the canonical bytes directly
- secp256k1 signs the SHA-256 digest of the canonical bytes
Signatures travel as unpadded base64url text.
"""

import hashlib
import json
import logging
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Self

import canonicaljson
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    Prehashed,
    encode_dss_signature,
)
from nacl.signing import VerifyKey

from anp_identity.encoding import b64url_decode, b64url_encode, random_id
from anp_identity.errors import InvalidSignatureError, SerializationError
from anp_identity.keys import KeyAlgorithm, KeyPair

if TYPE_CHECKING:
    from pydantic import BaseModel

logger = logging.getLogger(__name__)

Payload = Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class SignaturePayload:
    """The structure signed for every authenticated request."""

    nonce: str
    timestamp: str
    service: str
    did: str

    @classmethod
    def new(cls, service: str, did: str) -> Self:
        """Create a payload with a fresh random nonce and current UTC time."""
        timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
        return cls(
            nonce=random_id(16),
            timestamp=timestamp.replace("+00:00", "Z"),
            service=service,
            did=did,
        )

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


def _as_mapping(payload: "SignaturePayload | Payload") -> Payload:
    if isinstance(payload, SignaturePayload):
        return payload.to_dict()
    return payload


def canonicalize(value: "SignaturePayload | Payload", recursive: bool = False) -> bytes:
    """Canonicalize a payload to bytes suitable for signing.

    Args:
        value: A JSON object (mapping) or SignaturePayload.
        recursive: Sort keys at every nesting level instead of the top
            level only.

    Raises:
        SerializationError: If the value is not a JSON-serializable object.
    """
    value = _as_mapping(value)
    if not isinstance(value, Mapping):
        raise SerializationError(f"payload must be a JSON object, got {type(value).__name__}")

    try:
        if recursive:
            return canonicaljson.encode_canonical_json(dict(value))
        ordered = {key: value[key] for key in sorted(value)}
        return json.dumps(
            ordered,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        ).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"canonicalization failed: {exc}") from exc


def hash_canonical(value: "SignaturePayload | Payload", recursive: bool = False) -> bytes:
    """SHA-256 hash of the canonical form."""
    return hashlib.sha256(canonicalize(value, recursive=recursive)).digest()


def sign_bytes(message: bytes, key: KeyPair) -> bytes:
    """Sign raw bytes with the algorithm of ``key``."""
    return key.sign(message)


def sign_dict(value: "SignaturePayload | Payload", key: KeyPair, recursive: bool = False) -> str:
    """Sign a payload. Returns a base64url signature."""
    canonical = canonicalize(value, recursive=recursive)
    return b64url_encode(key.sign(canonical))


def sign_payload(
    private_key: bytes,
    algorithm: KeyAlgorithm | str,
    payload: "SignaturePayload | Payload",
) -> str:
    """Sign a payload with raw private key bytes.

    Args:
        private_key: 32 raw private key bytes.
        algorithm: Algorithm the key belongs to.
        payload: The payload to canonicalize and sign.

    Returns:
        Base64url-encoded signature.

    Raises:
        UnsupportedAlgorithmError: For unknown algorithms.
        KeyError: If the private key is malformed.
    """
    key = KeyPair.from_private_bytes(algorithm, private_key)
    return sign_dict(payload, key)


def sign_model(model: "BaseModel", key: KeyPair) -> str:
    """Sign a Pydantic model using recursive canonicalization.

    Returns base64url-encoded signature.
    """
    value = model.model_dump(mode="json", by_alias=True)
    return sign_dict(value, key, recursive=True)


def verify_bytes(
    message: bytes,
    signature: bytes,
    public_key: bytes,
    algorithm: KeyAlgorithm | str = KeyAlgorithm.ED25519,
) -> bool:
    """Verify a signature on raw bytes. Never raises."""
    try:
        algorithm = KeyAlgorithm.parse(algorithm)
        if algorithm is KeyAlgorithm.ED25519:
            VerifyKey(public_key).verify(message, signature)
            return True

        if len(signature) != 64:
            logger.debug("secp256k1 signature has %d bytes, expected 64", len(signature))
            return False
        r = int.from_bytes(signature[:32], "big")
        s = int.from_bytes(signature[32:], "big")
        verifier = ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), public_key)
        verifier.verify(
            encode_dss_signature(r, s),
            hashlib.sha256(message).digest(),
            ec.ECDSA(Prehashed(hashes.SHA256())),
        )
        return True
    except Exception as exc:
        logger.debug("Signature verification failed: %s", type(exc).__name__)
        return False


def verify_payload(
    public_key: bytes,
    algorithm: KeyAlgorithm | str,
    signature: str,
    payload: "SignaturePayload | Payload",
    recursive: bool = False,
) -> bool:
    """Verify a base64url signature over a payload.

    Args:
        public_key: Raw public key bytes.
        algorithm: Algorithm of the public key.
        signature: Base64url-encoded signature.
        payload: The payload that was signed.

    Returns:
        True if valid, False otherwise. Malformed input of any kind is
        reported as False.
    """
    try:
        canonical = canonicalize(payload, recursive=recursive)
        raw_signature = b64url_decode(signature)
    except Exception as exc:
        logger.debug("Could not prepare payload for verification: %s", exc)
        return False
    return verify_bytes(canonical, raw_signature, public_key, algorithm)


def verify_payload_strict(
    public_key: bytes,
    algorithm: KeyAlgorithm | str,
    signature: str,
    payload: "SignaturePayload | Payload",
) -> None:
    """Verify a signature on a payload, raising on failure.

    Raises:
        InvalidSignatureError: If verification fails.
    """
    if not verify_payload(public_key, algorithm, signature, payload):
        try:
            payload_hash = hash_canonical(payload).hex()[:16]
        except SerializationError:
            payload_hash = "unavailable"
        raise InvalidSignatureError(
            f"Signature verification failed. Payload hash: {payload_hash}..."
        )
