"""Key generation for did:wba identities.

Two algorithm families are supported:
- Ed25519 via PyNaCl (libsodium bindings): 32-byte seed, 32-byte public key
- secp256k1 ECDSA via cryptography: 32-byte scalar, 65-byte uncompressed
  public key laid out as ``0x04 || X || Y``

Security:
- Private key material comes from the OS CSPRNG
- Debug representations only show public info, never secrets
"""

import base64
import hashlib
import re
import textwrap
from dataclasses import dataclass, field
from enum import Enum
from typing import Self

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    Prehashed,
    decode_dss_signature,
)
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from nacl.signing import SigningKey

from anp_identity.encoding import b64url_encode
from anp_identity.errors import KeyError, UnsupportedAlgorithmError

# Order of the secp256k1 group
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

PRIVATE_KEY_SIZE = 32
PEM_LINE_LENGTH = 64

_PEM_PATTERN = re.compile(
    r"-----BEGIN (?P<label>[A-Z0-9]+) PRIVATE KEY-----\s*"
    r"(?P<body>[A-Za-z0-9+/=\s]+?)\s*"
    r"-----END (?P=label) PRIVATE KEY-----"
)


class KeyAlgorithm(str, Enum):
    """Signature algorithms, valued by their verification method type."""

    ED25519 = "Ed25519VerificationKey2020"
    SECP256K1 = "EcdsaSecp256k1VerificationKey2019"

    @classmethod
    def parse(cls, value: "KeyAlgorithm | str") -> "KeyAlgorithm":
        """Resolve an algorithm from an enum member, type name or short name.

        Raises:
            UnsupportedAlgorithmError: If the value names no known algorithm.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for algorithm in cls:
                if value == algorithm.value or value.lower() == algorithm.short_name:
                    return algorithm
        raise UnsupportedAlgorithmError(value)

    @property
    def short_name(self) -> str:
        return "ed25519" if self is KeyAlgorithm.ED25519 else "secp256k1"

    @property
    def pem_label(self) -> str:
        """Label used in PEM header and footer lines."""
        return self.short_name.upper()


# Type tag for the key-agreement verification method
X25519_KEY_AGREEMENT_TYPE = "X25519KeyAgreementKey2019"


@dataclass(frozen=True, slots=True)
class KeyPair:
    """A raw asymmetric key pair.

    Attributes:
        algorithm: The algorithm family of the pair.
        private_key: Raw private key bytes (32 bytes for both families).
        public_key: Raw public key bytes (32 bytes Ed25519, 65 bytes secp256k1).
    """

    algorithm: KeyAlgorithm
    private_key: bytes = field(repr=False)
    public_key: bytes

    @classmethod
    def generate(cls, algorithm: KeyAlgorithm | str = KeyAlgorithm.ED25519) -> Self:
        """Generate a new random key pair.

        Raises:
            UnsupportedAlgorithmError: For any algorithm other than Ed25519
                or secp256k1.
        """
        algorithm = KeyAlgorithm.parse(algorithm)

        if algorithm is KeyAlgorithm.ED25519:
            signing_key = SigningKey.generate()
            return cls(algorithm, bytes(signing_key), bytes(signing_key.verify_key))

        private = ec.generate_private_key(ec.SECP256K1())
        private_bytes = private.private_numbers().private_value.to_bytes(PRIVATE_KEY_SIZE, "big")
        return cls(algorithm, private_bytes, _secp256k1_public_bytes(private))

    @classmethod
    def from_private_bytes(cls, algorithm: KeyAlgorithm | str, private_key: bytes) -> Self:
        """Rebuild a key pair from raw private key bytes.

        Raises:
            KeyError: If the key is not 32 bytes or is out of range.
        """
        algorithm = KeyAlgorithm.parse(algorithm)
        if len(private_key) != PRIVATE_KEY_SIZE:
            raise KeyError(f"private key must be 32 bytes, got {len(private_key)}")

        if algorithm is KeyAlgorithm.ED25519:
            signing_key = SigningKey(private_key)
            return cls(algorithm, bytes(private_key), bytes(signing_key.verify_key))

        private = _secp256k1_private_key(private_key)
        return cls(algorithm, bytes(private_key), _secp256k1_public_bytes(private))

    @classmethod
    def from_pem(cls, pem: str) -> Self:
        """Load a key pair from the PEM text produced by ``to_pem``.

        Raises:
            KeyError: If the PEM text is malformed.
            UnsupportedAlgorithmError: If the PEM label names an unknown algorithm.
        """
        match = _PEM_PATTERN.search(pem)
        if match is None:
            raise KeyError("malformed PEM private key")

        label = match.group("label")
        algorithm = next((a for a in KeyAlgorithm if a.pem_label == label), None)
        if algorithm is None:
            raise UnsupportedAlgorithmError(label)

        body = "".join(match.group("body").split())
        try:
            private_key = base64.b64decode(body, validate=True)
        except ValueError as exc:
            raise KeyError(f"invalid PEM body: {exc}") from exc
        return cls.from_private_bytes(algorithm, private_key)

    def to_pem(self) -> str:
        """Export the private key as PEM text.

        The body is base64 of the raw private key, wrapped at 64 characters.

        Warning: Handle with care.
        """
        label = self.algorithm.pem_label
        body = base64.b64encode(self.private_key).decode("ascii")
        lines = textwrap.wrap(body, PEM_LINE_LENGTH)
        return "\n".join(
            [f"-----BEGIN {label} PRIVATE KEY-----", *lines, f"-----END {label} PRIVATE KEY-----"]
        )

    def sign(self, message: bytes) -> bytes:
        """Sign a message.

        Ed25519 signs the message bytes directly and returns 64 bytes.
        secp256k1 signs the SHA-256 digest of the message and returns the
        64-byte compact ``r || s`` form, normalized to low-S.
        """
        if self.algorithm is KeyAlgorithm.ED25519:
            signed = SigningKey(self.private_key).sign(message)
            return bytes(signed.signature)

        digest = hashlib.sha256(message).digest()
        private = _secp256k1_private_key(self.private_key)
        der = private.sign(digest, ec.ECDSA(Prehashed(hashes.SHA256())))
        r, s = decode_dss_signature(der)
        if s > SECP256K1_N // 2:
            s = SECP256K1_N - s
        return r.to_bytes(32, "big") + s.to_bytes(32, "big")

    @property
    def fingerprint(self) -> str:
        """Short public identifier for logs and reprs."""
        return b64url_encode(self.public_key)[:8]

    def __repr__(self) -> str:
        return f"KeyPair(algorithm={self.algorithm.short_name}, pubkey={self.fingerprint}...)"


def generate_key_pair(algorithm: KeyAlgorithm | str = KeyAlgorithm.ED25519) -> KeyPair:
    """Generate a new random key pair for ``algorithm``."""
    return KeyPair.generate(algorithm)


def _secp256k1_private_key(private_key: bytes) -> ec.EllipticCurvePrivateKey:
    value = int.from_bytes(private_key, "big")
    if not 1 <= value < SECP256K1_N:
        raise KeyError("secp256k1 private key out of range")
    return ec.derive_private_key(value, ec.SECP256K1())


def _secp256k1_public_bytes(private: ec.EllipticCurvePrivateKey) -> bytes:
    return private.public_key().public_bytes(Encoding.X962, PublicFormat.UncompressedPoint)
