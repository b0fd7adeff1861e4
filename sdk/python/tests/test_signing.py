"""Tests for canonicalization, signing and verification."""

import pytest
from pydantic import BaseModel

from anp_identity import (
    InvalidSignatureError,
    KeyAlgorithm,
    KeyPair,
    SerializationError,
    SignaturePayload,
    canonicalize,
    hash_canonical,
    sign_dict,
    sign_model,
    sign_payload,
    verify_payload,
    verify_payload_strict,
)
from anp_identity.encoding import b64url_decode, b64url_encode
from anp_identity.signing import verify_bytes

ALGORITHMS = list(KeyAlgorithm)


def _payload() -> SignaturePayload:
    return SignaturePayload(
        nonce="kX3p9Yq2Zf0aB7c1D4e5Fg",
        timestamp="2025-01-15T10:30:00.000Z",
        service="example.com",
        did="did:wba:example.com:user:alice",
    )


def _flip_bit(data: bytes, bit: int) -> bytes:
    mutated = bytearray(data)
    mutated[bit // 8] ^= 1 << (bit % 8)
    return bytes(mutated)


class TestCanonicalize:
    def test_sorted_keys(self) -> None:
        """Top-level keys are sorted in canonical JSON."""
        value = {"z": 1, "a": 2, "m": 3}

        assert canonicalize(value) == b'{"a":2,"m":3,"z":1}'

    def test_signature_payload(self) -> None:
        """The request payload canonicalizes to a fixed byte string."""
        canonical = canonicalize(_payload())

        assert canonical == (
            b'{"did":"did:wba:example.com:user:alice",'
            b'"nonce":"kX3p9Yq2Zf0aB7c1D4e5Fg",'
            b'"service":"example.com",'
            b'"timestamp":"2025-01-15T10:30:00.000Z"}'
        )

    def test_no_whitespace(self) -> None:
        """Canonical JSON has no extra whitespace."""
        canonical = canonicalize({"key": "value", "nested": {"a": 1}})

        assert b" " not in canonical
        assert b"\n" not in canonical

    def test_non_ascii_unescaped(self) -> None:
        assert canonicalize({"name": "智能体"}) == '{"name":"智能体"}'.encode("utf-8")

    def test_deterministic(self) -> None:
        """Same object always produces same bytes."""
        value = {"hello": "world", "count": 42}

        assert canonicalize(value) == canonicalize(dict(reversed(list(value.items()))))
        assert canonicalize(value) == canonicalize(value)

    def test_nested_order_preserved(self) -> None:
        """Only top-level keys are sorted; nested objects keep insertion order.

        Two payloads that differ only in nested key order therefore produce
        different bytes in the default mode.
        """
        first = {"z": {"b": 2, "a": 1}, "a": []}
        second = {"z": {"a": 1, "b": 2}, "a": []}

        assert canonicalize(first) == b'{"a":[],"z":{"b":2,"a":1}}'
        assert canonicalize(first) != canonicalize(second)

    def test_recursive_mode(self) -> None:
        """Recursive mode sorts nested objects too."""
        first = {"z": {"b": 2, "a": 1}, "a": []}
        second = {"z": {"a": 1, "b": 2}, "a": []}

        assert canonicalize(first, recursive=True) == b'{"a":[],"z":{"a":1,"b":2}}'
        assert canonicalize(first, recursive=True) == canonicalize(second, recursive=True)

    def test_not_an_object(self) -> None:
        with pytest.raises(SerializationError, match="JSON object"):
            canonicalize(["a", "b"])  # type: ignore[arg-type]

    def test_unserializable(self) -> None:
        with pytest.raises(SerializationError):
            canonicalize({"value": object()})


class TestHash:
    def test_hash_deterministic(self) -> None:
        """Same value produces same hash."""
        hash_one = hash_canonical({"hello": "world"})
        hash_two = hash_canonical({"hello": "world"})

        assert hash_one == hash_two
        assert len(hash_one) == 32

    def test_hash_differs(self) -> None:
        assert hash_canonical({"a": 1}) != hash_canonical({"a": 2})


class TestSignaturePayload:
    def test_new(self) -> None:
        """New payloads get a random nonce and a UTC millisecond timestamp."""
        payload = SignaturePayload.new("example.com", "did:wba:example.com")
        other = SignaturePayload.new("example.com", "did:wba:example.com")

        assert payload.nonce != other.nonce
        assert len(b64url_decode(payload.nonce)) == 16
        assert payload.timestamp.endswith("Z")
        assert len(payload.timestamp) == len("2025-01-15T10:30:00.000Z")

    def test_to_dict(self) -> None:
        assert set(_payload().to_dict()) == {"nonce", "timestamp", "service", "did"}


@pytest.mark.parametrize("algorithm", ALGORITHMS)
class TestSignVerify:
    def test_sign_and_verify(self, algorithm: KeyAlgorithm) -> None:
        """Signed payload can be verified."""
        key = KeyPair.generate(algorithm)
        payload = _payload()

        signature = sign_payload(key.private_key, algorithm, payload)

        assert verify_payload(key.public_key, algorithm, signature, payload) is True

    def test_signature_is_unpadded_base64url(self, algorithm: KeyAlgorithm) -> None:
        key = KeyPair.generate(algorithm)

        signature = sign_dict(_payload(), key)

        assert "=" not in signature
        assert "+" not in signature and "/" not in signature
        assert len(b64url_decode(signature)) == 64

    def test_verify_wrong_key(self, algorithm: KeyAlgorithm) -> None:
        """Verification with wrong key fails."""
        key_one = KeyPair.generate(algorithm)
        key_two = KeyPair.generate(algorithm)

        signature = sign_dict(_payload(), key_one)

        assert verify_payload(key_two.public_key, algorithm, signature, _payload()) is False

    def test_payload_bit_flips(self, algorithm: KeyAlgorithm) -> None:
        """Any single-bit change in a payload field breaks the signature."""
        key = KeyPair.generate(algorithm)
        payload = _payload().to_dict()
        signature = sign_dict(payload, key)

        for field_name in payload:
            original = payload[field_name].encode("ascii")
            for bit in range(0, len(original) * 8, 7):
                mutated = dict(payload)
                mutated[field_name] = _flip_bit(original, bit).decode("latin-1")
                assert verify_payload(key.public_key, algorithm, signature, mutated) is False

    def test_signature_bit_flips(self, algorithm: KeyAlgorithm) -> None:
        """Any single-bit change in the signature fails verification."""
        key = KeyPair.generate(algorithm)
        payload = _payload()
        raw = b64url_decode(sign_dict(payload, key))

        for bit in range(len(raw) * 8):
            mutated = b64url_encode(_flip_bit(raw, bit))
            assert verify_payload(key.public_key, algorithm, mutated, payload) is False

    def test_signature_text_changes(self, algorithm: KeyAlgorithm) -> None:
        """Changed signature text fails even when it decodes to the same bytes."""
        key = KeyPair.generate(algorithm)
        payload = _payload()
        signature = sign_dict(payload, key)
        alphabet = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"

        last = alphabet[alphabet.index(signature[-1]) ^ 1]
        assert verify_payload(key.public_key, algorithm, signature[:-1] + last, payload) is False

        for position, char in enumerate(signature):
            if char in "-_":
                standard = "+" if char == "-" else "/"
                mutated = signature[:position] + standard + signature[position + 1 :]
                assert verify_payload(key.public_key, algorithm, mutated, payload) is False
        standard_alphabet = signature.translate(str.maketrans("-_", "+/"))
        if standard_alphabet != signature:
            assert verify_payload(key.public_key, algorithm, standard_alphabet, payload) is False

    def test_verify_invalid_signature(self, algorithm: KeyAlgorithm) -> None:
        """Invalid signature text returns False."""
        key = KeyPair.generate(algorithm)

        assert verify_payload(key.public_key, algorithm, "not-valid-base64!", _payload()) is False
        assert verify_payload(key.public_key, algorithm, "", _payload()) is False

    def test_verify_malformed_key(self, algorithm: KeyAlgorithm) -> None:
        """A public key of the wrong length returns False instead of raising."""
        key = KeyPair.generate(algorithm)
        signature = sign_dict(_payload(), key)

        assert verify_payload(b"short", algorithm, signature, _payload()) is False

    def test_verify_unserializable_payload(self, algorithm: KeyAlgorithm) -> None:
        key = KeyPair.generate(algorithm)

        assert verify_payload(key.public_key, algorithm, "AAAA", {"x": object()}) is False


class TestAlgorithmMismatch:
    def test_unknown_algorithm_returns_false(self) -> None:
        key = KeyPair.generate(KeyAlgorithm.ED25519)
        signature = sign_dict(_payload(), key)

        assert verify_payload(key.public_key, "rsa", signature, _payload()) is False

    def test_cross_algorithm(self) -> None:
        """An Ed25519 signature does not verify as secp256k1."""
        key = KeyPair.generate(KeyAlgorithm.ED25519)
        message = b"message"

        assert verify_bytes(message, key.sign(message), key.public_key, KeyAlgorithm.SECP256K1) is False


class TestVerifyStrict:
    def test_strict_raises(self) -> None:
        """Strict verification raises on failure."""
        key_one = KeyPair.generate(KeyAlgorithm.ED25519)
        key_two = KeyPair.generate(KeyAlgorithm.ED25519)

        signature = sign_dict(_payload(), key_one)

        with pytest.raises(InvalidSignatureError, match="Payload hash"):
            verify_payload_strict(key_two.public_key, KeyAlgorithm.ED25519, signature, _payload())

    def test_strict_passes(self) -> None:
        """Strict verification passes on valid signature."""
        key = KeyPair.generate(KeyAlgorithm.SECP256K1)

        signature = sign_dict(_payload(), key)

        verify_payload_strict(key.public_key, KeyAlgorithm.SECP256K1, signature, _payload())


class TestSignModel:
    def test_sign_model(self) -> None:
        """Pydantic models are signed over their recursive canonical form."""

        class Message(BaseModel):
            action: str
            params: dict[str, int]

        key = KeyPair.generate(KeyAlgorithm.ED25519)
        model = Message(action="ping", params={"b": 2, "a": 1})

        signature = sign_model(model, key)

        assert verify_payload(
            key.public_key,
            KeyAlgorithm.ED25519,
            signature,
            {"params": {"a": 1, "b": 2}, "action": "ping"},
            recursive=True,
        )
