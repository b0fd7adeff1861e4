"""Tests for DIDWba request authentication."""

import pytest

from anp_identity import (
    AuthorizationHeader,
    AuthorizationHeaderError,
    DidDocument,
    KeyAlgorithm,
    VerificationMethod,
    build_did_document,
    format_authorization_header,
    parse_authorization_header,
    sign_request,
    verify_request,
)
from anp_identity.signing import SignaturePayload, sign_dict


class TestHeaderFormat:
    def test_minimal_header(self) -> None:
        """did and signature alone give the basic header shape."""
        header = format_authorization_header("did:wba:example.com", "c2ln")

        assert header == 'DIDWba did="did:wba:example.com", signature="c2ln"'

    def test_full_header_roundtrip(self) -> None:
        header = format_authorization_header(
            did="did:wba:example.com:user:alice",
            signature="c2ln",
            nonce="abc",
            timestamp="2025-01-15T10:30:00.000Z",
            verification_method="key-1",
        )

        parsed = parse_authorization_header(header)

        assert parsed == AuthorizationHeader(
            did="did:wba:example.com:user:alice",
            signature="c2ln",
            nonce="abc",
            timestamp="2025-01-15T10:30:00.000Z",
            verification_method="key-1",
        )

    @pytest.mark.parametrize(
        "value, pattern",
        [
            ('Bearer did="x", signature="y"', "DIDWba scheme"),
            ('DIDWba did="did:wba:example.com"', "'signature'"),
            ('DIDWba signature="y"', "'did'"),
            ('DIDWba did=did:wba:example.com, signature="y"', "malformed parameter"),
        ],
    )
    def test_parse_errors(self, value: str, pattern: str) -> None:
        with pytest.raises(AuthorizationHeaderError, match=pattern):
            parse_authorization_header(value)


@pytest.mark.parametrize("algorithm", list(KeyAlgorithm))
class TestVerifyRequest:
    def test_signed_request_verifies(self, algorithm: KeyAlgorithm) -> None:
        bundle = build_did_document("example.com", "user:alice", algorithm)

        _, header = sign_request(bundle.authentication_key, bundle.did, "api.example.org")

        assert verify_request(header, bundle.document, "api.example.org") is True

    def test_with_verification_method(self, algorithm: KeyAlgorithm) -> None:
        bundle = build_did_document("example.com", "user:alice", algorithm)
        fragment = bundle.document.authentication[0].partition("#")[2]

        _, header = sign_request(bundle.authentication_key, bundle.did, "svc", verification_method=fragment)

        assert f'verification_method="{fragment}"' in header
        assert verify_request(header, bundle.document, "svc") is True

    def test_wrong_service(self, algorithm: KeyAlgorithm) -> None:
        """A request signed for another service does not verify."""
        bundle = build_did_document("example.com", "user:alice", algorithm)

        _, header = sign_request(bundle.authentication_key, bundle.did, "svc-a")

        assert verify_request(header, bundle.document, "svc-b") is False

    def test_wrong_document(self, algorithm: KeyAlgorithm) -> None:
        sender = build_did_document("example.com", "user:alice", algorithm)
        impostor = build_did_document("example.com", "user:alice", algorithm)

        _, header = sign_request(sender.authentication_key, sender.did, "svc")

        assert verify_request(header, impostor.document, "svc") is False

    def test_non_authentication_key_rejected(self, algorithm: KeyAlgorithm) -> None:
        """Only keys listed under authentication may sign requests."""
        bundle = build_did_document("example.com", "user:alice", algorithm)
        agreement_fragment = bundle.document.verification_methods[1].id.partition("#")[2]

        _, header = sign_request(
            bundle.agreement_key, bundle.did, "svc", verification_method=agreement_fragment
        )

        assert verify_request(header, bundle.document, "svc") is False


class TestVerifyRequestFailures:
    def test_did_mismatch(self) -> None:
        bundle = build_did_document("example.com", "user:alice")

        _, header = sign_request(bundle.authentication_key, "did:wba:other.com", "svc")

        assert verify_request(header, bundle.document, "svc") is False

    def test_missing_nonce(self) -> None:
        """A header without nonce and timestamp cannot be checked."""
        bundle = build_did_document("example.com", "user:alice")
        payload = SignaturePayload.new("svc", bundle.did)
        signature = sign_dict(payload, bundle.authentication_key)

        header = format_authorization_header(bundle.did, signature)

        assert verify_request(header, bundle.document, "svc") is False

    def test_malformed_header(self) -> None:
        bundle = build_did_document("example.com", "user:alice")

        assert verify_request("garbage", bundle.document, "svc") is False

    def test_tampered_timestamp(self) -> None:
        bundle = build_did_document("example.com", "user:alice")
        _, header = sign_request(bundle.authentication_key, bundle.did, "svc")
        parsed = parse_authorization_header(header)

        tampered = AuthorizationHeader(
            did=parsed.did,
            signature=parsed.signature,
            nonce=parsed.nonce,
            timestamp="1999-01-01T00:00:00.000Z",
        )

        assert verify_request(tampered, bundle.document, "svc") is False

    def test_method_without_key_material(self) -> None:
        """A document whose authentication method has no key fails closed."""
        bundle = build_did_document("example.com", "user:alice")
        _, header = sign_request(bundle.authentication_key, bundle.did, "svc")
        method_id = bundle.document.authentication_method().id
        bare = DidDocument(
            id=bundle.did,
            verification_methods=(VerificationMethod(method_id, "Ed25519VerificationKey2020", bundle.did),),
            authentication=(method_id,),
        )

        assert verify_request(header, bare, "svc") is False
