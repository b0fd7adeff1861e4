"""DIDWba request authentication.

Requests carry an Authorization header of the form::

    DIDWba did="<did>", nonce="<nonce>", timestamp="<iso time>",
        verification_method="<key fragment>", signature="<base64url signature>"

``did`` and ``signature`` are mandatory. The receiver rebuilds the signed
``{nonce, timestamp, service, did}`` payload from the header and its own
service name, then checks it against the sender's DID document.
"""

import logging
import re
from dataclasses import dataclass

from anp_identity.document import DidDocument, VerificationMethod, reference_id
from anp_identity.errors import AuthorizationHeaderError
from anp_identity.keys import KeyPair
from anp_identity.signing import SignaturePayload, sign_dict, verify_payload

logger = logging.getLogger(__name__)

AUTH_SCHEME = "DIDWba"

_PARAM_PATTERN = re.compile(r'\s*([A-Za-z_]+)\s*=\s*"([^"]*)"\s*(?:,|$)')


@dataclass(frozen=True, slots=True)
class AuthorizationHeader:
    """Parsed DIDWba Authorization header."""

    did: str
    signature: str
    nonce: str | None = None
    timestamp: str | None = None
    verification_method: str | None = None

    def __str__(self) -> str:
        params = [("did", self.did)]
        for name in ("nonce", "timestamp", "verification_method"):
            value = getattr(self, name)
            if value is not None:
                params.append((name, value))
        params.append(("signature", self.signature))
        return f"{AUTH_SCHEME} " + ", ".join(f'{name}="{value}"' for name, value in params)


def format_authorization_header(
    did: str,
    signature: str,
    nonce: str | None = None,
    timestamp: str | None = None,
    verification_method: str | None = None,
) -> str:
    """Render a DIDWba Authorization header value."""
    return str(AuthorizationHeader(did, signature, nonce, timestamp, verification_method))


def parse_authorization_header(value: str) -> AuthorizationHeader:
    """Parse a DIDWba Authorization header value.

    Raises:
        AuthorizationHeaderError: If the scheme is wrong, a parameter is
            malformed or ``did``/``signature`` is missing.
    """
    scheme, _, rest = value.strip().partition(" ")
    if scheme != AUTH_SCHEME:
        raise AuthorizationHeaderError(f"expected {AUTH_SCHEME} scheme, got {scheme!r}")

    params: dict[str, str] = {}
    position = 0
    rest = rest.strip()
    while position < len(rest):
        match = _PARAM_PATTERN.match(rest, position)
        if match is None:
            raise AuthorizationHeaderError(f"malformed parameter at offset {position}")
        params[match.group(1)] = match.group(2)
        position = match.end()

    for required in ("did", "signature"):
        if not params.get(required):
            raise AuthorizationHeaderError(f"missing {required!r} parameter")

    return AuthorizationHeader(
        did=params["did"],
        signature=params["signature"],
        nonce=params.get("nonce"),
        timestamp=params.get("timestamp"),
        verification_method=params.get("verification_method"),
    )


def sign_request(
    key: KeyPair,
    did: str,
    service: str,
    verification_method: str | None = None,
) -> tuple[SignaturePayload, str]:
    """Sign a fresh request payload for ``service``.

    Args:
        key: The sender's authentication key.
        did: The sender's DID.
        service: Name of the service the request is addressed to.
        verification_method: Key fragment to advertise in the header.

    Returns:
        The signed payload and the Authorization header value.
    """
    payload = SignaturePayload.new(service=service, did=did)
    signature = sign_dict(payload, key)
    header = format_authorization_header(
        did=did,
        signature=signature,
        nonce=payload.nonce,
        timestamp=payload.timestamp,
        verification_method=verification_method,
    )
    return payload, header


def _resolve_method(header: AuthorizationHeader, document: DidDocument) -> VerificationMethod:
    if header.verification_method is None:
        return document.authentication_method()

    fragment = header.verification_method
    method_id = fragment if fragment.startswith("did:") else f"{document.id}#{fragment.lstrip('#')}"
    if not any(reference_id(ref) == method_id for ref in document.authentication):
        raise AuthorizationHeaderError(f"{method_id} is not an authentication method")
    method = document.find_verification_method(method_id)
    if method is None:
        raise AuthorizationHeaderError(f"{method_id} is not in the DID document")
    return method


def verify_request(header: str | AuthorizationHeader, document: DidDocument, service: str) -> bool:
    """Verify a request's Authorization header against the sender's document.

    Args:
        header: Raw header value or a parsed header.
        document: The DID document of the DID named in the header.
        service: The service name the receiver expects in the payload.

    Returns:
        True only if the header names the document's DID, carries a nonce
        and timestamp, and the signature verifies with an authentication
        key of the document. Any failure returns False.
    """
    try:
        parsed = header if isinstance(header, AuthorizationHeader) else parse_authorization_header(header)
        if parsed.did != document.id:
            logger.debug("Header DID %s does not match document %s", parsed.did, document.id)
            return False
        if parsed.nonce is None or parsed.timestamp is None:
            logger.debug("Header from %s lacks nonce or timestamp", parsed.did)
            return False

        method = _resolve_method(parsed, document)
        payload = SignaturePayload(
            nonce=parsed.nonce,
            timestamp=parsed.timestamp,
            service=service,
            did=parsed.did,
        )
        return verify_payload(method.public_key_bytes(), method.algorithm, parsed.signature, payload)
    except Exception as exc:
        logger.debug("Request verification failed: %s", exc)
        return False
