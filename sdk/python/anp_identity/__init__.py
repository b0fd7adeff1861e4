"""ANP Identity - did:wba identities for network agents.

Key generation, DID document assembly and request signing for agents
using the did:wba method.

Example:
    >>> from anp_identity import build_did_document
    >>> bundle = build_did_document("example.com", "user:alice")
    >>> print(bundle.did)
    did:wba:example.com:user:alice
"""

from anp_identity.auth import (
    AuthorizationHeader,
    format_authorization_header,
    parse_authorization_header,
    sign_request,
    verify_request,
)
from anp_identity.config import IdentityOptions
from anp_identity.description import AgentDescription, AgentInterface
from anp_identity.did import Did
from anp_identity.document import (
    DidDocument,
    DidDocumentBundle,
    JwkVerificationMethod,
    MultibaseVerificationMethod,
    PublicKeyJwk,
    Service,
    VerificationMethod,
    build_did_document,
)
from anp_identity.errors import (
    ANPError,
    AuthorizationHeaderError,
    InvalidDIDError,
    InvalidSignatureError,
    KeyError,
    NotConfiguredError,
    SerializationError,
    UnsupportedAlgorithmError,
    ValidationError,
)
from anp_identity.identity import AgentIdentity, IdentityConfigurator, create_identity
from anp_identity.keys import KeyAlgorithm, KeyPair, generate_key_pair
from anp_identity.signing import (
    SignaturePayload,
    canonicalize,
    hash_canonical,
    sign_bytes,
    sign_dict,
    sign_model,
    sign_payload,
    verify_bytes,
    verify_payload,
    verify_payload_strict,
)

__version__ = "0.1.0"

__all__ = [
    # Core
    "Did",
    "KeyAlgorithm",
    "KeyPair",
    "generate_key_pair",
    # Document
    "DidDocument",
    "DidDocumentBundle",
    "JwkVerificationMethod",
    "MultibaseVerificationMethod",
    "PublicKeyJwk",
    "Service",
    "VerificationMethod",
    "build_did_document",
    # Signing
    "SignaturePayload",
    "canonicalize",
    "hash_canonical",
    "sign_bytes",
    "sign_dict",
    "sign_model",
    "sign_payload",
    "verify_bytes",
    "verify_payload",
    "verify_payload_strict",
    # Requests
    "AuthorizationHeader",
    "format_authorization_header",
    "parse_authorization_header",
    "sign_request",
    "verify_request",
    # Identity
    "AgentDescription",
    "AgentIdentity",
    "AgentInterface",
    "IdentityConfigurator",
    "IdentityOptions",
    "create_identity",
    # Errors
    "ANPError",
    "AuthorizationHeaderError",
    "InvalidDIDError",
    "InvalidSignatureError",
    "KeyError",
    "NotConfiguredError",
    "SerializationError",
    "UnsupportedAlgorithmError",
    "ValidationError",
]
