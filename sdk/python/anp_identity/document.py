"""
DID Document handling for did:wba identities.

A DID Document describes an agent's identity, including:
- Verification methods (public keys), encoded per algorithm
- Authentication, key agreement and human authorization relationships
- Service endpoints (how to reach the agent)

Public key encodings:
- Ed25519 keys use ``publicKeyMultibase`` (``z`` + base58btc of the raw key)
- secp256k1 keys use ``publicKeyJwk`` with base64url X/Y coordinates
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple, Union

from anp_identity.did import Did
from anp_identity.encoding import (
    b64url_decode,
    b64url_encode,
    decode_multibase,
    encode_multibase,
    join_uncompressed_point,
    random_id,
    split_uncompressed_point,
)
from anp_identity.errors import ANPError, ValidationError
from anp_identity.keys import X25519_KEY_AGREEMENT_TYPE, KeyAlgorithm, KeyPair

logger = logging.getLogger(__name__)

DID_CONTEXT: Tuple[str, ...] = (
    "https://www.w3.org/ns/did/v1",
    "https://w3id.org/security/suites/jws-2020/v1",
    "https://w3id.org/security/suites/secp256k1-2019/v1",
    "https://w3id.org/security/suites/ed25519-2020/v1",
    "https://w3id.org/security/suites/x25519-2019/v1",
)

AGENT_DESCRIPTION_SERVICE_TYPE = "AgentDescription"
AGENT_DESCRIPTION_FRAGMENT = "agent-description"


@dataclass(frozen=True)
class PublicKeyJwk:
    """A secp256k1 public key in JSON Web Key form."""

    x: str
    y: str
    kid: str
    kty: str = "EC"
    crv: str = "secp256k1"

    @classmethod
    def from_public_key(cls, public_key: bytes, kid: Optional[str] = None) -> PublicKeyJwk:
        """Encode a 65-byte uncompressed secp256k1 point."""
        x, y = split_uncompressed_point(public_key)
        return cls(x=b64url_encode(x), y=b64url_encode(y), kid=kid or random_id(16))

    def public_key_bytes(self) -> bytes:
        """Rebuild the uncompressed point from the coordinates."""
        return join_uncompressed_point(b64url_decode(self.x), b64url_decode(self.y))

    def to_dict(self) -> Dict[str, str]:
        return {"crv": self.crv, "x": self.x, "y": self.y, "kty": self.kty, "kid": self.kid}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PublicKeyJwk:
        try:
            jwk = cls(
                x=data["x"],
                y=data["y"],
                kid=data["kid"],
                kty=data.get("kty", "EC"),
                crv=data.get("crv", "secp256k1"),
            )
        except KeyError as exc:
            raise ValidationError(f"publicKeyJwk missing {exc.args[0]!r}") from exc
        if jwk.kty != "EC":
            raise ValidationError(f"publicKeyJwk kty must be 'EC', got {jwk.kty!r}")
        if jwk.crv != "secp256k1":
            raise ValidationError(f"publicKeyJwk crv must be 'secp256k1', got {jwk.crv!r}")
        return jwk


@dataclass(frozen=True)
class VerificationMethod:
    """A verification method (public key) in a DID Document."""

    id: str
    type: str
    controller: str

    @property
    def algorithm(self) -> KeyAlgorithm:
        """Signature algorithm of this key.

        Raises:
            UnsupportedAlgorithmError: For key agreement and unknown types.
        """
        return KeyAlgorithm.parse(self.type)

    def public_key_bytes(self) -> bytes:
        raise ValidationError(f"verification method {self.id} has no public key")

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "type": self.type, "controller": self.controller}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> VerificationMethod:
        """Parse either encoding variant from its JSON form."""
        try:
            common = {"id": data["id"], "type": data["type"], "controller": data["controller"]}
        except KeyError as exc:
            raise ValidationError(f"verification method missing {exc.args[0]!r}") from exc

        if "publicKeyJwk" in data:
            return JwkVerificationMethod(
                **common, public_key_jwk=PublicKeyJwk.from_dict(data["publicKeyJwk"])
            )
        if "publicKeyMultibase" in data:
            return MultibaseVerificationMethod(
                **common, public_key_multibase=data["publicKeyMultibase"]
            )
        raise ValidationError(f"verification method {common['id']} has no public key")


@dataclass(frozen=True)
class MultibaseVerificationMethod(VerificationMethod):
    """Verification method carrying ``publicKeyMultibase``."""

    public_key_multibase: str = ""

    def public_key_bytes(self) -> bytes:
        return decode_multibase(self.public_key_multibase)

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "publicKeyMultibase": self.public_key_multibase}


@dataclass(frozen=True)
class JwkVerificationMethod(VerificationMethod):
    """Verification method carrying ``publicKeyJwk``."""

    public_key_jwk: Optional[PublicKeyJwk] = None

    def public_key_bytes(self) -> bytes:
        if self.public_key_jwk is None:
            raise ValidationError(f"verification method {self.id} has no JWK")
        return self.public_key_jwk.public_key_bytes()

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.public_key_jwk is not None:
            data["publicKeyJwk"] = self.public_key_jwk.to_dict()
        return data


@dataclass(frozen=True)
class Service:
    """A service endpoint in a DID Document."""

    id: str
    type: str
    service_endpoint: str
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, str]:
        data = {"id": self.id, "type": self.type, "serviceEndpoint": self.service_endpoint}
        if self.description is not None:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Service:
        try:
            return cls(
                id=data["id"],
                type=data["type"],
                service_endpoint=data["serviceEndpoint"],
                description=data.get("description"),
            )
        except KeyError as exc:
            raise ValidationError(f"service missing {exc.args[0]!r}") from exc


# A relationship entry: a verification method id or an embedded method
Reference = Union[str, VerificationMethod]


def _reference_to_json(reference: Reference) -> Union[str, Dict[str, Any]]:
    return reference if isinstance(reference, str) else reference.to_dict()


def _reference_from_json(value: Any) -> Reference:
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        return VerificationMethod.from_dict(value)
    raise ValidationError(f"invalid verification relationship entry: {value!r}")


@dataclass(frozen=True)
class DidDocument:
    """
    A DID Document describing an agent's identity.

    Documents are immutable; ``with_service`` returns an updated copy.

    Example:
        >>> bundle = build_did_document("example.com", "user:alice")
        >>> doc = bundle.document.with_service(
        ...     Service("did:wba:example.com:user:alice#api", "ANPAgentService", "https://example.com/api")
        ... )
    """

    id: str
    verification_methods: Tuple[VerificationMethod, ...] = ()
    authentication: Tuple[Reference, ...] = ()
    key_agreement: Tuple[Reference, ...] = ()
    human_authorization: Tuple[Reference, ...] = ()
    services: Tuple[Service, ...] = ()
    context: Tuple[str, ...] = field(default=DID_CONTEXT)

    @property
    def did(self) -> Did:
        """The parsed DID of this document."""
        return Did.parse(self.id)

    def with_service(self, service: Service) -> DidDocument:
        """
        Insert or replace a service endpoint by id.

        An existing service with the same id is replaced in place; otherwise
        the service is appended.

        Returns:
            A new DidDocument with the service applied
        """
        services = list(self.services)
        for index, existing in enumerate(services):
            if existing.id == service.id:
                services[index] = service
                break
        else:
            services.append(service)
        return replace(self, services=tuple(services))

    def find_verification_method(self, reference: Reference) -> Optional[VerificationMethod]:
        """Resolve a relationship entry to a verification method in this document."""
        method_id = reference if isinstance(reference, str) else reference.id
        for method in self.verification_methods:
            if method.id == method_id:
                return method
        return None

    def authentication_method(self) -> VerificationMethod:
        """
        Get the primary authentication key.

        Raises:
            ValidationError: If the document has no resolvable authentication entry
        """
        if not self.authentication:
            raise ValidationError("document has no authentication method")
        method = self.find_verification_method(self.authentication[0])
        if method is None:
            raise ValidationError(f"authentication entry {self.authentication[0]!r} does not resolve")
        return method

    def validate(self) -> None:
        """
        Check the document invariants.

        Raises:
            ValidationError: If the DID is malformed, a relationship entry does
                not resolve, or an embedded method differs from its listed copy
        """
        try:
            did = Did.parse(self.id)
        except ANPError as exc:
            raise ValidationError(f"document id {self.id!r}: {exc}") from exc
        if str(did) != self.id:
            raise ValidationError(f"document id {self.id!r} is not in canonical form {did}")

        if not self.context:
            raise ValidationError("@context is empty")
        if not self.verification_methods:
            raise ValidationError("document has no verification methods")

        method_ids = [method.id for method in self.verification_methods]
        if len(set(method_ids)) != len(method_ids):
            raise ValidationError("verification method ids are not unique")

        relationships = {
            "authentication": self.authentication,
            "keyAgreement": self.key_agreement,
            "humanAuthorization": self.human_authorization,
        }
        for name, references in relationships.items():
            for reference in references:
                method = self.find_verification_method(reference)
                if method is None:
                    raise ValidationError(f"{name} entry {reference_id(reference)!r} does not resolve")
                if not isinstance(reference, str) and reference != method:
                    raise ValidationError(f"{name} entry {reference.id!r} differs from its verification method")

    def is_valid(self) -> bool:
        """Boolean form of ``validate``."""
        try:
            self.validate()
        except ValidationError as exc:
            logger.warning("DID document %s is invalid: %s", self.id, exc)
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to a JSON-serializable dictionary.

        Returns:
            DID Document as a dictionary
        """
        doc: Dict[str, Any] = {
            "@context": list(self.context),
            "id": self.id,
            "verificationMethod": [vm.to_dict() for vm in self.verification_methods],
            "authentication": [_reference_to_json(r) for r in self.authentication],
            "keyAgreement": [_reference_to_json(r) for r in self.key_agreement],
            "humanAuthorization": [_reference_to_json(r) for r in self.human_authorization],
            "service": [s.to_dict() for s in self.services],
        }
        return doc

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> DidDocument:
        """
        Parse a DID Document from its JSON form.

        Raises:
            ValidationError: If required members are missing or malformed
        """
        if "id" not in data:
            raise ValidationError("document missing 'id'")

        def entries(name: str) -> List[Any]:
            value = data.get(name, [])
            if not isinstance(value, list):
                raise ValidationError(f"{name} must be a list")
            return value

        return cls(
            id=data["id"],
            verification_methods=tuple(VerificationMethod.from_dict(vm) for vm in entries("verificationMethod")),
            authentication=tuple(_reference_from_json(r) for r in entries("authentication")),
            key_agreement=tuple(_reference_from_json(r) for r in entries("keyAgreement")),
            human_authorization=tuple(_reference_from_json(r) for r in entries("humanAuthorization")),
            services=tuple(Service.from_dict(s) for s in entries("service")),
            context=tuple(entries("@context")) or DID_CONTEXT,
        )

    def __repr__(self) -> str:
        return f"DidDocument({self.id}, methods={len(self.verification_methods)})"


def reference_id(reference: Reference) -> str:
    """Id of a relationship entry, whether a string or an embedded method."""
    return reference if isinstance(reference, str) else reference.id


@dataclass(frozen=True)
class DidDocumentBundle:
    """A freshly built document together with the key pairs behind it."""

    document: DidDocument
    authentication_key: KeyPair
    agreement_key: KeyPair
    human_authorization_key: KeyPair

    @property
    def did(self) -> str:
        return self.document.id


def verification_method_for(
    did: Did, key_pair: KeyPair, method_type: Optional[str] = None
) -> VerificationMethod:
    """
    Build a verification method for a key pair under a random key id.

    Args:
        did: Owning DID, used as controller and id prefix
        key_pair: Key whose public half is encoded
        method_type: Override for the method type, e.g. for key agreement

    Returns:
        A multibase method for Ed25519 keys, a JWK method for secp256k1 keys
    """
    common = {
        "id": did.key_id(random_id(16)),
        "type": method_type or key_pair.algorithm.value,
        "controller": str(did),
    }
    if key_pair.algorithm is KeyAlgorithm.SECP256K1:
        return JwkVerificationMethod(
            **common, public_key_jwk=PublicKeyJwk.from_public_key(key_pair.public_key)
        )
    return MultibaseVerificationMethod(
        **common, public_key_multibase=encode_multibase(key_pair.public_key)
    )


def build_did_document(
    domain: str,
    path: Optional[str] = None,
    algorithm: Union[KeyAlgorithm, str] = KeyAlgorithm.ED25519,
) -> DidDocumentBundle:
    """
    Generate keys and assemble a did:wba document.

    The document always holds three verification methods: an authentication
    key of ``algorithm``, an Ed25519 key-agreement key and an Ed25519
    human-authorization key. ``humanAuthorization`` lists the authentication
    key id followed by the embedded human-authorization method.

    Args:
        domain: Host name, optionally with ``:port``
        path: Optional path segment(s) below the domain
        algorithm: Algorithm of the authentication key

    Returns:
        The document and the three generated key pairs

    Raises:
        UnsupportedAlgorithmError: If ``algorithm`` is not supported
        InvalidDIDError: If domain or path cannot form a did:wba DID
    """
    did = Did(domain=domain, path=path)
    authentication_key = KeyPair.generate(algorithm)
    agreement_key = KeyPair.generate(KeyAlgorithm.ED25519)
    human_authorization_key = KeyPair.generate(KeyAlgorithm.ED25519)

    auth_method = verification_method_for(did, authentication_key)
    agreement_method = verification_method_for(did, agreement_key, X25519_KEY_AGREEMENT_TYPE)
    human_method = verification_method_for(did, human_authorization_key)

    document = DidDocument(
        id=str(did),
        verification_methods=(auth_method, agreement_method, human_method),
        authentication=(auth_method.id,),
        key_agreement=(agreement_method,),
        human_authorization=(auth_method.id, human_method),
        services=(
            Service(
                id=did.key_id(AGENT_DESCRIPTION_FRAGMENT),
                type=AGENT_DESCRIPTION_SERVICE_TYPE,
                service_endpoint=did.agent_description_url,
            ),
        ),
    )

    logger.debug("Built DID document %s with %s authentication key", did, authentication_key.algorithm.short_name)
    return DidDocumentBundle(
        document=document,
        authentication_key=authentication_key,
        agreement_key=agreement_key,
        human_authorization_key=human_authorization_key,
    )
