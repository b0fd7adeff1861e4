"""Agent identity creation.

``create_identity`` runs key generation and document assembly in one step
and returns a fully populated, immutable ``AgentIdentity``.
``IdentityConfigurator`` wraps it for owners that set up an identity once
and read it back through accessors afterwards.

Example:
    >>> identity = create_identity("agent.example", port=8080)
    >>> identity.did
    'did:wba:agent.example%3A8080:auto-agent'
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Self

from anp_identity.auth import sign_request
from anp_identity.config import DEFAULT_SERVICE_TYPE, IdentityOptions, configure_logging
from anp_identity.description import AgentDescription, AgentInterface, build_agent_description
from anp_identity.document import (
    AGENT_DESCRIPTION_SERVICE_TYPE,
    DidDocument,
    JwkVerificationMethod,
    MultibaseVerificationMethod,
    Service,
    build_did_document,
)
from anp_identity.errors import ANPError, NotConfiguredError, ValidationError
from anp_identity.keys import KeyAlgorithm, KeyPair
from anp_identity.signing import Payload, SignaturePayload, sign_dict

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentIdentity:
    """An agent's DID, key material, DID document and description.

    Only the document's services and the description's interfaces change
    after creation, through ``with_service`` and ``with_interface``.
    """

    did: str
    authentication_key: KeyPair
    agreement_key: KeyPair
    human_authorization_key: KeyPair
    document: DidDocument
    description: AgentDescription
    options: IdentityOptions

    @property
    def algorithm(self) -> KeyAlgorithm:
        return self.authentication_key.algorithm

    @property
    def private_key_pem(self) -> str:
        """PEM text of the authentication private key."""
        return self.authentication_key.to_pem()

    @property
    def public_key(self) -> str | dict[str, Any]:
        """Published encoding of the authentication key.

        A multibase string for Ed25519, a JWK dict for secp256k1.
        """
        method = self.document.authentication_method()
        if isinstance(method, JwkVerificationMethod) and method.public_key_jwk is not None:
            return method.public_key_jwk.to_dict()
        if isinstance(method, MultibaseVerificationMethod):
            return method.public_key_multibase
        raise ValidationError(f"authentication method {method.id} has no public key")

    @property
    def interface_url(self) -> str:
        """URL given to interfaces configured without one."""
        return _interface_url(self.document, self.options)

    def with_service(self, service: Service) -> Self:
        """Return a copy whose document has ``service`` inserted or replaced."""
        return replace(self, document=self.document.with_service(service))

    def with_interface(self, interface: AgentInterface) -> Self:
        """Return a copy whose description lists ``interface``."""
        return replace(self, description=self.description.with_interface(interface, self.interface_url))

    def sign(self, payload: "SignaturePayload | Payload") -> str:
        """Sign a payload with the authentication key."""
        return sign_dict(payload, self.authentication_key)

    def sign_request(self, service: str) -> tuple[SignaturePayload, str]:
        """Build a signed payload and DIDWba Authorization header for ``service``."""
        fragment = self.document.authentication_method().id.partition("#")[2]
        return sign_request(self.authentication_key, self.did, service, verification_method=fragment)

    def __repr__(self) -> str:
        return f"AgentIdentity({self.did}, {self.algorithm.short_name})"


def _interface_url(document: DidDocument, options: IdentityOptions) -> str:
    for service in document.services:
        if service.type != AGENT_DESCRIPTION_SERVICE_TYPE:
            return service.service_endpoint
    return options.default_service_endpoint


def create_identity(
    domain: str,
    options: IdentityOptions | None = None,
    port: int | None = None,
) -> AgentIdentity:
    """Create a complete agent identity.

    Args:
        domain: Host name the agent is reachable under.
        options: Identity settings; defaults apply when omitted.
        port: Optional port, folded into the DID domain.

    Returns:
        A fully populated AgentIdentity.

    Raises:
        UnsupportedAlgorithmError: If the configured algorithm is unknown.
        InvalidDIDError: If domain, port or path cannot form a DID.
    """
    options = options or IdentityOptions()
    full_domain = f"{domain}:{port}" if port else domain

    bundle = build_did_document(full_domain, options.path, options.algorithm)
    document = bundle.document

    for service in options.service_endpoints:
        document = document.with_service(service)
    if not options.service_endpoints:
        document = document.with_service(
            Service(
                id=f"{document.id}#default",
                type=DEFAULT_SERVICE_TYPE,
                service_endpoint=options.default_service_endpoint,
                description="Default ANP agent service endpoint",
            )
        )

    description = build_agent_description(
        did=document.id,
        name=options.agent_name,
        description=options.agent_description,
        version=options.agent_version,
        interfaces=options.interfaces,
        default_url=_interface_url(document, options),
    )

    logger.info("Created identity %s (%s)", document.id, options.algorithm.short_name)
    return AgentIdentity(
        did=document.id,
        authentication_key=bundle.authentication_key,
        agreement_key=bundle.agreement_key,
        human_authorization_key=bundle.human_authorization_key,
        document=document,
        description=description,
        options=options,
    )


class IdentityConfigurator:
    """Owns one agent identity for a service.

    Accessors raise NotConfiguredError until ``setup`` has completed.
    """

    def __init__(self, options: IdentityOptions | None = None) -> None:
        self._options = options or IdentityOptions()
        self._identity: AgentIdentity | None = None
        configure_logging(self._options)

    def setup(self, domain: str, port: int | None = None) -> AgentIdentity:
        """Generate the identity. Replaces any identity set up before."""
        logger.info("Setting up identity for %s", domain if port is None else f"{domain}:{port}")
        try:
            self._identity = create_identity(domain, self._options, port=port)
        except ANPError as exc:
            logger.error("Identity setup failed: %s", exc)
            raise
        return self._identity

    @property
    def is_configured(self) -> bool:
        return self._identity is not None

    @property
    def identity(self) -> AgentIdentity:
        if self._identity is None:
            raise NotConfiguredError("Identity")
        return self._identity

    @property
    def did(self) -> str:
        if self._identity is None:
            raise NotConfiguredError("DID")
        return self._identity.did

    @property
    def private_key_pem(self) -> str:
        if self._identity is None:
            raise NotConfiguredError("Private key")
        return self._identity.private_key_pem

    @property
    def public_key(self) -> str | dict[str, Any]:
        if self._identity is None:
            raise NotConfiguredError("Public key")
        return self._identity.public_key

    @property
    def document(self) -> DidDocument:
        if self._identity is None:
            raise NotConfiguredError("DID document")
        return self._identity.document

    @property
    def agent_description(self) -> AgentDescription:
        if self._identity is None:
            raise NotConfiguredError("Agent description")
        return self._identity.description

    def update_service_endpoint(self, service: Service) -> None:
        """Insert or replace a service of the DID document by id."""
        self._identity = self.identity.with_service(service)
        logger.info("Updated service endpoint %s", service.id)

    def add_interface(self, interface: AgentInterface) -> None:
        """Publish another interface in the agent description."""
        self._identity = self.identity.with_interface(interface)
        logger.info("Added interface %s", interface.type)

    def export_did_document(self) -> str:
        return self.document.to_json()

    def export_agent_description(self) -> str:
        return self.agent_description.to_json()

    def validate_did_document(self) -> bool:
        """Check the DID document invariants, logging the first violation."""
        try:
            self.document.validate()
        except (ValidationError, NotConfiguredError) as exc:
            logger.error("DID document validation failed: %s", exc)
            return False
        return True
