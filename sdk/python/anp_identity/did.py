"""Decentralized Identifier (DID) handling.

Format: did:wba:<domain>[:<path>]

Uses the did:wba (Web-Based Agent) method.
- The domain may carry a port; its colon is percent-encoded as ``%3A``
- The path is everything after the domain and may itself contain colons,
  e.g. ``did:wba:example.com:user:alice``
"""

import re
from dataclasses import dataclass

from anp_identity.errors import InvalidDIDError

DID_PREFIX = "did:wba:"

PORT_SEPARATOR_ENCODED = "%3A"

_DOMAIN_PATTERN = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9.\-]*[A-Za-z0-9])?(?::\d{1,5})?$")
_PATH_PATTERN = re.compile(r"^[A-Za-z0-9._~\-%]+(?::[A-Za-z0-9._~\-%]+)*$")


@dataclass(frozen=True, slots=True)
class Did:
    """A parsed did:wba identifier.

    Attributes:
        domain: Host name, optionally with ``:port``.
        path: Optional colon-separated path below the domain.
    """

    domain: str
    path: str | None = None

    def __post_init__(self) -> None:
        if not _DOMAIN_PATTERN.match(self.domain):
            raise InvalidDIDError(f"invalid domain {self.domain!r}")
        if self.path is not None and not _PATH_PATTERN.match(self.path):
            raise InvalidDIDError(f"invalid path {self.path!r}")

    @classmethod
    def parse(cls, did_string: str) -> "Did":
        """Parse a did:wba string.

        Args:
            did_string: A did:wba formatted string.

        Returns:
            A Did instance.

        Raises:
            InvalidDIDError: If the format is invalid.
        """
        if not did_string.startswith(DID_PREFIX):
            raise InvalidDIDError("must start with 'did:wba:'")

        method_specific = did_string[len(DID_PREFIX) :]
        if not method_specific:
            raise InvalidDIDError("missing domain")

        domain, separator, path = method_specific.partition(":")
        if separator and not path:
            raise InvalidDIDError("empty path")
        domain = domain.replace(PORT_SEPARATOR_ENCODED, ":").replace("%3a", ":")

        return cls(domain=domain, path=path or None)

    @property
    def host(self) -> str:
        """Domain without the port."""
        return self.domain.partition(":")[0]

    @property
    def agent_description_url(self) -> str:
        """Conventional well-known URL of this agent's description."""
        return f"https://{self.domain}/agents/{self.path or 'default'}/ad.json"

    def key_id(self, fragment: str) -> str:
        """Full verification method id for ``fragment``."""
        return f"{self}#{fragment}"

    def __str__(self) -> str:
        encoded_domain = self.domain.replace(":", PORT_SEPARATOR_ENCODED)
        if self.path:
            return f"{DID_PREFIX}{encoded_domain}:{self.path}"
        return f"{DID_PREFIX}{encoded_domain}"

    def __repr__(self) -> str:
        return f"Did({self})"
