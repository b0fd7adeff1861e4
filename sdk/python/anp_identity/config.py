"""Identity configuration.

Options can be built in code or read from ``ANP_*`` environment variables:

- ``ANP_KEY_TYPE``: ``ed25519`` or ``secp256k1``
- ``ANP_AGENT_NAME``, ``ANP_AGENT_DESCRIPTION``, ``ANP_AGENT_VERSION``
- ``ANP_AGENT_PATH``: DID path of the agent (default ``auto-agent``)
- ``ANP_SERVICE_ENDPOINT``: default ANP service endpoint
- ``ANP_LOG_LEVEL``: ``debug``, ``info``, ``warning`` or ``error``
"""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Self

from anp_identity.description import DEFAULT_INTERFACES, AgentInterface
from anp_identity.document import Service
from anp_identity.errors import ValidationError
from anp_identity.keys import KeyAlgorithm

DEFAULT_AGENT_PATH = "auto-agent"
DEFAULT_SERVICE_ENDPOINT = "http://localhost:3000/anp/api"
DEFAULT_SERVICE_TYPE = "ANPAgentService"

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass(frozen=True)
class IdentityOptions:
    """Settings used when creating an agent identity.

    Attributes:
        algorithm: Algorithm of the authentication key.
        path: DID path below the domain.
        agent_name: Name published in the agent description.
        agent_description: Free-text description of the agent.
        agent_version: Version published in the agent description.
        interfaces: Interfaces published in the agent description.
        service_endpoints: Extra services upserted into the DID document.
        default_service_endpoint: Endpoint of the default ANP service, used
            when ``service_endpoints`` is empty and for interfaces without URL.
        log_level: Level applied to the ``anp_identity`` logger.
    """

    algorithm: KeyAlgorithm = KeyAlgorithm.ED25519
    path: str | None = DEFAULT_AGENT_PATH
    agent_name: str = "Auto-Configured ANP Agent"
    agent_description: str = "Automatically configured ANP agent via SDK"
    agent_version: str = "1.0.0"
    interfaces: tuple[AgentInterface, ...] = DEFAULT_INTERFACES
    service_endpoints: tuple[Service, ...] = ()
    default_service_endpoint: str = DEFAULT_SERVICE_ENDPOINT
    log_level: str = "info"

    def __post_init__(self) -> None:
        object.__setattr__(self, "algorithm", KeyAlgorithm.parse(self.algorithm))
        if self.log_level.lower() not in LOG_LEVELS:
            raise ValidationError(f"unknown log level {self.log_level!r}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides) -> Self:
        """Build options from ``ANP_*`` environment variables.

        Keyword overrides win over the environment.
        """
        env = os.environ if environ is None else environ
        mapping = {
            "ANP_KEY_TYPE": "algorithm",
            "ANP_AGENT_NAME": "agent_name",
            "ANP_AGENT_DESCRIPTION": "agent_description",
            "ANP_AGENT_VERSION": "agent_version",
            "ANP_AGENT_PATH": "path",
            "ANP_SERVICE_ENDPOINT": "default_service_endpoint",
            "ANP_LOG_LEVEL": "log_level",
        }
        values = {name: env[var] for var, name in mapping.items() if env.get(var)}
        values.update(overrides)
        return cls(**values)

    @property
    def logging_level(self) -> int:
        return LOG_LEVELS[self.log_level.lower()]


def configure_logging(options: IdentityOptions) -> None:
    """Apply the configured level to the package logger."""
    logging.getLogger("anp_identity").setLevel(options.logging_level)
