"""Agent description documents.

The agent description is a JSON-LD profile served next to the DID document.
It carries no cryptographic material, so it can change freely without
affecting any signature made by the identity.
"""

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

AD_CONTEXT = {
    "@vocab": "https://schema.org/",
    "ad": "https://service.agent-network-protocol.com/ad#",
}

InterfaceType = Literal["NaturalLanguageInterface", "StructuredInterface"]


class AgentInterface(BaseModel):
    """An interface the agent exposes, as configured by its owner."""

    model_config = ConfigDict(frozen=True)

    type: InterfaceType = "NaturalLanguageInterface"
    description: str
    url: str | None = None


class _Entry(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type_: str = Field(alias="@type")


class InterfaceEntry(_Entry):
    url: str
    description: str


class Capability(_Entry):
    type_: str = Field(default="ad:Capability", alias="@type")
    name: str
    description: str


class Protocol(_Entry):
    type_: str = Field(default="ad:Protocol", alias="@type")
    name: str
    version: str
    description: str


DEFAULT_INTERFACES = (
    AgentInterface(
        type="NaturalLanguageInterface",
        description="Auto-configured natural language interface",
    ),
)

DEFAULT_CAPABILITIES = (
    Capability(
        name="Natural Language Processing",
        description="Process natural language requests and responses",
    ),
    Capability(name="HTTP Communication", description="Communicate via HTTP protocol"),
)

DEFAULT_PROTOCOLS = (
    Protocol(name="ANP", version="1.0", description="Agent Network Protocol"),
)


class AgentDescription(BaseModel):
    """The ``ad:AgentDescription`` profile of an agent."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    context: dict[str, str] = Field(default_factory=lambda: dict(AD_CONTEXT), alias="@context")
    type_: str = Field(default="ad:AgentDescription", alias="@type")
    name: str
    did: str
    description: str
    version: str
    created: str
    interfaces: tuple[InterfaceEntry, ...] = Field(default=(), alias="ad:interfaces")
    capabilities: tuple[Capability, ...] = Field(default=DEFAULT_CAPABILITIES, alias="ad:capabilities")
    supported_protocols: tuple[Protocol, ...] = Field(
        default=DEFAULT_PROTOCOLS, alias="ad:supportedProtocols"
    )

    def with_interface(self, interface: AgentInterface, default_url: str) -> "AgentDescription":
        """Return a copy with ``interface`` appended."""
        entry = interface_entry(interface, default_url)
        return self.model_copy(update={"interfaces": (*self.interfaces, entry)})

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def to_json(self, indent: int | None = 2) -> str:
        return self.model_dump_json(by_alias=True, indent=indent)


def interface_entry(interface: AgentInterface, default_url: str) -> InterfaceEntry:
    return InterfaceEntry(
        type_=f"ad:{interface.type}",
        url=interface.url or default_url,
        description=interface.description,
    )


def build_agent_description(
    did: str,
    name: str,
    description: str,
    version: str,
    interfaces: Iterable[AgentInterface],
    default_url: str,
) -> AgentDescription:
    """Assemble an agent description for ``did``.

    Interfaces without their own URL point at ``default_url``.
    """
    created = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return AgentDescription(
        name=name,
        did=did,
        description=description,
        version=version,
        created=created.replace("+00:00", "Z"),
        interfaces=tuple(interface_entry(i, default_url) for i in interfaces),
    )
