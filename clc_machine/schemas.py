"""Pydantic schemas for CenturyLink Cloud API v2 payloads.

The API speaks camelCase JSON; models use snake_case attributes with camelCase
aliases. Unknown fields are kept (``extra="allow"``) since responses carry far
more than the driver reads.

API Documentation: https://www.ctl.io/api-docs/v2/
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ClcModel(BaseModel):
    """Base model for API payloads."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class APICredentials(ClcModel):
    """Response of POST /authentication/login.

    The bearer token is presented on every later request; the account alias
    scopes most URLs.
    """

    bearer_token: str = Field(..., description="Opaque bearer token")
    account_alias: str = Field(..., description="Account alias, e.g. 'ABCD'")
    username: str | None = Field(None, alias="userName", description="Authenticated user")
    location_alias: str | None = Field(None, description="Home data center")


class Link(ClcModel):
    """Hypermedia link attached to most API responses."""

    rel: str
    href: str | None = None
    id: str | None = None
    verbs: list[str] = Field(default_factory=list)


def find_link(links: list[Link], rel: str) -> Link | None:
    for link in links:
        if link.rel == rel:
            return link
    return None


class IPAddress(ClcModel):
    """Network address pair; either side may be empty."""

    public: str | None = Field(None, description="Public IP address")
    internal: str | None = Field(None, description="Private IP address")


class ServerDetails(ClcModel):
    ip_addresses: list[IPAddress] = Field(default_factory=list)
    power_state: str | None = Field(None, description="started, stopped, paused")
    cpu: int | None = None
    memory_mb: int | None = Field(None, alias="memoryMB")
    storage_gb: int | None = Field(None, alias="storageGB")
    in_maintenance_mode: bool = False


class Server(ClcModel):
    """Server from GET /servers/{accountAlias}/{serverId}."""

    id: str = Field(..., description="Server ID assigned by the provider")
    name: str | None = None
    group_id: str | None = None
    location_id: str | None = None
    os_type: str | None = None
    status: str | None = Field(None, description="active, archived, underConstruction, ...")
    details: ServerDetails = Field(default_factory=ServerDetails)
    links: list[Link] = Field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.status == "active" and self.details.power_state in (None, "started")

    @property
    def is_paused(self) -> bool:
        return self.status == "paused" or self.details.power_state == "paused"

    @property
    def public_ip(self) -> str | None:
        """First non-empty public address, if any."""
        for address in self.details.ip_addresses:
            if address.public:
                return address.public
        return None


class ServerSpec(ClcModel):
    """Request body for POST /servers/{accountAlias}."""

    name: str
    group_id: str
    source_server_id: str
    cpu: int
    memory_gb: int = Field(..., alias="memoryGB")
    type: str = "standard"


class Port(ClcModel):
    protocol: str = Field(..., description="TCP, UDP or ICMP")
    port: int


class PublicIPRequest(ClcModel):
    """Request body for POST /servers/{accountAlias}/{serverId}/publicIPAddresses."""

    ports: list[Port]
    internal_ip_address: str | None = Field(None, alias="internalIPAddress")


class OperationType(str, Enum):
    """Power operations, named as in /operations/{accountAlias}/servers/{type}."""

    POWER_ON = "powerOn"
    POWER_OFF = "powerOff"
    REBOOT = "reboot"


class OperationState(str, Enum):
    NOT_STARTED = "notStarted"
    EXECUTING = "executing"
    RESUMED = "resumed"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class AsyncOperation(ClcModel):
    """Handle for a queued provider operation.

    ``id`` is the status id from the submission's "status" link. ``status``
    is unknown (``None``) until the first poll.
    """

    id: str = Field(..., description="Status ID")
    status: OperationState | None = None

    @property
    def has_succeeded(self) -> bool:
        return self.status == OperationState.SUCCEEDED

    @property
    def has_failed(self) -> bool:
        return self.status == OperationState.FAILED


class QueuedResponse(ClcModel):
    """Acknowledgement of a queued request (create, delete, power operations)."""

    server: str | None = None
    is_queued: bool = True
    error_message: str | None = None
    links: list[Link] = Field(default_factory=list)


class ServerLoginCredentials(ClcModel):
    """Response of GET /servers/{accountAlias}/{serverId}/credentials."""

    user_name: str = Field(..., alias="userName")
    password: str


class DataCenter(ClcModel):
    id: str
    name: str | None = None
    links: list[Link] = Field(default_factory=list)


class ErrorResponse(ClcModel):
    """Error body; ``modelState`` maps request fields to validation messages."""

    message: str | None = None
    model_state: dict[str, list[str]] = Field(default_factory=dict)
