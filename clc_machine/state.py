"""Persisted driver state."""

from enum import Enum

from pydantic import BaseModel, Field


class ProvisioningStep(str, Enum):
    """Last provisioning step that completed, in workflow order."""

    NOT_STARTED = "not_started"
    SERVER_CREATED = "server_created"
    PUBLIC_IP_ATTACHED = "public_ip_attached"
    SSH_KEY_INSTALLED = "ssh_key_installed"
    HOSTNAME_SET = "hostname_set"
    DOCKER_INSTALLED = "docker_installed"

    @property
    def order(self) -> int:
        return list(ProvisioningStep).index(self)

    def is_done(self, step: "ProvisioningStep") -> bool:
        """True when ``step`` is this step or an earlier one."""
        return step.order <= self.order


class DriverState(BaseModel):
    """Everything the orchestrator must keep between driver invocations.

    The password is never part of it. The bearer token is, so a restored
    driver can skip the login while the token is still accepted.
    """

    machine_name: str
    store_path: str
    server_id: str = ""
    bearer_token: str = ""
    account_alias: str = ""
    provisioning_step: ProvisioningStep = Field(default=ProvisioningStep.NOT_STARTED)

    @property
    def is_provisioned(self) -> bool:
        return self.provisioning_step == ProvisioningStep.DOCKER_INSTALLED
