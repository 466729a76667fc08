"""CenturyLink Cloud machine driver.

``Driver`` is the surface the orchestrator talks to: create/remove a machine,
change its power state, query its state and address, and manage Docker on it.
"""

from collections.abc import Callable
from functools import wraps
import os
from typing import Any, TypeVar

import structlog

from .config import Settings
from .constants import DRIVER_NAME, Commands, Paths, Ports
from .logging_config import get_logger
from .operations import LifecycleOperations, LifecycleVerb, MachineState
from .poller import OperationPoller
from .session import CredentialStore, SessionManager, prompt_for_password
from .ssh import KeyedShell
from .state import DriverState
from .workflow import ProvisioningWorkflow

logger = get_logger(__name__)

T = TypeVar("T")


def bind_machine(func: Callable[..., T]) -> Callable[..., T]:
    """Bind the machine name into the log context for the duration of a call."""

    @wraps(func)
    async def wrapper(self: "Driver", *args: Any, **kwargs: Any) -> T:
        with structlog.contextvars.bound_contextvars(machine_name=self.state.machine_name):
            return await func(self, *args, **kwargs)

    return wrapper


class Driver:
    """Driver for one machine on CenturyLink Cloud.

    Args:
        machine_name: Logical machine name, also used as the remote hostname
        store_path: Per-machine directory holding the SSH key
        settings: Driver options; read from the environment when omitted
        state: State restored from a previous run
        on_state_change: Called with the state whenever it changes (new
            credentials, workflow progress). Persisting it is the caller's job.
        prompt: Returns the password when none is configured
        poller: Operation poller; built from ``settings`` when omitted
    """

    def __init__(
        self,
        machine_name: str,
        store_path: str,
        settings: Settings | None = None,
        state: DriverState | None = None,
        on_state_change: Callable[[DriverState], None] | None = None,
        prompt: Callable[[], str] = prompt_for_password,
        poller: OperationPoller | None = None,
    ):
        self.settings = settings or Settings()
        self.state = state or DriverState(machine_name=machine_name, store_path=store_path)
        self._on_state_change = on_state_change

        self.credentials = CredentialStore(
            bearer_token=self.state.bearer_token,
            account_alias=self.state.account_alias,
        )
        self.session = SessionManager(
            self.settings,
            self.credentials,
            prompt=prompt,
            on_refresh=self._credentials_refreshed,
        )
        self.poller = poller or OperationPoller(
            interval=self.settings.status_wait_seconds,
            timeout=self.settings.operation_timeout,
        )
        self.operations = LifecycleOperations(self.session, self.poller)

    @classmethod
    def from_config(cls, config: dict[str, Any], **kwargs: Any) -> "Driver":
        """Rebuild a driver from the output of ``config()``."""
        state = DriverState.model_validate(config["state"])
        settings = Settings(**config.get("options", {}))
        return cls(state.machine_name, state.store_path, settings=settings, state=state, **kwargs)

    def config(self) -> dict[str, Any]:
        """Serializable driver state and options. The password is never included."""
        return {
            "driver": DRIVER_NAME,
            "state": self.state.model_dump(mode="json"),
            "options": self.settings.model_dump(
                mode="json",
                exclude={"password", "log_format", "log_level"},
            ),
        }

    def _notify(self, state: DriverState) -> None:
        if self._on_state_change is not None:
            self._on_state_change(state)

    def _credentials_refreshed(self, store: CredentialStore) -> None:
        self.state.bearer_token = store.bearer_token
        self.state.account_alias = store.account_alias
        self._notify(self.state)

    def driver_name(self) -> str:
        return DRIVER_NAME

    def ssh_key_path(self) -> str:
        return os.path.join(self.state.store_path, Paths.SSH_KEY_NAME)

    def get_docker_config_dir(self) -> str:
        return Paths.DOCKER_CONFIG_DIR

    def pre_create_check(self) -> None:
        self.settings.validate_for_create()

    # === Provisioning ===

    @bind_machine
    async def create(self) -> None:
        """Provision the server, resuming after the last completed step."""
        if self.state.is_provisioned:
            logger.info("server_already_provisioned", server_id=self.state.server_id)
            return

        self.pre_create_check()
        workflow = ProvisioningWorkflow(
            self.session,
            self.poller,
            self.settings,
            self.state,
            self.ssh_key_path(),
            on_progress=self._notify,
            lock=self.operations.lock,
        )
        await workflow.run()

    @bind_machine
    async def remove(self) -> None:
        await self.operations.remove(self.state.server_id)

    # === Power ===

    @bind_machine
    async def start(self) -> None:
        await self.operations.apply(LifecycleVerb.START, self.state.server_id)

    @bind_machine
    async def stop(self) -> None:
        await self.operations.apply(LifecycleVerb.STOP, self.state.server_id)

    @bind_machine
    async def restart(self) -> None:
        await self.operations.apply(LifecycleVerb.RESTART, self.state.server_id)

    @bind_machine
    async def kill(self) -> None:
        await self.operations.apply(LifecycleVerb.KILL, self.state.server_id)

    # === Queries ===

    @bind_machine
    async def get_state(self) -> MachineState:
        return await self.operations.get_state(self.state.server_id)

    @bind_machine
    async def get_ip(self) -> str:
        return await self.operations.get_ip(self.state.server_id)

    async def get_url(self) -> str:
        ip = await self.get_ip()
        return f"tcp://{ip}:{Ports.DOCKER}"

    # === Docker over SSH ===

    async def _shell(self) -> KeyedShell:
        return KeyedShell(await self.get_ip(), self.ssh_key_path())

    async def get_ssh_command(self, *args: str) -> list[str]:
        """Argv for ``ssh root@<ip>`` with the machine's key, followed by ``args``."""
        shell = await self._shell()
        return shell.command_args(*args)

    @bind_machine
    async def start_docker(self) -> None:
        logger.debug("docker_start")
        shell = await self._shell()
        await shell.run(Commands.START_DOCKER)

    @bind_machine
    async def stop_docker(self) -> None:
        logger.debug("docker_stop")
        shell = await self._shell()
        await shell.run(Commands.STOP_DOCKER)

    @bind_machine
    async def upgrade(self) -> None:
        logger.debug("docker_upgrade")
        shell = await self._shell()
        await shell.run(Commands.UPGRADE_DOCKER)
