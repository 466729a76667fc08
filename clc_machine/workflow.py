"""Provisioning workflow.

Turns the driver options into a reachable server running Docker:

1. Create the server and record its ID
2. Attach a public IP exposing SSH and the Docker port
3. Log in with the one-time root password and install a generated SSH key
4. Set the hostname to the machine name
5. Install Docker unless it is already present

Each step runs only after the previous one succeeded. Nothing is rolled back
on failure; the completed step is recorded in ``DriverState`` so running the
workflow again resumes after it.
"""

import asyncio
from collections.abc import Callable

from .clients.clc import ClcClient
from .config import Settings
from .constants import Commands, Defaults, Ports
from .errors import NoAddressError, RequestError, log_request_error
from .logging_config import get_logger
from .poller import OperationPoller
from .resolver import resolve_server
from .schemas import Port, Server, ServerSpec
from .session import SessionManager
from .ssh import KeyedShell, PasswordSession, generate_ssh_key, wait_for_tcp
from .state import DriverState, ProvisioningStep

logger = get_logger(__name__)

PUBLIC_PORTS = [
    Port(protocol="TCP", port=Ports.SSH),
    Port(protocol="TCP", port=Ports.DOCKER),
]


class ProvisioningWorkflow:
    """Runs the provisioning steps for one machine.

    Each provider submission holds ``lock`` until its operation resolves, so
    power operations sharing the lock never overlap with it.
    """

    def __init__(
        self,
        session: SessionManager,
        poller: OperationPoller,
        settings: Settings,
        state: DriverState,
        key_path: str,
        on_progress: Callable[[DriverState], None] | None = None,
        wait_for_port=wait_for_tcp,
        password_session_factory=PasswordSession,
        shell_factory=KeyedShell,
        keygen=generate_ssh_key,
        lock: asyncio.Lock | None = None,
    ):
        self.session = session
        self.poller = poller
        self.settings = settings
        self.state = state
        self.key_path = key_path
        self._on_progress = on_progress
        self._wait_for_port = wait_for_port
        self._password_session_factory = password_session_factory
        self._shell_factory = shell_factory
        self._keygen = keygen
        self._lock = lock or asyncio.Lock()

    def _done(self, step: ProvisioningStep) -> bool:
        return self.state.provisioning_step.is_done(step)

    def _advance(self, step: ProvisioningStep) -> None:
        self.state.provisioning_step = step
        logger.info("provisioning_step_completed", step=step.value, server_id=self.state.server_id)
        if self._on_progress is not None:
            self._on_progress(self.state)

    async def run(self) -> Server:
        """Run every step not yet completed and return the provisioned server."""
        if self._done(ProvisioningStep.SERVER_CREATED):
            logger.info(
                "provisioning_resumed",
                step=self.state.provisioning_step.value,
                server_id=self.state.server_id,
            )
            client, server = await resolve_server(self.session, self.state.server_id)
        else:
            client = await self.session.ensure_client()
            server = await self.create_server(client)
            self._advance(ProvisioningStep.SERVER_CREATED)

        if not self._done(ProvisioningStep.PUBLIC_IP_ATTACHED):
            server = await self.add_public_ip(client, server)
            self._advance(ProvisioningStep.PUBLIC_IP_ATTACHED)

        ip = server.public_ip
        if not ip:
            raise NoAddressError("could not find an IP Address for the server")

        if not self._done(ProvisioningStep.SSH_KEY_INSTALLED):
            await self.install_ssh_key(client, server, ip)
            self._advance(ProvisioningStep.SSH_KEY_INSTALLED)

        shell = self._shell_factory(ip, self.key_path)

        if not self._done(ProvisioningStep.HOSTNAME_SET):
            await self.set_hostname(shell)
            self._advance(ProvisioningStep.HOSTNAME_SET)

        if not self._done(ProvisioningStep.DOCKER_INSTALLED):
            await self.install_docker(shell)
            self._advance(ProvisioningStep.DOCKER_INSTALLED)

        return server

    async def create_server(self, client: ClcClient) -> Server:
        logger.info("server_create_start", name=self.settings.server_name)

        spec = ServerSpec(
            name=self.settings.server_name,
            group_id=self.settings.group_id,
            source_server_id=self.settings.source_server_id,
            cpu=self.settings.cpu,
            memory_gb=self.settings.memory_gb,
            type=Defaults.SERVER_TYPE,
        )
        async with self._lock:
            try:
                server_link, operation = await client.create_server(spec)
            except RequestError as e:
                log_request_error(e)
                raise

            await self.poller.wait_for_completion(client, operation, label="create")

        server = await client.get_server_by_link(server_link)
        self.state.server_id = server.id
        logger.info("server_provisioned", name=server.name, server_id=server.id)
        return server

    async def add_public_ip(self, client: ClcClient, server: Server) -> Server:
        logger.info("public_ip_add_start", server_id=server.id)

        async with self._lock:
            try:
                operation = await client.add_public_ip(server.id, PUBLIC_PORTS)
            except RequestError as e:
                log_request_error(e)
                raise

            await self.poller.wait_for_completion(client, operation, label="public_ip")

        server = await client.get_server(server.id)
        ip = server.public_ip
        if not ip:
            raise NoAddressError("could not find an IP Address for the server")

        logger.info("public_ip_provisioned", server_id=server.id, ip=ip)
        return server

    async def install_ssh_key(self, client: ClcClient, server: Server, ip: str) -> None:
        """Install a freshly generated public key using the one-time root password."""
        credentials = await client.get_credentials(server.id)

        logger.info("ssh_wait_start", host=ip)
        await self._wait_for_port(ip, Ports.SSH, timeout=self.settings.ssh_wait_timeout)

        async with self._password_session_factory(
            ip, credentials.password, user=Defaults.SSH_USER
        ) as password_session:
            loop = asyncio.get_running_loop()
            public_key = await loop.run_in_executor(None, self._keygen, self.key_path)
            logger.debug("ssh_key_authorize", host=ip)
            await password_session.run(Commands.APPEND_AUTHORIZED_KEY.format(key=public_key))

    async def set_hostname(self, shell: KeyedShell) -> None:
        logger.debug("hostname_set", hostname=self.state.machine_name)
        await shell.run(Commands.SET_HOSTNAME.format(name=self.state.machine_name))

    async def install_docker(self, shell: KeyedShell) -> None:
        logger.debug("docker_install_start")
        await shell.run(Commands.INSTALL_DOCKER)
