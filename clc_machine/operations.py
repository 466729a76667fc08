"""Lifecycle operations and state queries for a single server.

Power operations and deletion share one shape: resolve the server, submit the
request, poll the returned operation to completion. Submission failures are
raised, never treated as success.
"""

import asyncio
from enum import Enum

from .errors import ClcMachineError, NoAddressError, RequestError, log_request_error
from .logging_config import get_logger
from .poller import OperationPoller
from .resolver import resolve_server
from .schemas import OperationType
from .session import SessionManager

logger = get_logger(__name__)


class MachineState(str, Enum):
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"
    ERROR = "error"


class LifecycleVerb(str, Enum):
    """Driver verbs and the provider operation each one submits."""

    START = "start"
    STOP = "stop"
    RESTART = "restart"
    KILL = "kill"

    @property
    def operation_type(self) -> OperationType:
        return _VERB_OPERATIONS[self]


_VERB_OPERATIONS = {
    LifecycleVerb.START: OperationType.POWER_ON,
    LifecycleVerb.STOP: OperationType.POWER_OFF,
    LifecycleVerb.RESTART: OperationType.REBOOT,
    LifecycleVerb.KILL: OperationType.POWER_OFF,
}


class LifecycleOperations:
    """Drives lifecycle operations for one server.

    Submissions are serialized through ``lock``: a second call waits until the
    previous operation for this server has been resolved. The provisioning
    workflow takes the same lock around its own submissions.
    """

    def __init__(self, session: SessionManager, poller: OperationPoller):
        self.session = session
        self.poller = poller
        self.lock = asyncio.Lock()

    async def apply(self, verb: LifecycleVerb, server_id: str) -> None:
        kind = verb.operation_type
        async with self.lock:
            client, server = await resolve_server(self.session, server_id)

            logger.info("server_operation_started", operation=kind.value, server_id=server.id)
            try:
                operation = await client.perform_operation(kind, server.id)
            except RequestError as e:
                log_request_error(e)
                raise

            await self.poller.wait_for_completion(client, operation, label=kind.value)
            logger.info("server_operation_completed", operation=kind.value, server_id=server.id)

    async def remove(self, server_id: str) -> None:
        async with self.lock:
            client, server = await resolve_server(self.session, server_id)

            logger.info("server_deletion_started", server_id=server.id)
            try:
                operation = await client.delete_server(server.id)
            except RequestError as e:
                log_request_error(e)
                raise

            await self.poller.wait_for_completion(client, operation, label="deletion")
            logger.info("server_deleted", server_id=server.id)

    async def get_state(self, server_id: str) -> MachineState:
        """Map the server's status to a MachineState.

        A server that cannot be resolved is reported as ``ERROR``.
        """
        try:
            _, server = await resolve_server(self.session, server_id)
        except ClcMachineError as e:
            logger.warning("server_state_unavailable", server_id=server_id, error=str(e))
            return MachineState.ERROR

        if server.is_active:
            return MachineState.RUNNING
        if server.is_paused:
            return MachineState.PAUSED
        return MachineState.STOPPED

    async def get_ip(self, server_id: str) -> str:
        """Return the server's first public IP address.

        Raises:
            NoAddressError: The server has no public address
        """
        _, server = await resolve_server(self.session, server_id)
        address = server.public_ip
        if not address:
            raise NoAddressError("no IP could be found for this server")
        return address
