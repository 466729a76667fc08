"""Resolve the driver's server from its stored ID."""

from .clients.clc import ClcClient
from .errors import NotFoundError, ServerNotFoundError
from .logging_config import get_logger
from .schemas import Server
from .session import SessionManager

logger = get_logger(__name__)


async def resolve_server(session: SessionManager, server_id: str) -> tuple[ClcClient, Server]:
    """Fetch the current representation of a server.

    Returns:
        Tuple of (authenticated client, server)

    Raises:
        ServerNotFoundError: The provider has no server with this ID
        RequestError: Any other provider or transport failure
    """
    if not server_id:
        raise ServerNotFoundError(server_id)

    client = await session.ensure_client()
    try:
        server = await client.get_server(server_id)
    except NotFoundError as e:
        logger.warning("clc_server_not_found", server_id=server_id)
        raise ServerNotFoundError(server_id) from e

    return client, server
