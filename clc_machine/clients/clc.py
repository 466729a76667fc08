"""CenturyLink Cloud API v2 client."""

from typing import Any

import httpx
from pydantic import ValidationError

from ..constants import Defaults, Timeouts
from ..errors import (
    NotFoundError,
    RequestError,
    SubmissionError,
    UnauthorizedError,
)
from ..logging_config import get_logger
from ..schemas import (
    APICredentials,
    AsyncOperation,
    DataCenter,
    ErrorResponse,
    Link,
    OperationType,
    Port,
    PublicIPRequest,
    QueuedResponse,
    Server,
    ServerLoginCredentials,
    ServerSpec,
    find_link,
)

logger = get_logger(__name__)


def _error_from_response(resp: httpx.Response) -> RequestError:
    """Build the RequestError subclass matching the response status."""
    message = resp.text or resp.reason_phrase
    errors: dict[str, list[str]] = {}
    try:
        body = ErrorResponse.model_validate(resp.json())
        message = body.message or message
        errors = body.model_state
    except (ValueError, ValidationError):
        pass

    if resp.status_code == httpx.codes.UNAUTHORIZED:
        error_cls = UnauthorizedError
    elif resp.status_code == httpx.codes.NOT_FOUND:
        error_cls = NotFoundError
    else:
        error_cls = RequestError
    return error_cls(message, status_code=resp.status_code, errors=errors)


def _status_operation(links: list[Link], context: str) -> AsyncOperation:
    link = find_link(links, "status")
    if link is None or not link.id:
        raise SubmissionError(f"No status link in {context} response", status_code=None)
    return AsyncOperation(id=link.id)


class ClcClient:
    """Client for the CenturyLink Cloud API v2.

    Holds the current ``APICredentials``; every call except ``login`` requires
    them. Non-2xx responses raise ``RequestError`` (``UnauthorizedError`` for
    401, ``NotFoundError`` for 404); transport failures raise ``RequestError``
    with no status code.
    """

    def __init__(
        self,
        api_url: str = Defaults.API_URL,
        credentials: APICredentials | None = None,
        timeout: float = Timeouts.HTTP_REQUEST,
    ):
        self.api_url = api_url.rstrip("/")
        self.credentials = credentials
        self.timeout = timeout

    @property
    def account_alias(self) -> str:
        if self.credentials is None:
            raise RequestError("CenturyLink Cloud client is not authenticated")
        return self.credentials.account_alias

    def _headers(self, authenticated: bool) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if authenticated:
            if self.credentials is None:
                raise RequestError("CenturyLink Cloud client is not authenticated")
            headers["Authorization"] = f"Bearer {self.credentials.bearer_token}"
        return headers

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        if path.startswith("/v2/"):
            # Links returned by the API are rooted at the host, not at /v2
            return str(httpx.URL(self.api_url).join(path))
        return f"{self.api_url}{path}"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        authenticated: bool = True,
    ) -> Any:
        """Make an API request, returning the decoded JSON body."""
        url = self._url(path)
        headers = self._headers(authenticated)

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.request(method, url, headers=headers, json=json)
        except httpx.HTTPError as e:
            raise RequestError(f"Request failed: {e}") from e

        logger.debug("clc_request", method=method, url=url, status_code=resp.status_code)

        if resp.status_code >= httpx.codes.BAD_REQUEST:
            raise _error_from_response(resp)

        if resp.status_code == httpx.codes.NO_CONTENT or not resp.content:
            return None
        return resp.json()

    # === Authentication ===

    async def login(self, username: str, password: str) -> APICredentials:
        """Exchange username and password for a bearer token."""
        data = await self._request(
            "POST",
            "/authentication/login",
            json={"username": username, "password": password},
            authenticated=False,
        )
        self.credentials = APICredentials.model_validate(data)
        logger.info("clc_login_succeeded", account_alias=self.credentials.account_alias)
        return self.credentials

    async def list_data_centers(self) -> list[DataCenter]:
        """List data centers visible to the account. Cheap, read-only."""
        data = await self._request("GET", f"/datacenters/{self.account_alias}")
        return [DataCenter.model_validate(item) for item in data or []]

    # === Servers ===

    async def get_server(self, server_id: str) -> Server:
        data = await self._request("GET", f"/servers/{self.account_alias}/{server_id}")
        return Server.model_validate(data)

    async def get_server_by_link(self, href: str) -> Server:
        """Fetch a server through a "self" link returned by a queued create."""
        data = await self._request("GET", href)
        return Server.model_validate(data)

    async def create_server(self, spec: ServerSpec) -> tuple[str, AsyncOperation]:
        """Queue server creation.

        Returns:
            Tuple of (self link href of the new server, operation to poll)
        """
        data = await self._request(
            "POST",
            f"/servers/{self.account_alias}",
            json=spec.model_dump(by_alias=True),
        )
        queued = QueuedResponse.model_validate(data)
        if not queued.is_queued:
            raise SubmissionError(queued.error_message or "Server creation was not queued")

        self_link = find_link(queued.links, "self")
        if self_link is None or not self_link.href:
            raise SubmissionError("No self link in server creation response")

        operation = _status_operation(queued.links, "server creation")
        logger.info("clc_server_create_queued", name=spec.name, status_id=operation.id)
        return self_link.href, operation

    async def add_public_ip(self, server_id: str, ports: list[Port]) -> AsyncOperation:
        """Queue a public IP address exposing ``ports`` on the server."""
        request = PublicIPRequest(ports=ports)
        data = await self._request(
            "POST",
            f"/servers/{self.account_alias}/{server_id}/publicIPAddresses",
            json=request.model_dump(by_alias=True, exclude_none=True),
        )
        link = Link.model_validate(data)
        return _status_operation([link], "public IP")

    async def delete_server(self, server_id: str) -> AsyncOperation:
        data = await self._request("DELETE", f"/servers/{self.account_alias}/{server_id}")
        queued = QueuedResponse.model_validate(data)
        if not queued.is_queued:
            raise SubmissionError(queued.error_message or "Server deletion was not queued")
        return _status_operation(queued.links, "server deletion")

    async def perform_operation(self, kind: OperationType, server_id: str) -> AsyncOperation:
        """Queue a power operation for a single server."""
        data = await self._request(
            "POST",
            f"/operations/{self.account_alias}/servers/{kind.value}",
            json=[server_id],
        )
        responses = [QueuedResponse.model_validate(item) for item in data or []]
        if not responses:
            raise SubmissionError(f"Empty response for '{kind.value}' on '{server_id}'")

        queued = next((r for r in responses if r.server == server_id), responses[0])
        if queued.error_message or not queued.is_queued:
            raise SubmissionError(
                queued.error_message or f"Operation '{kind.value}' was not queued"
            )
        return _status_operation(queued.links, kind.value)

    async def get_credentials(self, server_id: str) -> ServerLoginCredentials:
        """Fetch the server's administrator login."""
        data = await self._request(
            "GET", f"/servers/{self.account_alias}/{server_id}/credentials"
        )
        return ServerLoginCredentials.model_validate(data)

    # === Operations ===

    async def get_operation_status(self, operation: AsyncOperation) -> AsyncOperation:
        """Fetch the current status of a queued operation."""
        data = await self._request(
            "GET", f"/operations/{self.account_alias}/status/{operation.id}"
        )
        return AsyncOperation(id=operation.id, status=data["status"])
