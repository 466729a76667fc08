"""Session and credential management.

``CredentialStore`` is the single piece of state shared by every call a
driver makes: the bearer token and account alias. ``SessionManager`` is its
only writer.

The store is not persisted here. A token refreshed mid-session is lost when
the process exits unless the caller persists it, which is what the
``on_refresh`` callback is for.
"""

from collections.abc import Callable
from dataclasses import dataclass

import typer

from .clients.clc import ClcClient
from .config import Settings
from .errors import ConfigError, UnauthorizedError
from .logging_config import get_logger
from .schemas import APICredentials

logger = get_logger(__name__)

PASSWORD_PROMPT = "Enter your CenturyLink Cloud password"


@dataclass
class CredentialStore:
    """Cached bearer token and account alias."""

    bearer_token: str = ""
    account_alias: str = ""

    @property
    def is_set(self) -> bool:
        return bool(self.bearer_token and self.account_alias)

    def as_api_credentials(self) -> APICredentials | None:
        if not self.is_set:
            return None
        return APICredentials(bearer_token=self.bearer_token, account_alias=self.account_alias)

    def update(self, credentials: APICredentials) -> None:
        self.bearer_token = credentials.bearer_token
        self.account_alias = credentials.account_alias


def prompt_for_password() -> str:
    return typer.prompt(PASSWORD_PROMPT, hide_input=True).strip()


class SessionManager:
    """Hands out authenticated API clients.

    A cached token is validated with a cheap read (listing data centers). If
    the provider answers 401 the manager logs in again, once, and replaces the
    cached pair. Any other failure of the probe propagates unchanged.
    """

    def __init__(
        self,
        settings: Settings,
        store: CredentialStore,
        prompt: Callable[[], str] = prompt_for_password,
        on_refresh: Callable[[CredentialStore], None] | None = None,
    ):
        self.settings = settings
        self.store = store
        self._prompt = prompt
        self._on_refresh = on_refresh

    def _new_client(self) -> ClcClient:
        return ClcClient(self.settings.api_url, credentials=self.store.as_api_credentials())

    async def ensure_client(self) -> ClcClient:
        """Return a client holding credentials the provider currently accepts."""
        client = self._new_client()

        if not self.store.is_set:
            await self._authenticate(client)
            return client

        try:
            await client.list_data_centers()
        except UnauthorizedError:
            logger.info("clc_bearer_token_rejected", account_alias=self.store.account_alias)
            await self._authenticate(client)

        return client

    async def _authenticate(self, client: ClcClient) -> None:
        if not self.settings.username:
            raise ConfigError("centurylinkcloud driver requires a username to authenticate")

        # The password is read for this exchange only and never stored
        password = self.settings.secret() or self._prompt()
        credentials = await client.login(self.settings.username, password)
        self.store.update(credentials)

        logger.info("clc_credentials_updated", account_alias=credentials.account_alias)
        if self._on_refresh is not None:
            self._on_refresh(self.store)
