"""Shared fixtures for driver tests."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from clc_machine.config import Settings
from clc_machine.poller import OperationPoller
from clc_machine.session import CredentialStore, SessionManager
from tests.factories import ALIAS, API_URL


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        username="jdoe",
        password="secret",
        server_name="demo",
        group_id="g1",
        api_url=API_URL,
    )


@pytest.fixture
def store() -> CredentialStore:
    return CredentialStore(bearer_token="cached-token", account_alias=ALIAS)


@pytest.fixture
def prompt() -> MagicMock:
    return MagicMock(return_value="prompted-secret")


@pytest.fixture
def session(settings, store, prompt) -> SessionManager:
    return SessionManager(settings, store, prompt=prompt)


@pytest.fixture
def fake_sleep() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def poller(fake_sleep) -> OperationPoller:
    return OperationPoller(interval=10, timeout=None, max_attempts=50, sleep=fake_sleep)


@pytest.fixture
def gate() -> asyncio.Event:
    return asyncio.Event()


@pytest.fixture
def gated_poller(gate) -> OperationPoller:
    """Poller whose sleeps block until ``gate`` is set."""

    async def sleep(_: float) -> None:
        await gate.wait()

    return OperationPoller(interval=10, timeout=None, max_attempts=50, sleep=sleep)
