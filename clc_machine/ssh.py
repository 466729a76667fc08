"""SSH utilities: reachability probe, key generation and remote command execution.

Two transports are used. The first login uses the one-time root password over
paramiko; every later command runs through the system ``ssh`` binary with the
generated key.
"""

import asyncio
from collections.abc import Awaitable, Callable
import os
from pathlib import Path
import shlex
import subprocess
import time

import paramiko

from .constants import Defaults, Polling, Ports, Timeouts
from .errors import CommandError, KeyGenerationError, ReachabilityTimeoutError, ShellError
from .logging_config import get_logger

logger = get_logger(__name__)


async def wait_for_tcp(
    host: str,
    port: int = Ports.SSH,
    timeout: float = Timeouts.SSH_WAIT,
    interval: float = Polling.TCP_PROBE_INTERVAL,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> None:
    """Wait until a TCP connection to host:port succeeds.

    Raises:
        ReachabilityTimeoutError: No connection within ``timeout`` seconds
    """
    deadline = time.monotonic() + timeout
    attempt = 0

    while True:
        attempt += 1
        remaining = deadline - time.monotonic()
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port), timeout=max(min(remaining, 10.0), 0.1)
            )
            writer.close()
            await writer.wait_closed()
            logger.info("tcp_port_reachable", host=host, port=port, attempts=attempt)
            return
        except (OSError, asyncio.TimeoutError) as e:
            logger.debug("tcp_probe_failed", host=host, port=port, attempt=attempt, error=str(e))

        if time.monotonic() + interval >= deadline:
            raise ReachabilityTimeoutError(host, port, timeout)
        await sleep(interval)


def generate_ssh_key(key_path: str, comment: str = "clc-machine") -> str:
    """Generate a fresh RSA key pair at ``key_path``, replacing any existing one.

    Returns:
        Public key content
    """
    path = Path(key_path)
    pub_path = Path(f"{key_path}.pub")
    path.parent.mkdir(parents=True, exist_ok=True)
    for existing in (path, pub_path):
        if existing.exists():
            existing.unlink()

    logger.info("ssh_key_generation_start", path=key_path)
    try:
        subprocess.run(
            ["ssh-keygen", "-t", "rsa", "-b", "2048", "-f", key_path, "-N", "", "-C", comment],
            check=True,
            capture_output=True,
        )
    except (OSError, subprocess.CalledProcessError) as e:
        stderr = getattr(e, "stderr", b"") or b""
        logger.error("ssh_key_generation_failed", error=str(e), stderr=stderr.decode(errors="replace"))
        raise KeyGenerationError(f"Failed to generate SSH key: {e}") from e

    os.chmod(key_path, 0o600)
    return pub_path.read_text().strip()


class PasswordSession:
    """Password-authenticated SSH session over paramiko.

    paramiko is blocking; every call runs in the default executor.
    """

    def __init__(
        self,
        host: str,
        password: str,
        user: str = Defaults.SSH_USER,
        port: int = Ports.SSH,
        timeout: float = Timeouts.SSH_CONNECT,
    ):
        self.host = host
        self.user = user
        self.port = port
        self.timeout = timeout
        self._password = password
        self._client: paramiko.SSHClient | None = None

    async def _run(self, func, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: func(*args, **kwargs))

    async def connect(self) -> None:
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        logger.debug("ssh_password_login", host=self.host, user=self.user)
        try:
            await self._run(
                client.connect,
                hostname=self.host,
                port=self.port,
                username=self.user,
                password=self._password,
                timeout=self.timeout,
                allow_agent=False,
                look_for_keys=False,
            )
        except (paramiko.SSHException, OSError) as e:
            client.close()
            raise ShellError(f"SSH login to {self.user}@{self.host} failed: {e}") from e
        self._client = client

    def _exec(self, command: str, timeout: float) -> tuple[str, str, int]:
        assert self._client is not None
        _, stdout, stderr = self._client.exec_command(command, timeout=timeout)
        exit_code = stdout.channel.recv_exit_status()
        return (
            stdout.read().decode("utf-8", errors="replace"),
            stderr.read().decode("utf-8", errors="replace"),
            exit_code,
        )

    async def run(self, command: str, timeout: float = Timeouts.SSH_COMMAND) -> str:
        """Run a command and return its stdout.

        Raises:
            CommandError: The command exited non-zero
        """
        if self._client is None:
            raise ShellError("Not connected. Call connect() first.")

        try:
            stdout, stderr, exit_code = await self._run(self._exec, command, timeout)
        except (paramiko.SSHException, OSError) as e:
            raise ShellError(f"SSH command on {self.host} failed: {e}") from e

        if exit_code != 0:
            raise CommandError(command, exit_code, stderr)
        return stdout

    async def close(self) -> None:
        if self._client is not None:
            await self._run(self._client.close)
            self._client = None

    async def __aenter__(self) -> "PasswordSession":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


def ssh_command_args(
    host: str,
    key_path: str,
    *args: str,
    user: str = Defaults.SSH_USER,
    port: int = Ports.SSH,
) -> list[str]:
    """Build the argv for a non-interactive, key-authenticated ssh invocation."""
    return [
        "ssh",
        "-o",
        "StrictHostKeyChecking=no",
        "-o",
        "UserKnownHostsFile=/dev/null",
        "-o",
        "LogLevel=quiet",
        "-o",
        "IdentitiesOnly=yes",
        "-o",
        "PasswordAuthentication=no",
        "-o",
        "ConnectionAttempts=3",
        "-o",
        "ConnectTimeout=10",
        "-p",
        str(port),
        "-i",
        key_path,
        f"{user}@{host}",
        *args,
    ]


async def run_ssh_command(argv: list[str], timeout: float = Timeouts.SSH_COMMAND) -> str:
    """Run an ssh argv to completion and return its stdout.

    Raises:
        CommandError: ssh or the remote command exited non-zero
        ShellError: The command did not finish within ``timeout`` seconds
    """
    command = shlex.join(argv)
    logger.debug("ssh_command_start", command=command)

    proc = await asyncio.create_subprocess_exec(
        *argv,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError as e:
        proc.kill()
        await proc.wait()
        raise ShellError(f"Command timed out after {timeout}s: {command}") from e
    except asyncio.CancelledError:
        proc.kill()
        await proc.wait()
        raise

    if proc.returncode != 0:
        raise CommandError(command, proc.returncode, stderr.decode(errors="replace"))
    return stdout.decode(errors="replace")


class KeyedShell:
    """Runs commands on a host through ssh with a private key."""

    def __init__(
        self,
        host: str,
        key_path: str,
        user: str = Defaults.SSH_USER,
        port: int = Ports.SSH,
    ):
        self.host = host
        self.key_path = key_path
        self.user = user
        self.port = port

    def command_args(self, *args: str) -> list[str]:
        return ssh_command_args(self.host, self.key_path, *args, user=self.user, port=self.port)

    async def run(self, command: str, timeout: float = Timeouts.SSH_COMMAND) -> str:
        return await run_ssh_command(self.command_args(command), timeout=timeout)
