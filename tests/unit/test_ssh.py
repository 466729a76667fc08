import asyncio
import os
import stat
import subprocess
from unittest.mock import AsyncMock, MagicMock, patch

import paramiko
import pytest

from clc_machine.errors import (
    CommandError,
    KeyGenerationError,
    ReachabilityTimeoutError,
    ShellError,
)
from clc_machine.ssh import (
    KeyedShell,
    PasswordSession,
    generate_ssh_key,
    run_ssh_command,
    ssh_command_args,
    wait_for_tcp,
)


class TestSshCommandArgs:
    def test_builds_non_interactive_invocation(self):
        argv = ssh_command_args("203.0.113.10", "/store/id_rsa", "uptime")

        assert argv[0] == "ssh"
        assert "StrictHostKeyChecking=no" in argv
        assert "PasswordAuthentication=no" in argv
        assert argv[argv.index("-i") + 1] == "/store/id_rsa"
        assert argv[argv.index("-p") + 1] == "22"
        assert argv[-2:] == ["root@203.0.113.10", "uptime"]

    def test_without_command_opens_interactive_session(self):
        argv = ssh_command_args("203.0.113.10", "/store/id_rsa", user="admin", port=2222)

        assert argv[-1] == "admin@203.0.113.10"
        assert argv[argv.index("-p") + 1] == "2222"

    def test_keyed_shell_uses_its_host_and_key(self):
        shell = KeyedShell("203.0.113.10", "/store/id_rsa")

        assert shell.command_args("ls") == ssh_command_args(
            "203.0.113.10", "/store/id_rsa", "ls"
        )


def fake_process(returncode=0, stdout=b"", stderr=b""):
    proc = MagicMock()
    proc.returncode = returncode
    proc.communicate = AsyncMock(return_value=(stdout, stderr))
    proc.wait = AsyncMock(return_value=returncode)
    return proc


class TestRunSshCommand:
    @pytest.mark.asyncio
    async def test_returns_stdout(self):
        proc = fake_process(stdout=b"Docker version 1.6.0\n")
        with patch(
            "clc_machine.ssh.asyncio.create_subprocess_exec", AsyncMock(return_value=proc)
        ) as mock_exec:
            output = await run_ssh_command(["ssh", "root@host", "docker --version"])

        assert output == "Docker version 1.6.0\n"
        assert mock_exec.call_args.args == ("ssh", "root@host", "docker --version")

    @pytest.mark.asyncio
    async def test_non_zero_exit_raises_command_error(self):
        proc = fake_process(returncode=127, stderr=b"docker: command not found")
        with patch(
            "clc_machine.ssh.asyncio.create_subprocess_exec", AsyncMock(return_value=proc)
        ):
            with pytest.raises(CommandError) as exc_info:
                await run_ssh_command(["ssh", "root@host", "docker"])

        assert exc_info.value.exit_code == 127
        assert "command not found" in exc_info.value.stderr

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self):
        proc = fake_process()

        async def hang():
            await asyncio.sleep(10)

        proc.communicate = AsyncMock(side_effect=hang)
        with patch(
            "clc_machine.ssh.asyncio.create_subprocess_exec", AsyncMock(return_value=proc)
        ):
            with pytest.raises(ShellError, match="timed out"):
                await run_ssh_command(["ssh", "root@host", "sleep 60"], timeout=0.01)

        proc.kill.assert_called_once()
        proc.wait.assert_awaited_once()


class TestGenerateSshKey:
    def test_writes_private_key_with_owner_only_mode(self, tmp_path):
        key_path = tmp_path / "machine" / "id_rsa"

        def fake_keygen(argv, **kwargs):
            path = argv[argv.index("-f") + 1]
            with open(path, "w") as f:
                f.write("PRIVATE")
            with open(f"{path}.pub", "w") as f:
                f.write("ssh-rsa AAAA clc-machine\n")
            return subprocess.CompletedProcess(argv, 0)

        with patch("clc_machine.ssh.subprocess.run", side_effect=fake_keygen) as mock_run:
            public_key = generate_ssh_key(str(key_path))

        assert public_key == "ssh-rsa AAAA clc-machine"
        assert stat.S_IMODE(os.stat(key_path).st_mode) == 0o600
        argv = mock_run.call_args.args[0]
        assert argv[:5] == ["ssh-keygen", "-t", "rsa", "-b", "2048"]

    def test_replaces_existing_key(self, tmp_path):
        key_path = tmp_path / "id_rsa"
        key_path.write_text("OLD")
        (tmp_path / "id_rsa.pub").write_text("ssh-rsa OLD")

        def fake_keygen(argv, **kwargs):
            # ssh-keygen prompts when the key file already exists
            assert not key_path.exists()
            key_path.write_text("NEW")
            (tmp_path / "id_rsa.pub").write_text("ssh-rsa NEW")
            return subprocess.CompletedProcess(argv, 0)

        with patch("clc_machine.ssh.subprocess.run", side_effect=fake_keygen):
            assert generate_ssh_key(str(key_path)) == "ssh-rsa NEW"

    def test_keygen_failure_raises(self, tmp_path):
        error = subprocess.CalledProcessError(1, ["ssh-keygen"], stderr=b"bad option")
        with patch("clc_machine.ssh.subprocess.run", side_effect=error):
            with pytest.raises(KeyGenerationError):
                generate_ssh_key(str(tmp_path / "id_rsa"))

    def test_missing_binary_raises(self, tmp_path):
        with patch("clc_machine.ssh.subprocess.run", side_effect=FileNotFoundError("ssh-keygen")):
            with pytest.raises(KeyGenerationError):
                generate_ssh_key(str(tmp_path / "id_rsa"))


class TestWaitForTcp:
    @pytest.mark.asyncio
    async def test_returns_once_port_accepts(self):
        async def handle(reader, writer):
            writer.close()

        server = await asyncio.start_server(handle, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        try:
            await wait_for_tcp("127.0.0.1", port, timeout=5)
        finally:
            server.close()
            await server.wait_closed()

    @pytest.mark.asyncio
    async def test_retries_until_reachable(self):
        writer = MagicMock()
        writer.wait_closed = AsyncMock()
        fake_sleep = AsyncMock()
        attempts = [ConnectionRefusedError(), ConnectionRefusedError(), (MagicMock(), writer)]

        with patch(
            "clc_machine.ssh.asyncio.open_connection", AsyncMock(side_effect=attempts)
        ) as mock_open:
            await wait_for_tcp("203.0.113.10", 22, timeout=60, interval=1, sleep=fake_sleep)

        assert mock_open.await_count == 3
        assert fake_sleep.await_count == 2
        writer.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_unreachable_raises_after_deadline(self):
        with patch(
            "clc_machine.ssh.asyncio.open_connection",
            AsyncMock(side_effect=OSError("no route to host")),
        ):
            with pytest.raises(ReachabilityTimeoutError) as exc_info:
                await wait_for_tcp("203.0.113.10", 22, timeout=1, interval=5)

        assert isinstance(exc_info.value, TimeoutError)


@pytest.fixture
def mock_ssh_client():
    client = MagicMock()
    stdout = MagicMock()
    stdout.read.return_value = b"ok\n"
    stdout.channel.recv_exit_status.return_value = 0
    stderr = MagicMock()
    stderr.read.return_value = b""
    client.exec_command.return_value = (MagicMock(), stdout, stderr)
    with patch("clc_machine.ssh.paramiko.SSHClient", return_value=client):
        yield client


class TestPasswordSession:
    @pytest.mark.asyncio
    async def test_logs_in_with_password_and_runs_command(self, mock_ssh_client):
        async with PasswordSession("203.0.113.10", "one-time-pass") as session:
            output = await session.run("echo ok")

        assert output == "ok\n"
        connect_kwargs = mock_ssh_client.connect.call_args.kwargs
        assert connect_kwargs["hostname"] == "203.0.113.10"
        assert connect_kwargs["username"] == "root"
        assert connect_kwargs["password"] == "one-time-pass"
        assert connect_kwargs["look_for_keys"] is False
        mock_ssh_client.exec_command.assert_called_once()
        mock_ssh_client.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_non_zero_exit_raises_command_error(self, mock_ssh_client):
        _, stdout, stderr = mock_ssh_client.exec_command.return_value
        stdout.channel.recv_exit_status.return_value = 1
        stderr.read.return_value = b"permission denied"

        with pytest.raises(CommandError) as exc_info:
            async with PasswordSession("203.0.113.10", "one-time-pass") as session:
                await session.run("cat /root/secret")

        assert exc_info.value.exit_code == 1
        mock_ssh_client.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_rejected_password_raises_shell_error(self, mock_ssh_client):
        mock_ssh_client.connect.side_effect = paramiko.AuthenticationException("denied")

        with pytest.raises(ShellError, match="root@203.0.113.10"):
            async with PasswordSession("203.0.113.10", "wrong"):
                pass

        mock_ssh_client.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_run_before_connect_raises(self):
        session = PasswordSession("203.0.113.10", "one-time-pass")

        with pytest.raises(ShellError):
            await session.run("true")
