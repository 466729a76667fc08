"""Centralized constants for the CenturyLink Cloud driver.

Timeouts and intervals carry environment variable overrides; everything the
remote host sees (ports, paths, commands) is fixed.
"""

import os

DRIVER_NAME = "centurylinkcloud"


class Ports:
    """Ports exposed on the server's public address."""

    SSH = 22
    DOCKER = 2376


class Paths:
    """Local and remote file system paths."""

    DOCKER_CONFIG_DIR = "/etc/docker"
    DOCKER_BINARY = "/usr/bin/docker"
    SSH_KEY_NAME = "id_rsa"
    AUTHORIZED_KEYS = "~/.ssh/authorized_keys"


class Timeouts:
    """Timeout values in seconds."""

    # Provider operations
    OPERATION = int(os.getenv("CLC_OPERATION_TIMEOUT", "1800"))  # 30 minutes
    HTTP_REQUEST = float(os.getenv("CLC_HTTP_TIMEOUT", "30"))

    # SSH
    SSH_WAIT = int(os.getenv("CLC_SSH_WAIT_TIMEOUT", "300"))  # 5 minutes
    SSH_CONNECT = int(os.getenv("CLC_SSH_CONNECT_TIMEOUT", "30"))
    SSH_COMMAND = int(os.getenv("CLC_SSH_COMMAND_TIMEOUT", "900"))  # 15 minutes


class Polling:
    """Polling intervals in seconds."""

    STATUS_WAIT_SECONDS = int(os.getenv("CLC_STATUS_WAIT_SECONDS", "10"))
    TCP_PROBE_INTERVAL = float(os.getenv("CLC_TCP_PROBE_INTERVAL", "3"))


class Defaults:
    """Defaults for server creation options."""

    API_URL = "https://api.ctl.io/v2"
    SOURCE_SERVER_ID = "UBUNTU-14-64-TEMPLATE"
    CPU = 1
    MEMORY_GB = 2
    SERVER_TYPE = "standard"
    SSH_USER = "root"


class Commands:
    """Remote shell command templates."""

    SET_HOSTNAME = (
        'echo "127.0.0.1 {name}" | sudo tee -a /etc/hosts && '
        "sudo hostname {name} && "
        'echo "{name}" | sudo tee /etc/hostname'
    )
    INSTALL_DOCKER = (
        f"if [ ! -e {Paths.DOCKER_BINARY} ]; then curl -sL https://get.docker.com | sh -; fi"
    )
    APPEND_AUTHORIZED_KEY = (
        f'mkdir -p ~/.ssh && chmod 700 ~/.ssh && echo "{{key}}" >> {Paths.AUTHORIZED_KEYS}'
    )
    START_DOCKER = "sudo service docker start"
    STOP_DOCKER = "sudo service docker stop"
    UPGRADE_DOCKER = "sudo apt-get update && sudo apt-get install --upgrade -y lxc-docker"
