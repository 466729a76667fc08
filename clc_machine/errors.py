"""Exception hierarchy for the driver.

Provider failures surface as ``RequestError`` (or a status-specific subclass).
Inconsistencies detected locally are ``DomainError``. Waits that run out of
time raise one of the timeout errors.
"""

from http import HTTPStatus

from .logging_config import get_logger

logger = get_logger(__name__)


class ClcMachineError(Exception):
    """Base exception for all driver errors."""


class ConfigError(ClcMachineError):
    """A required driver option is missing or invalid."""


class RequestError(ClcMachineError):
    """A call to the CenturyLink Cloud API failed.

    ``status_code`` is ``None`` when no HTTP response was received.
    ``errors`` maps a request field to the validation messages the provider
    attached to it.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        errors: dict[str, list[str]] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.errors = errors or {}

    @property
    def is_unauthorized(self) -> bool:
        return self.status_code == HTTPStatus.UNAUTHORIZED

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"API error ({self.status_code}): {self.message}"


class UnauthorizedError(RequestError):
    """The bearer token or login was rejected (401)."""


class NotFoundError(RequestError):
    """The requested entity does not exist (404)."""


class SubmissionError(RequestError):
    """The provider accepted the request but refused to queue the operation."""


class ServerNotFoundError(ClcMachineError):
    """No server exists with the stored identifier."""

    def __init__(self, server_id: str):
        super().__init__(f"unable to find a server with the ID '{server_id}'")
        self.server_id = server_id


class DomainError(ClcMachineError):
    """Locally detected inconsistency in provider data."""


class NoAddressError(DomainError):
    """The server has no public IP address."""


class OperationFailedError(ClcMachineError):
    """The provider reported a terminal failure for an operation."""

    def __init__(self, status_id: str, status: str):
        super().__init__(f"operation '{status_id}' finished with status '{status}'")
        self.status_id = status_id
        self.status = status


class OperationTimeoutError(ClcMachineError, TimeoutError):
    """An operation did not succeed within the allowed time or attempts."""

    def __init__(self, status_id: str, attempts: int, elapsed: float):
        super().__init__(
            f"operation '{status_id}' did not complete after {attempts} polls ({elapsed:.0f}s)"
        )
        self.status_id = status_id
        self.attempts = attempts
        self.elapsed = elapsed


class ReachabilityTimeoutError(ClcMachineError, TimeoutError):
    """A TCP port never became reachable within the probe window."""

    def __init__(self, host: str, port: int, timeout: float):
        super().__init__(f"{host}:{port} not reachable after {timeout:.0f}s")
        self.host = host
        self.port = port
        self.timeout = timeout


class ShellError(ClcMachineError):
    """Remote shell connection or transport failure."""


class CommandError(ShellError):
    """A remote command exited with a non-zero status."""

    def __init__(self, command: str, exit_code: int, stderr: str = ""):
        super().__init__(
            f"Command failed with exit code {exit_code}: {command}\nstderr: {stderr}"
        )
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr


class KeyGenerationError(ClcMachineError):
    """ssh-keygen failed."""


def log_request_error(err: Exception) -> Exception:
    """Log field-level validation messages attached to a provider error.

    Returns the error unchanged so callers can ``raise log_request_error(e)``.
    """
    if isinstance(err, RequestError):
        for field, messages in err.errors.items():
            for message in messages:
                logger.error("provider_validation_error", field=field, message=message)
    return err
