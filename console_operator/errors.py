"""
Errors raised while adding, removing and bootstrapping a console.

Every error is returned to the task consumer, which logs it and decides
whether the originating task is worth retrying.
"""


class ConsoleOperatorError(RuntimeError):
    """Base exception for console operator errors."""
    pass


class ConfigError(ConsoleOperatorError):
    """The cluster record is missing or could not be updated (e.g. write conflict)."""
    pass


class ProvisioningError(ConsoleOperatorError):
    """A console resource could not be rendered or created."""
    pass


class TemplateError(ProvisioningError):
    """Substitution into a resource template or decoding of the result failed."""
    pass


class TeardownWarning(UserWarning):
    """A console resource could not be deleted. Logged, never raised out of delete."""

    def __init__(self, kind: str, name: str, reason: str):
        super().__init__(f"failed to delete {kind} {name}: {reason}")
        self.kind = kind
        self.name = name
        self.reason = reason


class ReadinessTimeoutError(ConsoleOperatorError):
    """The Deployment did not report all replicas ready before the deadline."""

    def __init__(self, name: str, timeout: float):
        super().__init__(f"Timed out waiting for deployment to become ready: [{name}]")
        self.name = name
        self.timeout = timeout


class ReadinessCancelledError(ConsoleOperatorError):
    """The readiness wait was cancelled before the deadline."""
    pass


class BootstrapError(ConsoleOperatorError):
    """Base exception for credential bootstrap errors."""
    pass


class ConsoleUnavailableError(BootstrapError):
    """The cluster claims a console but no running console pod was found."""
    pass


class LockdownFailure(BootstrapError):
    """The setup account could not be disabled. The console must not be trusted."""
    pass


class CredentialSyncFailure(BootstrapError):
    """A login or saved connection could not be written into the console."""
    pass


class ConsoleQueryError(ConsoleOperatorError):
    """A statement failed inside the console's data store."""
    pass
