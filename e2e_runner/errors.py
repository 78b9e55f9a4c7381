"""Domain errors for the e2e runner."""


class E2ERunnerError(RuntimeError):
    """Base class for every error raised by the runner."""


class ConfigError(E2ERunnerError):
    """Raised when the environment does not describe a usable configuration."""


class ProvisioningError(E2ERunnerError):
    """Raised when the realm or the test API keys cannot be created."""


class NotFoundError(E2ERunnerError):
    """Raised when a database lookup finds no record."""


class ValidationError(E2ERunnerError):
    """Raised when a record fails validation before it is saved."""

    def __init__(self, message, errors=None):
        super().__init__(message)
        self.errors = list(errors or [])


class EndToEndError(E2ERunnerError):
    """Raised when a step of the remote issue/verify workflow fails."""

    def __init__(self, step, message):
        super().__init__(f"{step}: {message}")
        self.step = step


class ConflictError(E2ERunnerError):
    """Raised when a save violates a uniqueness constraint."""
