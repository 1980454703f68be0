class BootstrapError(Exception):
    """Base class for terminal bootstrap failures."""

    exit_code = 1


class ConfigError(BootstrapError):
    pass


class UnreachableError(BootstrapError):
    """The endpoint never answered a ping within the connect budget."""


class ConvergenceTimeoutError(BootstrapError):
    """The set never reached a quorate state with a primary."""

    exit_code = 2

    def __init__(self, message, last_status=None, attempts=0):
        super().__init__(message)
        self.last_status = last_status
        self.attempts = attempts


class NotInitializedError(Exception):
    """replSetGetStatus answered NotYetInitialized (code 94)."""
