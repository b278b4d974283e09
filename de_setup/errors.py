class SetupError(Exception):
    """Base class for all provisioning errors."""


class SetupAbort(SetupError):
    """A fatal condition: the run stops and the process exits non-zero."""

    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code
