"""
Errors
======
Every failure a run can raise. Command and phase failures are NOT here:
those are exit statuses computed by the phase program itself.
"""
from typing import Optional


class BuildSpecRunnerError(Exception):
    """Base class for all runner errors."""


class SpecFormatError(BuildSpecRunnerError):
    """The buildspec file is unreadable, malformed or fails validation."""

    def __init__(self, reason: str, path: Optional[str] = None):
        self.reason = reason
        self.path = path
        super().__init__(reason)

    def __str__(self) -> str:
        if self.path:
            return f"{self.path}: {self.reason}"
        return self.reason


class CredentialError(BuildSpecRunnerError):
    """Session credentials could not be obtained."""


class ParameterResolutionError(BuildSpecRunnerError):
    """A parameter-store reference could not be resolved."""

    def __init__(self, message: str, parameter_name: str):
        self.parameter_name = parameter_name
        super().__init__(message)


class ExecutionTimeoutError(BuildSpecRunnerError):
    """The phase program exec call ran past its deadline."""

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Phase program exceeded timeout of {timeout_seconds}s")
