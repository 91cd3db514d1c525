"""Error kinds raised by the pipeline and its stage executors."""
from __future__ import annotations


class PipelineError(Exception):
    """Base class for declared pipeline failures.

    ``kind`` is the name recorded on a StageResult when the error halts a Run.
    """

    kind = "PipelineError"

    def __init__(self, message: str, *, exit_code: int | None = None, log: list[str] | None = None):
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code
        self.log = log if log is not None else []


class InvalidEventError(PipelineError):
    """Trigger event does not match the pipeline's trigger filter."""
    kind = "InvalidEventError"


class CheckoutError(PipelineError):
    kind = "CheckoutError"


class InstallError(PipelineError):
    kind = "InstallError"


class BuildError(PipelineError):
    kind = "BuildError"


class AuthError(PipelineError):
    kind = "AuthError"


class PublishError(PipelineError):
    kind = "PublishError"


class StageTimeoutError(PipelineError, TimeoutError):
    kind = "TimeoutError"


class UnexpectedStageFault(PipelineError):
    """Wraps an exception an executor did not declare."""
    kind = "UnexpectedStageFault"


class NotFoundError(PipelineError, KeyError):
    """A secret could not be resolved."""
    kind = "NotFoundError"

    def __str__(self) -> str:
        return self.message


class RunNotFoundError(LookupError):
    pass


class InvalidTransitionError(RuntimeError):
    """Attempted to move a Run out of a terminal state or along an unknown edge."""


class PipelineDefinitionError(ValueError):
    """Pipeline definition failed validation at load time."""
