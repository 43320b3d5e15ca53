"""Typed errors raised by executors, adapters, and delivery workers."""


class PipelineError(Exception):
    """Base class for all pipeline errors.

    `retryable` is a property of the error class; the orchestrator and the task
    runner read it to decide whether a failure may be attempted again.
    """

    retryable: bool = False
    default_code: str = "UNKNOWN"

    def __init__(self, message: str, code: str | None = None) -> None:
        self.message = message
        self.code = code or self.default_code
        super().__init__(message)


class ConfigurationError(PipelineError):
    """Missing or invalid snapshot fields, unsupported type or task."""

    default_code = "INVALID_INPUT"


class ValidationError(PipelineError):
    """Size ceiling exceeded or malformed reference."""

    default_code = "INVALID_INPUT"


class TransientError(PipelineError):
    """Timeouts, 5xx responses, and rate limits."""

    retryable = True
    default_code = "PROCESSING_FAILED"


class GenerationTimeoutError(TransientError):
    """The generation call did not return within its deadline."""

    default_code = "TIMEOUT"


class AuthError(PipelineError):
    """Authentication failure against an external provider."""

    default_code = "AUTH_FAILED"


class RevokedGrantError(AuthError):
    """The stored grant was revoked; manual reconnection is required."""

    default_code = "NEEDS_REAUTH"


class InsufficientSpaceError(ValidationError):
    """The destination account is out of storage space."""

    default_code = "INSUFFICIENT_SPACE"


def is_retryable(error: BaseException) -> bool:
    """Return whether an error may be retried.

    Adapters translate provider failures into `PipelineError` subclasses; of
    the remaining exceptions only builtin timeout and connection errors count
    as transient.
    """
    if isinstance(error, PipelineError):
        return error.retryable
    return isinstance(error, TimeoutError | ConnectionError)
