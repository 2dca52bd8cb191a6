"""Exception hierarchy raised by safedeploy.

Every error carries the pipeline stage it was raised in so an operator can
tell from a single line which step of a deployment failed.
"""

from __future__ import annotations

from typing import Optional


class SafeDeployError(Exception):
    """Base class for all errors raised by this package."""

    default_stage: Optional[str] = None

    def __init__(self, message: str, *, stage: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage or self.default_stage

    @property
    def kind(self) -> str:
        return type(self).__name__

    def describe(self) -> str:
        if self.stage:
            return f"{self.stage}: {self.message}"
        return self.message


class ConfigurationError(SafeDeployError):
    default_stage = "configuration"


class EncodingError(SafeDeployError):
    """Arguments could not be encoded into calldata."""

    default_stage = "encoding"


class SubmissionError(SafeDeployError):
    """The node rejected, or could not be reached for, a transaction or call."""

    default_stage = "submitting"


class ConfirmationTimeout(SafeDeployError, TimeoutError):
    """No receipt was observed within the configured window."""

    default_stage = "confirming"

    def __init__(self, message: str, *, stage: Optional[str] = None, tx_hash: Optional[str] = None) -> None:
        super().__init__(message, stage=stage)
        self.tx_hash = tx_hash


class EventNotFoundError(SafeDeployError):
    """The expected event was not emitted by the transaction."""

    default_stage = "extracting"


# Name used for a missing event in the error taxonomy.
NotFoundError = EventNotFoundError


class DecodingError(SafeDeployError):
    """Log data did not have the expected shape."""

    default_stage = "extracting"


class ProposalError(SafeDeployError):
    """The Safe transaction service refused a proposal."""

    default_stage = "proposing"

    def __init__(self, message: str, *, stage: Optional[str] = None, status_code: Optional[int] = None) -> None:
        super().__init__(message, stage=stage)
        self.status_code = status_code


__all__ = [
    "ConfigurationError",
    "ConfirmationTimeout",
    "DecodingError",
    "EncodingError",
    "EventNotFoundError",
    "NotFoundError",
    "ProposalError",
    "SafeDeployError",
    "SubmissionError",
]
