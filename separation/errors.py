"""Exceptions raised by the separation pipeline.

Every error carries the name of the stage that failed so a caller can
report where an invocation broke. Nothing in the pipeline retries; an
error always ends the current invocation.
"""


class SeparationError(Exception):
    """Base class for all pipeline failures."""

    def __init__(self, message: str, stage: str | None = None):
        super().__init__(message)
        self.stage = stage

    def __str__(self) -> str:
        message = super().__str__()
        if self.stage:
            return f"[{self.stage}] {message}"
        return message


class DecodeError(SeparationError):
    """Source bytes could not be interpreted as an image."""


class ResourceUnavailable(SeparationError):
    """The imaging backend could not allocate a working surface."""


class DimensionMismatch(SeparationError):
    """A mask or density buffer does not match the source geometry."""


class InvalidParameter(SeparationError, ValueError):
    """A setting is outside its documented range or malformed."""
