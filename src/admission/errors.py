"""
Admission Errors Module

Error kinds a pod admission can be denied with, and the error raised inside the
decision engine before being turned into a denied outcome.
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Denial kinds, valued by the HTTP-style code reported in the admission status."""

    BAD_REQUEST = 400
    FORBIDDEN = 403
    NOT_FOUND = 404
    EXPECTATION_FAILED = 417
    INTERNAL_ERROR = 500

    @property
    def code(self) -> int:
        return self.value


class PodAdmissionError(Exception):
    """An admission failure of a given kind, optionally tied to a pod."""

    def __init__(self, kind: ErrorKind, message: str, pod: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.pod = pod

    def __str__(self) -> str:
        return self.message


class ConfigurationError(Exception):
    """Raised when the webhook cannot be configured."""
    pass
