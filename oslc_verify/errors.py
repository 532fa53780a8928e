"""
Exception taxonomy for the verification client.

Transport, parsing and filesystem failures are raised at the operation
boundary and caught by the workflow, which records them and decides whether
the stage advances.
"""

from __future__ import annotations

from pathlib import Path


class VerifyClientError(Exception):
    """Base exception for all client errors."""

    pass


class TransportError(VerifyClientError):
    """Network-level failure talking to the verification service."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation


class MalformedResponse(VerifyClientError):
    """The service reply lacked the delimiter or marker we extract from."""

    def __init__(self, operation: str, text: str, expected: str) -> None:
        super().__init__(f"{operation} reply has no {expected!r}: {text[:200]!r}")
        self.operation = operation
        self.text = text
        self.expected = expected


class ServiceError(VerifyClientError):
    """The service answered with an explicit "Error: ..." reply."""

    def __init__(self, operation: str, text: str) -> None:
        super().__init__(f"{operation} rejected by service: {text.strip()[:200]}")
        self.operation = operation
        self.text = text


class FilesystemError(VerifyClientError):
    """A local scratch path could not be read or written."""

    def __init__(self, path: str | Path, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = Path(path)


class WorkflowError(VerifyClientError):
    """A workflow stage was triggered out of order."""

    pass


class PlanFormatError(ValueError):
    """Plan markup could not be parsed back into a VerificationPlan."""

    pass
