"""Exceptions raised by tricolor.

Library code raises these; only the command-line entry points in
:mod:`tricolor.cli` catch them and turn them into a diagnostic line and a
failure exit status.  Nothing here is retried: every failure is either a
one-time setup/teardown step or a blocking primitive whose correctness
depends on the failure being visible.
"""

from __future__ import annotations


class TricolorError(Exception):
    """Base class for fatal tricolor errors.

    Attributes:
        operation: Short name of the operation that failed
            (e.g. ``"open semaphore /tricolor_free"``), or ``None``.
    """

    def __init__(self, message: str, *, operation: str | None = None) -> None:
        super().__init__(message)
        self.operation = operation


class UsageError(TricolorError):
    """Bad command-line arguments or configuration.

    Always raised before any shared resource is touched.
    """


class ResourceSetupError(TricolorError):
    """Creating or attaching shared memory or a semaphore failed."""


class ResourceReleaseError(TricolorError):
    """Releasing, closing, unmapping or unlinking a shared resource failed."""


class SharedStateError(TricolorError):
    """The shared record holds a value no participant could have written."""


def format_fatal(role: str, error: BaseException) -> str:
    """Human-readable diagnostic line for a fatal error in *role*."""
    return f"[{role}]: {error}"
