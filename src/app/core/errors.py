"""Error taxonomy of the release service.

Every error carries a human readable ``message``, optional ``details`` and,
when the failure happened after a revision was created, the ``release`` that
was recorded with FAILED status so callers can inspect the attempt.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.app.core.models import Release


class ReleaseError(Exception):
    """Base class for all release lifecycle failures."""

    code: str = "release_error"

    def __init__(
        self,
        message: str,
        details: str | None = None,
        release: Release | None = None,
    ):
        self.message = message
        self.details = details
        self.release = release
        super().__init__(message)


class ReleaseNotFoundError(ReleaseError):
    """Unknown release name or version."""

    code = "not_found"


class ReleaseAlreadyExistsError(ReleaseError):
    """Name collision on install, or a revision that already exists in the store."""

    code = "already_exists"


class ReleaseBusyError(ReleaseError):
    """Another mutating operation holds the lease for this release."""

    code = "busy"


class InvalidStateError(ReleaseError):
    """The requested operation is not a legal transition from the current status."""

    code = "invalid_state"


class InvalidArgumentError(ReleaseError):
    """The request itself is malformed (bad name, bad filter, ...)."""

    code = "invalid_argument"


class OperationTimeoutError(ReleaseError):
    """The operation exceeded the caller supplied timeout."""

    code = "timeout"


class HookFailureError(ReleaseError):
    """A lifecycle hook failed."""

    code = "hook_failure"

    def __init__(
        self,
        message: str,
        details: str | None = None,
        release: Release | None = None,
        hook: str | None = None,
    ):
        super().__init__(message, details, release)
        self.hook = hook


class ApplyFailureError(ReleaseError):
    """Applying the manifest diff to the cluster failed."""

    code = "apply_failure"


class PartialFailureError(ApplyFailureError):
    """Some resources were applied before the apply step failed."""

    code = "partial_failure"

    def __init__(
        self,
        message: str,
        details: str | None = None,
        release: Release | None = None,
        applied: list[str] | None = None,
        failed: list[str] | None = None,
    ):
        super().__init__(message, details, release)
        self.applied = applied or []
        self.failed = failed or []
