"""Release status transitions.

All legal transitions are listed in the tables below; nothing else in the
code base decides whether an operation may proceed from a given status.

    begin(latest, op)        -> Transition(new revision status, previous revision status)
    complete(pending, ok)    -> terminal status
    begin_test / complete_test for the side-channel test status
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from src.app.core.errors import InvalidStateError
from src.app.core.models import Status


class Operation(str, Enum):
    """Mutating operations on a release."""

    INSTALL = "install"
    UPGRADE = "upgrade"
    ROLLBACK = "rollback"
    UNINSTALL = "uninstall"


@dataclass(frozen=True)
class Transition:
    """Result of admitting an operation against the latest revision.

    Attributes:
        status: Status of the revision the operation works on (a new revision
            for install/upgrade/rollback, the latest one for uninstall)
        previous: New status of the latest revision, or None to leave it as is
    """

    status: Status
    previous: Status | None = None


# Keyed by (status of the latest revision, operation); None means "no history".
_BEGIN: dict[tuple[Status | None, Operation], Transition] = {
    (None, Operation.INSTALL): Transition(Status.PENDING_INSTALL),
    # Reusing a name (reuse_name) after uninstall or a failed install
    (Status.UNINSTALLED, Operation.INSTALL): Transition(Status.PENDING_INSTALL),
    (Status.FAILED, Operation.INSTALL): Transition(Status.PENDING_INSTALL),
    (Status.DEPLOYED, Operation.UPGRADE): Transition(
        Status.PENDING_UPGRADE, Status.SUPERSEDED
    ),
    (Status.FAILED, Operation.UPGRADE): Transition(Status.PENDING_UPGRADE),
    (Status.DEPLOYED, Operation.ROLLBACK): Transition(
        Status.PENDING_ROLLBACK, Status.SUPERSEDED
    ),
    (Status.FAILED, Operation.ROLLBACK): Transition(Status.PENDING_ROLLBACK),
    (Status.UNINSTALLED, Operation.ROLLBACK): Transition(Status.PENDING_ROLLBACK),
    (Status.DEPLOYED, Operation.UNINSTALL): Transition(Status.UNINSTALLING),
    (Status.FAILED, Operation.UNINSTALL): Transition(Status.UNINSTALLING),
}

_COMPLETE: dict[tuple[Status, bool], Status] = {
    (Status.PENDING_INSTALL, True): Status.DEPLOYED,
    (Status.PENDING_INSTALL, False): Status.FAILED,
    (Status.PENDING_UPGRADE, True): Status.DEPLOYED,
    (Status.PENDING_UPGRADE, False): Status.FAILED,
    (Status.PENDING_ROLLBACK, True): Status.DEPLOYED,
    (Status.PENDING_ROLLBACK, False): Status.FAILED,
    (Status.UNINSTALLING, True): Status.UNINSTALLED,
    (Status.UNINSTALLING, False): Status.FAILED,
}

# Statuses a revision may have to be picked as a rollback target
ROLLBACK_TARGETS: frozenset[Status] = frozenset(
    {Status.SUPERSEDED, Status.FAILED, Status.UNINSTALLED}
)

# Release statuses that can be tested; the release status itself never changes
_TESTABLE: frozenset[Status] = frozenset({Status.DEPLOYED})

_COMPLETE_TEST: dict[bool, Status] = {
    True: Status.TESTED,
    False: Status.FAILED,
}


def begin(latest: Status | None, operation: Operation) -> Transition:
    """Admit ``operation`` against a release whose latest revision has ``latest``.

    Raises:
        InvalidStateError: If the transition is not in the table
    """
    try:
        return _BEGIN[(latest, operation)]
    except KeyError:
        current = latest.value if latest else "no history"
        raise InvalidStateError(
            f"cannot {operation.value} a release in state {current}"
        ) from None


def complete(pending: Status, succeeded: bool) -> Status:
    """Terminal status of a revision whose operation finished."""
    try:
        return _COMPLETE[(pending, succeeded)]
    except KeyError:
        raise InvalidStateError(
            f"revision in state {pending.value} has no pending operation"
        ) from None


def check_rollback_target(target: Status, target_version: int, live_version: int) -> None:
    """Validate a rollback target revision.

    Raises:
        InvalidStateError: If the target is the current version or not a
            terminal revision
    """
    if target_version == live_version:
        raise InvalidStateError(
            f"cannot roll back to version {target_version}: it is the current version"
        )
    if target not in ROLLBACK_TARGETS:
        raise InvalidStateError(
            f"cannot roll back to version {target_version} in state {target.value}"
        )


def begin_test(release_status: Status) -> Status:
    """Side-channel status of a release whose tests are starting."""
    if release_status not in _TESTABLE:
        raise InvalidStateError(
            f"cannot test a release in state {release_status.value}"
        )
    return Status.PENDING_TEST


def complete_test(succeeded: bool) -> Status:
    return _COMPLETE_TEST[succeeded]
