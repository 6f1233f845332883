"""Release store interface.

Every revision of every release is kept in a ReleaseStore, keyed by release
name and version. Backends must make a write visible to every read issued
after the write returns.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from src.app.core.models.release import Release

ReleasePredicate = Callable[[Release], bool]
ReleaseSortKey = Callable[[Release], Any]


class ReleaseStore(ABC):
    """Abstract interface for release history backends."""

    @abstractmethod
    async def get(self, name: str, version: int) -> Release:
        """Retrieve one revision of a release.

        Args:
            name: Release name
            version: Revision number

        Returns:
            The stored revision

        Raises:
            ReleaseNotFoundError: If the revision does not exist
        """
        pass

    @abstractmethod
    async def latest(self, name: str) -> Release:
        """Retrieve the highest-versioned revision of a release.

        Raises:
            ReleaseNotFoundError: If the release has no revisions
        """
        pass

    @abstractmethod
    async def history(self, name: str) -> list[Release]:
        """All revisions of a release, ascending by version.

        Returns an empty list for an unknown name.
        """
        pass

    @abstractmethod
    async def put(self, release: Release) -> None:
        """Append a new revision.

        Args:
            release: Revision to store

        Raises:
            ReleaseAlreadyExistsError: If the version is already stored
        """
        pass

    @abstractmethod
    async def update(self, release: Release) -> None:
        """Replace an existing revision.

        Raises:
            ReleaseNotFoundError: If the revision does not exist
        """
        pass

    @abstractmethod
    async def delete(self, name: str) -> list[Release]:
        """Purge every revision of a release.

        Returns:
            The revisions that were removed, ascending by version
        """
        pass

    @abstractmethod
    async def list(
        self,
        predicate: ReleasePredicate | None = None,
        sort_key: ReleaseSortKey | None = None,
    ) -> list[Release]:
        """List revisions across all releases.

        Args:
            predicate: Keep only revisions for which this returns True
            sort_key: Order the result by this key (name, version if omitted)

        Returns:
            Matching revisions
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the storage backend is available."""
        pass


def select(
    releases: list[Release],
    predicate: ReleasePredicate | None,
    sort_key: ReleaseSortKey | None,
) -> list[Release]:
    """Apply a list() predicate and ordering to a set of revisions."""
    matched = [r for r in releases if predicate is None or predicate(r)]
    if sort_key is None:
        return sorted(matched, key=lambda r: (r.name, r.version))
    return sorted(matched, key=sort_key)
