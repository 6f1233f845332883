"""In-memory release store."""

from __future__ import annotations

import json
import threading
from typing import Any

from typing_extensions import override

from src.app.core.errors import ReleaseAlreadyExistsError, ReleaseNotFoundError
from src.app.core.models.release import Release
from src.app.core.services.storage.base import (
    ReleasePredicate,
    ReleaseSortKey,
    ReleaseStore,
    select,
)


class InMemoryReleaseStore(ReleaseStore):
    """Release history kept in a process-local dictionary.

    Revisions are stored serialized so callers never share model instances
    with the store. A lock makes every operation atomic across threads and
    event loops.
    """

    def __init__(self) -> None:
        self._data: dict[str, dict[int, dict[str, Any]]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _dump(release: Release) -> dict[str, Any]:
        return json.loads(release.model_dump_json())

    @override
    async def get(self, name: str, version: int) -> Release:
        with self._lock:
            entry = self._data.get(name, {}).get(version)
        if entry is None:
            raise ReleaseNotFoundError(f"release {name} version {version} not found")
        return Release.model_validate(entry)

    @override
    async def latest(self, name: str) -> Release:
        with self._lock:
            revisions = self._data.get(name)
            entry = revisions[max(revisions)] if revisions else None
        if entry is None:
            raise ReleaseNotFoundError(f"release {name} not found")
        return Release.model_validate(entry)

    @override
    async def history(self, name: str) -> list[Release]:
        with self._lock:
            entries = [v for _, v in sorted(self._data.get(name, {}).items())]
        return [Release.model_validate(e) for e in entries]

    @override
    async def put(self, release: Release) -> None:
        with self._lock:
            revisions = self._data.setdefault(release.name, {})
            if release.version in revisions:
                raise ReleaseAlreadyExistsError(
                    f"release {release.name} version {release.version} already exists"
                )
            revisions[release.version] = self._dump(release)

    @override
    async def update(self, release: Release) -> None:
        with self._lock:
            revisions = self._data.get(release.name, {})
            if release.version not in revisions:
                raise ReleaseNotFoundError(
                    f"release {release.name} version {release.version} not found"
                )
            revisions[release.version] = self._dump(release)

    @override
    async def delete(self, name: str) -> list[Release]:
        with self._lock:
            revisions = self._data.pop(name, {})
        return [Release.model_validate(v) for _, v in sorted(revisions.items())]

    @override
    async def list(
        self,
        predicate: ReleasePredicate | None = None,
        sort_key: ReleaseSortKey | None = None,
    ) -> list[Release]:
        with self._lock:
            entries = [e for revisions in self._data.values() for e in revisions.values()]
        return select([Release.model_validate(e) for e in entries], predicate, sort_key)

    @override
    def is_available(self) -> bool:
        """In-memory storage is always available."""
        return True
