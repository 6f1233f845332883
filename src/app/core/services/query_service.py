"""Read-only queries over the release history.

None of these operations take a lease; they read whatever the store holds
when the call is made.
"""

from __future__ import annotations

import re
from datetime import datetime

from src.app.api.http.schemas.releases import (
    ListReleasesRequest,
    ListReleasesResponse,
    SortBy,
    SortOrder,
)
from src.app.core.errors import InvalidArgumentError, ReleaseNotFoundError
from src.app.core.models import Release, Status
from src.app.core.services.storage import ReleaseStore

DEFAULT_PAGE_SIZE = 256

_EPOCH = datetime.min


def _last_released(release: Release) -> datetime:
    info = release.info
    moment = info.last_deployed or info.first_deployed
    return moment.replace(tzinfo=None) if moment else _EPOCH


class ReleaseQueryService:
    """Status, content, history and listing of releases."""

    def __init__(self, store: ReleaseStore, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        self.store = store
        self.page_size = page_size

    async def get(self, name: str, version: int = 0) -> Release:
        """One revision of a release; version 0 means the latest."""
        if version == 0:
            return await self.store.latest(name)
        return await self.store.get(name, version)

    async def history(self, name: str, max_revisions: int = 0) -> list[Release]:
        """Revisions of a release, newest first.

        Args:
            name: Release name
            max_revisions: Return at most this many revisions (0 for all)

        Raises:
            ReleaseNotFoundError: If the release has no history
        """
        revisions = await self.store.history(name)
        if not revisions:
            raise ReleaseNotFoundError(f"release {name} not found")
        revisions.reverse()
        if max_revisions > 0:
            revisions = revisions[:max_revisions]
        return revisions

    async def _latest_revisions(self) -> list[Release]:
        latest: dict[str, Release] = {}
        for release in await self.store.list():
            current = latest.get(release.name)
            if current is None or release.version > current.version:
                latest[release.name] = release
        return list(latest.values())

    async def list_releases(self, request: ListReleasesRequest) -> ListReleasesResponse:
        """One page of the latest revision of every matching release.

        Raises:
            InvalidArgumentError: If the filter is not a valid regular expression
            ReleaseNotFoundError: If a non-name sort is given an offset that is
                not in the result set
        """
        try:
            pattern = re.compile(request.filter) if request.filter else None
        except re.error as e:
            raise InvalidArgumentError(f"invalid filter {request.filter!r}", str(e)) from e

        statuses = set(request.status_codes) or {Status.DEPLOYED}
        matches = [
            r
            for r in await self._latest_revisions()
            if r.status in statuses
            and (not request.namespace or r.namespace == request.namespace)
            and (pattern is None or pattern.search(r.name))
        ]

        descending = request.sort_order == SortOrder.DESC
        if request.sort_by == SortBy.LAST_RELEASED:
            matches.sort(key=lambda r: r.name)
            matches.sort(key=_last_released, reverse=descending)
        elif request.sort_by == SortBy.CHART_NAME:
            matches.sort(key=lambda r: r.name)
            matches.sort(key=lambda r: r.chart.metadata.name, reverse=descending)
        else:
            matches.sort(key=lambda r: r.name, reverse=descending)

        start = 0
        if request.offset:
            if request.sort_by == SortBy.NAME:
                start = next(
                    (
                        i
                        for i, r in enumerate(matches)
                        if (r.name <= request.offset if descending else r.name >= request.offset)
                    ),
                    len(matches),
                )
            else:
                start = next(
                    (i for i, r in enumerate(matches) if r.name == request.offset), -1
                )
                if start < 0:
                    raise ReleaseNotFoundError(f"offset release {request.offset} not found")

        limit = request.limit if request.limit > 0 else self.page_size
        page = matches[start : start + limit]
        following = start + limit
        next_offset = matches[following].name if following < len(matches) else ""

        return ListReleasesResponse(
            count=len(page),
            next=next_offset,
            total=len(matches),
            releases=page,
        )
