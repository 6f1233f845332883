"""Tests for read-only release queries."""

from datetime import UTC, datetime, timedelta

import pytest

from src.app.api.http.schemas.releases import ListReleasesRequest, SortBy, SortOrder
from src.app.core.errors import InvalidArgumentError, ReleaseNotFoundError
from src.app.core.models import Status
from src.app.core.services.query_service import ReleaseQueryService
from src.app.core.services.storage import InMemoryReleaseStore
from tests.fixtures import make_chart, stored_release

_BASE = datetime(2024, 1, 1, tzinfo=UTC)


async def _populate(store: InMemoryReleaseStore) -> None:
    """Five deployed releases, one failed, one with superseded history."""
    releases = [
        ("alpha", 1, Status.DEPLOYED, "zeta-chart", 3),
        ("bravo", 1, Status.DEPLOYED, "alpha-chart", 1),
        ("charlie", 1, Status.DEPLOYED, "mid-chart", 5),
        ("delta", 1, Status.FAILED, "mid-chart", 2),
        ("echo", 1, Status.SUPERSEDED, "echo", 0),
        ("echo", 2, Status.DEPLOYED, "echo", 4),
        ("foxtrot", 1, Status.DEPLOYED, "alpha-chart", 6),
    ]
    for name, version, status, chart_name, hours in releases:
        release = stored_release(
            name,
            version,
            status,
            chart=make_chart(chart_name),
            last_deployed=_BASE + timedelta(hours=hours),
        )
        if name == "foxtrot":
            release.namespace = "team-b"
        await store.put(release)


@pytest.fixture
async def queries(store: InMemoryReleaseStore) -> ReleaseQueryService:
    await _populate(store)
    return ReleaseQueryService(store, page_size=256)


class TestGetAndHistory:
    async def test_get_latest_by_default(self, queries):
        release = await queries.get("echo")

        assert release.version == 2

    async def test_get_specific_version(self, queries):
        release = await queries.get("echo", 1)

        assert release.status == Status.SUPERSEDED

    async def test_get_unknown_version_raises(self, queries):
        with pytest.raises(ReleaseNotFoundError):
            await queries.get("echo", 9)

    async def test_history_newest_first(self, queries):
        history = await queries.history("echo")

        assert [r.version for r in history] == [2, 1]

    async def test_history_max(self, queries):
        history = await queries.history("echo", max_revisions=1)

        assert [r.version for r in history] == [2]

    async def test_history_of_unknown_release_raises(self, queries):
        with pytest.raises(ReleaseNotFoundError):
            await queries.history("nope")


class TestListReleases:
    """Tests for ReleaseQueryService.list_releases."""

    async def test_defaults_to_deployed_sorted_by_name(self, queries):
        page = await queries.list_releases(ListReleasesRequest())

        assert [r.name for r in page.releases] == [
            "alpha",
            "bravo",
            "charlie",
            "echo",
            "foxtrot",
        ]
        assert page.count == page.total == 5
        assert page.next == ""

    async def test_only_latest_revision_is_listed(self, queries):
        page = await queries.list_releases(
            ListReleasesRequest(status_codes=[Status.SUPERSEDED])
        )

        # echo v1 is superseded but v2 is the latest revision
        assert page.releases == []

    async def test_status_filter(self, queries):
        page = await queries.list_releases(
            ListReleasesRequest(status_codes=[Status.FAILED, Status.DEPLOYED])
        )

        assert "delta" in [r.name for r in page.releases]
        assert page.total == 6

    async def test_name_filter_regex(self, queries):
        page = await queries.list_releases(ListReleasesRequest(filter="^(a|e)"))

        assert [r.name for r in page.releases] == ["alpha", "echo"]

    async def test_invalid_filter_raises(self, queries):
        with pytest.raises(InvalidArgumentError, match="invalid filter"):
            await queries.list_releases(ListReleasesRequest(filter="(unclosed"))

    async def test_namespace_filter(self, queries):
        page = await queries.list_releases(ListReleasesRequest(namespace="team-b"))

        assert [r.name for r in page.releases] == ["foxtrot"]

    async def test_descending_name_sort(self, queries):
        page = await queries.list_releases(ListReleasesRequest(sort_order=SortOrder.DESC))

        assert [r.name for r in page.releases][:2] == ["foxtrot", "echo"]

    async def test_sort_by_last_released(self, queries):
        page = await queries.list_releases(ListReleasesRequest(sort_by=SortBy.LAST_RELEASED))

        assert [r.name for r in page.releases] == [
            "bravo",
            "alpha",
            "echo",
            "charlie",
            "foxtrot",
        ]

    async def test_sort_by_chart_name_breaks_ties_by_name(self, queries):
        page = await queries.list_releases(ListReleasesRequest(sort_by=SortBy.CHART_NAME))

        assert [r.name for r in page.releases] == [
            "bravo",
            "foxtrot",
            "echo",
            "charlie",
            "alpha",
        ]

    async def test_pages_chain_through_next(self, queries):
        """Following next with limit=2 visits every match exactly once."""
        seen = []
        request = ListReleasesRequest(limit=2)
        while True:
            page = await queries.list_releases(request)
            assert page.count <= 2
            seen.extend(r.name for r in page.releases)
            if not page.next:
                break
            request = request.model_copy(update={"offset": page.next})

        assert seen == ["alpha", "bravo", "charlie", "echo", "foxtrot"]

    async def test_name_offset_need_not_exist(self, queries):
        page = await queries.list_releases(ListReleasesRequest(offset="c"))

        assert [r.name for r in page.releases][0] == "charlie"

    async def test_offset_past_end_is_empty(self, queries):
        page = await queries.list_releases(ListReleasesRequest(offset="zulu"))

        assert page.releases == []
        assert page.next == ""

    async def test_non_name_sort_offset_must_match(self, queries):
        with pytest.raises(ReleaseNotFoundError):
            await queries.list_releases(
                ListReleasesRequest(sort_by=SortBy.CHART_NAME, offset="nope")
            )

    async def test_non_name_sort_paging(self, queries):
        first = await queries.list_releases(
            ListReleasesRequest(sort_by=SortBy.LAST_RELEASED, limit=2)
        )
        second = await queries.list_releases(
            ListReleasesRequest(sort_by=SortBy.LAST_RELEASED, limit=2, offset=first.next)
        )

        assert [r.name for r in first.releases] == ["bravo", "alpha"]
        assert [r.name for r in second.releases] == ["echo", "charlie"]

    async def test_configured_page_size(self, store):
        await _populate(store)
        queries = ReleaseQueryService(store, page_size=3)

        page = await queries.list_releases(ListReleasesRequest(limit=0))

        assert page.count == 3
        assert page.next == "echo"
