"""Release service CLI commands.

This module provides the commands to run the HTTP service and to inspect the
releases recorded in the configured store.

Commands:
    serve   - Run the HTTP API with uvicorn
    list    - List releases
    history - Show the revision history of a release
    status  - Show the status of a release revision
    version - Show the service version
"""

from __future__ import annotations

from typing import Annotated

import typer
from rich.table import Table

from src.app.api.http.schemas.releases import (
    GetHistoryRequest,
    GetReleaseStatusRequest,
    ListReleasesRequest,
    ListReleasesResponse,
    SortBy,
    SortOrder,
)
from src.app.core.models import Release, Status
from src.app.core.services.release_service import ReleaseService
from src.cli.context import get_cli_context
from src.cli.shared.console import console, format_status, with_error_handling
from src.infra.k8s import run_sync

releases_app = typer.Typer(
    help="📦 Release Service CLI",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _format_time(release: Release) -> str:
    deployed = release.info.last_deployed
    return deployed.strftime("%Y-%m-%d %H:%M:%S") if deployed else ""


def _chart_label(release: Release) -> str:
    metadata = release.chart.metadata
    return f"{metadata.name}-{metadata.version}" if metadata.version else metadata.name


async def _first_page(
    service: ReleaseService, request: ListReleasesRequest
) -> ListReleasesResponse | None:
    async for page in service.list_releases(request):
        return page
    return None


# =============================================================================
# Commands
# =============================================================================


@releases_app.command()
def serve(
    host: Annotated[
        str | None,
        typer.Option("--host", help="Bind address (default: app.host from config)"),
    ] = None,
    port: Annotated[
        int | None,
        typer.Option("--port", "-p", help="Port (default: app.port from config)"),
    ] = None,
    reload: Annotated[
        bool,
        typer.Option("--reload", help="Reload on source changes"),
    ] = False,
) -> None:
    """🚀 Run the release service HTTP API.

    Examples:
        release-service serve
        release-service serve --port 9000 --reload
    """
    import uvicorn

    from src.app.runtime.context import get_config

    config = get_config()
    uvicorn.run(
        "src.app.api.http.app:app",
        host=host or config.app.host,
        port=port or config.app.port,
        reload=reload,
        log_level=config.logging.level.lower(),
    )


@releases_app.command("list")
@with_error_handling
def list_releases(
    filter_: Annotated[
        str,
        typer.Option("--filter", "-f", help="Regular expression matched against names"),
    ] = "",
    all_: Annotated[
        bool,
        typer.Option("--all", "-a", help="Show releases in every status"),
    ] = False,
    namespace: Annotated[
        str,
        typer.Option("--namespace", "-n", help="Only releases in this namespace"),
    ] = "",
    sort_by: Annotated[
        SortBy,
        typer.Option("--sort-by", help="Sort key"),
    ] = SortBy.NAME,
    reverse: Annotated[
        bool,
        typer.Option("--reverse", "-r", help="Sort in descending order"),
    ] = False,
    limit: Annotated[
        int,
        typer.Option("--limit", "-l", help="Page size (default: release.list_page_size)"),
    ] = 0,
    offset: Annotated[
        str,
        typer.Option("--offset", "-o", help="Name of the release to start at"),
    ] = "",
) -> None:
    """List releases.

    Only DEPLOYED releases are shown unless --all is given.

    Examples:
        release-service list
        release-service list --all --filter '^web'
    """
    context = get_cli_context()
    request = ListReleasesRequest(
        limit=limit,
        offset=offset,
        sort_by=sort_by,
        sort_order=SortOrder.DESC if reverse else SortOrder.ASC,
        filter=filter_,
        status_codes=list(Status) if all_ else [],
        namespace=namespace,
    )
    page = run_sync(_first_page(context.release_service, request))

    if page is None or not page.releases:
        console.print("[yellow]No releases found[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Name")
    table.add_column("Revision", justify="right")
    table.add_column("Updated")
    table.add_column("Status")
    table.add_column("Chart")
    table.add_column("Namespace")

    for release in page.releases:
        table.add_row(
            release.name,
            str(release.version),
            _format_time(release),
            format_status(release.status),
            _chart_label(release),
            release.namespace,
        )

    console.print(table)
    console.print(f"\n[dim]{page.count} of {page.total} releases[/dim]")
    if page.next:
        console.print(f"[dim]Next page: --offset {page.next}[/dim]")


@releases_app.command()
@with_error_handling
def history(
    name: Annotated[str, typer.Argument(help="Release name")],
    max_revisions: Annotated[
        int,
        typer.Option("--max", "-m", help="Maximum number of revisions to show (0 = all)"),
    ] = 0,
) -> None:
    """Show the revision history of a release.

    Examples:
        release-service history web
        release-service history web --max 5
    """
    context = get_cli_context()
    response = run_sync(
        context.release_service.get_history(
            GetHistoryRequest(name=name, max=max_revisions)
        )
    )

    table = Table(show_header=True, header_style="bold")
    table.add_column("Revision", justify="right")
    table.add_column("Updated")
    table.add_column("Status")
    table.add_column("Chart")
    table.add_column("Description")

    for release in response.releases:
        table.add_row(
            str(release.version),
            _format_time(release),
            format_status(release.status),
            _chart_label(release),
            release.info.description[:60],
        )

    console.print(table)


@releases_app.command()
@with_error_handling
def status(
    name: Annotated[str, typer.Argument(help="Release name")],
    version: Annotated[
        int,
        typer.Option("--revision", help="Revision to show (default: latest)"),
    ] = 0,
) -> None:
    """Show the status of a release revision.

    Examples:
        release-service status web
        release-service status web --revision 2
    """
    context = get_cli_context()
    response = run_sync(
        context.release_service.get_release_status(
            GetReleaseStatusRequest(name=name, version=version)
        )
    )
    info = response.info

    console.print(f"[bold]NAME:[/bold] {response.name}")
    console.print(f"[bold]NAMESPACE:[/bold] {response.namespace}")
    console.print(f"[bold]STATUS:[/bold] {format_status(info.status)}")
    if info.last_deployed:
        console.print(f"[bold]LAST DEPLOYED:[/bold] {info.last_deployed.isoformat()}")
    if info.description:
        console.print(f"[bold]DESCRIPTION:[/bold] {info.description}")
    if info.test_status:
        console.print(f"[bold]TEST STATUS:[/bold] {format_status(info.test_status)}")
    if info.last_test_suite_run:
        for result in info.last_test_suite_run.results:
            console.print(f"  {result.name}: {result.status.value} {result.info}".rstrip())
    if info.notes:
        console.print("\n[bold]NOTES:[/bold]")
        console.print(info.notes)


@releases_app.command()
def version() -> None:
    """Show the service version."""
    context = get_cli_context()
    response = context.release_service.get_version()

    console.print(f"[bold]SemVer:[/bold] {response.sem_ver}")
    if response.git_commit:
        console.print(f"[bold]GitCommit:[/bold] {response.git_commit}")
    if response.git_tree_state:
        console.print(f"[bold]GitTreeState:[/bold] {response.git_tree_state}")
