"""Rich output and error handling shared by the CLI commands."""

from collections.abc import Callable
from functools import wraps

import typer
from rich.console import Console
from rich.panel import Panel

from src.app.core.errors import ReleaseError
from src.app.core.models import Status

# Table colors; statuses not listed render unstyled
STATUS_STYLES: dict[Status, str] = {
    Status.DEPLOYED: "green",
    Status.TESTED: "green",
    Status.FAILED: "red",
    Status.SUPERSEDED: "dim",
    Status.UNINSTALLED: "dim",
    Status.UNINSTALLING: "yellow",
    Status.PENDING_INSTALL: "yellow",
    Status.PENDING_UPGRADE: "yellow",
    Status.PENDING_ROLLBACK: "yellow",
    Status.PENDING_TEST: "yellow",
}

console = Console()


def format_status(status: Status) -> str:
    style = STATUS_STYLES.get(status)
    return f"[{style}]{status.value}[/{style}]" if style else status.value


def print_release_error(error: ReleaseError) -> None:
    """Print a release error, with its details in a red panel when present."""
    console.print(f"[red]❌[/red] [bold red]{error.message}[/bold red]")
    if error.details:
        console.print(Panel(error.details, title="Details", border_style="red"))


def with_error_handling(func: Callable[..., None]) -> Callable[..., None]:
    """Turn release errors into exit status 1 and Ctrl-C into 130.

    Any other exception propagates with its traceback.
    """

    @wraps(func)
    def wrapper(*args: object, **kwargs: object) -> None:
        try:
            func(*args, **kwargs)
        except ReleaseError as e:
            print_release_error(e)
            raise typer.Exit(1) from e
        except KeyboardInterrupt:
            console.print("\n[dim]Operation cancelled by user.[/dim]")
            raise typer.Exit(130) from None

    return wrapper
