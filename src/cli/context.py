"""CLI context and dependency container."""

from __future__ import annotations

from dataclasses import dataclass

import click
import typer
from rich.console import Console

from src.app.api.http.app import build_dependencies
from src.app.api.http.app_data import ApplicationDependencies
from src.app.core.services.release_service import ReleaseService
from src.app.runtime.config.config_data import ConfigData
from src.app.runtime.context import get_config
from src.cli.shared.console import console


@dataclass(frozen=True)
class CLIContext:
    """Runtime dependencies for CLI commands."""

    console: Console
    config: ConfigData
    dependencies: ApplicationDependencies

    @property
    def release_service(self) -> ReleaseService:
        return self.dependencies.release_service


def build_cli_context() -> CLIContext:
    """Build a fresh CLIContext from the active configuration."""
    config = get_config()
    return CLIContext(
        console=console,
        config=config,
        dependencies=build_dependencies(config),
    )


def get_cli_context(ctx: typer.Context | None = None) -> CLIContext:
    """Return the CLIContext from Typer, falling back to a new instance."""
    context = ctx or click.get_current_context(silent=True)
    if context and isinstance(context.obj, CLIContext):
        return context.obj
    return build_cli_context()
