"""Tests for the release CLI commands."""

from unittest.mock import Mock, patch

import pytest
from typer.testing import CliRunner

from src.app.core.models import Status
from src.cli import app
from src.cli.context import CLIContext
from src.infra.k8s import run_sync
from tests.fixtures import stored_release, web_chart

runner = CliRunner()


@pytest.fixture
def cli_context(release_service, test_config) -> CLIContext:
    """CLIContext over the in-memory release service."""
    context = CLIContext(
        console=Mock(),
        config=test_config,
        dependencies=Mock(release_service=release_service),
    )
    with patch("src.cli.commands.releases.get_cli_context", return_value=context):
        yield context


@pytest.fixture
def populated(store, cli_context):
    """Release "web" with two revisions and an uninstalled release "old"."""
    run_sync(store.put(stored_release("web", 1, Status.SUPERSEDED, web_chart("1.0.0"))))
    run_sync(
        store.put(
            stored_release(
                "web", 2, Status.DEPLOYED, web_chart("1.1.0"), description="Upgrade complete"
            )
        )
    )
    run_sync(store.put(stored_release("old", 1, Status.UNINSTALLED)))
    return store


class TestListCommand:
    """Tests for `list`."""

    def test_lists_deployed_releases(self, populated):
        result = runner.invoke(app, ["list"])

        assert result.exit_code == 0
        assert "web" in result.output
        assert "web-1.1.0" in result.output
        assert "old" not in result.output
        assert "1 of 1 releases" in result.output

    def test_all_includes_every_status(self, populated):
        result = runner.invoke(app, ["list", "--all"])

        assert result.exit_code == 0
        assert "old" in result.output
        assert "2 of 2 releases" in result.output

    def test_no_releases(self, cli_context):
        result = runner.invoke(app, ["list"])

        assert result.exit_code == 0
        assert "No releases found" in result.output

    def test_invalid_filter(self, cli_context):
        result = runner.invoke(app, ["list", "--filter", "("])

        assert result.exit_code == 1
        assert "invalid filter" in result.output

    def test_next_page_hint(self, populated):
        result = runner.invoke(app, ["list", "--all", "--limit", "1"])

        assert result.exit_code == 0
        assert "--offset web" in result.output


class TestHistoryCommand:
    """Tests for `history`."""

    def test_history(self, populated):
        result = runner.invoke(app, ["history", "web"])

        assert result.exit_code == 0
        assert "SUPERSEDED" in result.output
        assert "DEPLOYED" in result.output
        assert "Upgrade complete" in result.output

    def test_unknown_release(self, cli_context):
        result = runner.invoke(app, ["history", "nope"])

        assert result.exit_code == 1
        assert "not found" in result.output


class TestStatusCommand:
    """Tests for `status`."""

    def test_latest_revision(self, populated):
        result = runner.invoke(app, ["status", "web"])

        assert result.exit_code == 0
        assert "NAME: web" in result.output
        assert "DEPLOYED" in result.output

    def test_specific_revision(self, populated):
        result = runner.invoke(app, ["status", "web", "--revision", "1"])

        assert result.exit_code == 0
        assert "SUPERSEDED" in result.output


def test_version_command(cli_context):
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert "SemVer: 1.2.3" in result.output
    assert "GitCommit: abc123" in result.output


def test_serve_runs_uvicorn(cli_context):
    with (
        patch("uvicorn.run") as mock_run,
        patch("src.app.runtime.context.get_config", return_value=cli_context.config),
    ):
        result = runner.invoke(app, ["serve", "--port", "9001"])

    assert result.exit_code == 0
    mock_run.assert_called_once()
    args, kwargs = mock_run.call_args
    assert args[0] == "src.app.api.http.app:app"
    assert kwargs["port"] == 9001
    assert kwargs["host"] == "0.0.0.0"
