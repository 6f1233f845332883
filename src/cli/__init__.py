"""Main CLI application module.

This module provides the main entry point for the release service CLI.
The release commands form the top level:

- serve: Run the HTTP API
- list: List releases
- history: Show the revision history of a release
- status: Show the status of a release revision
- version: Show the service version
"""

from .commands import releases_app

# The release commands are the whole CLI
app = releases_app


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
