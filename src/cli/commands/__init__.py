"""CLI command modules.

Command Groups:
- releases: Run the HTTP service and inspect recorded releases
"""

from .releases import releases_app

__all__ = [
    "releases_app",
]
