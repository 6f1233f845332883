import os

# Set test mode before any imports that might load config
os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault("RELEASE_SERVICE_CONFIG", "tests/does-not-exist.yaml")

from tests.fixtures import *  # noqa: F401,F403
