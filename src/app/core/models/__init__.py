"""Release domain models."""

from src.app.core.models.release import (
    Chart,
    ChartMetadata,
    Config,
    Hook,
    HookDeletePolicy,
    HookEvent,
    Info,
    Release,
    Status,
    Template,
    TestRun,
    TestRunStatus,
    TestSuite,
    utcnow,
)

__all__ = [
    "Chart",
    "ChartMetadata",
    "Config",
    "Hook",
    "HookDeletePolicy",
    "HookEvent",
    "Info",
    "Release",
    "Status",
    "Template",
    "TestRun",
    "TestRunStatus",
    "TestSuite",
    "utcnow",
]
