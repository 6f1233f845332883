"""Release lifecycle building blocks.

State transitions, manifest parsing and diffing, hook execution and the test
runner used by the ReleaseService.
"""

from .apply import ApplyEngine, ApplyPlan, compute_plan
from .deadline import Deadline
from .hooks import HookExecutor, select_hooks
from .manifests import ParsedChart, parse_chart, render_manifest
from .state import Operation, Transition
from .testing import TestRunner

__all__ = [
    "ApplyEngine",
    "ApplyPlan",
    "compute_plan",
    "Deadline",
    "HookExecutor",
    "select_hooks",
    "ParsedChart",
    "parse_chart",
    "render_manifest",
    "Operation",
    "Transition",
    "TestRunner",
]
