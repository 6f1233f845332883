"""Release test runner.

Tests are hooks bound to ``test-success`` (passes when its pod succeeds) or
``test-failure`` (passes when its pod fails). Results are streamed as they
become available.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

from loguru import logger

from src.app.api.http.schemas.releases import TestReleaseResponse
from src.app.core.models import (
    Hook,
    HookEvent,
    Release,
    TestRun,
    TestRunStatus,
    TestSuite,
    utcnow,
)
from src.app.core.release.deadline import Deadline
from src.app.core.release.hooks import HookExecutor
from src.infra.k8s import TIMEOUT_RETURNCODE

_TEST_EVENTS = (HookEvent.TEST_SUCCESS, HookEvent.TEST_FAILURE)


def select_tests(release: Release) -> list[Hook]:
    """Test hooks of a release in declaration order."""
    return [h for h in release.hooks if any(e in h.events for e in _TEST_EVENTS)]


def _result_message(run: TestRun) -> str:
    label = {
        TestRunStatus.SUCCESS: "PASSED",
        TestRunStatus.FAILURE: "FAILED",
    }.get(run.status, "UNKNOWN")
    message = f"{label}: {run.name}"
    if run.info:
        message += f" ({run.info})"
    return message


class TestRunner:
    """Runs the test hooks of a release and reports results as a stream."""

    __test__ = False

    def __init__(self, hooks: HookExecutor) -> None:
        self.hooks = hooks

    async def _run_one(self, hook: Hook, namespace: str, timeout: float) -> TestRun:
        run = TestRun(name=hook.name, status=TestRunStatus.RUNNING, started_at=utcnow())
        try:
            result = await self.hooks.run_hook(hook, namespace, Deadline(timeout))
        except Exception as e:
            logger.warning(f"Test {hook.name} could not be run: {e}")
            run.status = TestRunStatus.UNKNOWN
            run.info = str(e)
            run.completed_at = utcnow()
            return run

        expect_failure = HookEvent.TEST_FAILURE in hook.events
        if result.returncode == TIMEOUT_RETURNCODE:
            run.status = TestRunStatus.UNKNOWN
            run.info = "timed out"
        elif result.success != expect_failure:
            run.status = TestRunStatus.SUCCESS
        else:
            run.status = TestRunStatus.FAILURE
            run.info = result.stderr.strip()
        run.completed_at = utcnow()
        return run

    async def run(
        self,
        release: Release,
        suite: TestSuite,
        *,
        timeout: float,
        cleanup: bool = False,
        parallel: bool = False,
    ) -> AsyncIterator[TestReleaseResponse]:
        """Run every test hook of a release.

        Args:
            release: Release under test
            suite: Collects the result of every test
            timeout: Seconds each test may run
            cleanup: Delete each test resource once its result is reported
            parallel: Start all tests at once and report in completion order

        Yields:
            Progress and result messages, ending with a summary message
        """
        tests = select_tests(release)
        suite.started_at = utcnow()

        if not tests:
            suite.completed_at = utcnow()
            yield TestReleaseResponse(
                msg=f"No tests found for release {release.name}",
                status=TestRunStatus.SUCCESS,
            )
            return

        if parallel:
            for hook in tests:
                yield TestReleaseResponse(msg=f"RUNNING: {hook.name}", status=TestRunStatus.RUNNING)
            pending = [
                asyncio.ensure_future(self._run_one(h, release.namespace, timeout))
                for h in tests
            ]
            try:
                for next_done in asyncio.as_completed(pending):
                    run = await next_done
                    suite.results.append(run)
                    yield TestReleaseResponse(msg=_result_message(run), status=run.status)
                    if cleanup:
                        hook = next(h for h in tests if h.name == run.name)
                        await self.hooks.delete_hook(hook, release.namespace)
            finally:
                for task in pending:
                    task.cancel()
        else:
            for hook in tests:
                yield TestReleaseResponse(msg=f"RUNNING: {hook.name}", status=TestRunStatus.RUNNING)
                run = await self._run_one(hook, release.namespace, timeout)
                suite.results.append(run)
                yield TestReleaseResponse(msg=_result_message(run), status=run.status)
                if cleanup:
                    await self.hooks.delete_hook(hook, release.namespace)

        suite.completed_at = utcnow()
        failed = [r for r in suite.results if r.status != TestRunStatus.SUCCESS]
        if failed:
            yield TestReleaseResponse(
                msg=f"{len(failed)} of {len(suite.results)} tests failed",
                status=TestRunStatus.FAILURE,
            )
        else:
            yield TestReleaseResponse(
                msg=f"All {len(suite.results)} tests passed",
                status=TestRunStatus.SUCCESS,
            )
