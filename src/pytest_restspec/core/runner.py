"""Test file execution.

The runner drives one test file at a time through a fixed sequence of
states: reset the service, run `setup`, run every test in file order, run
`teardown` and reset the service again. Step errors fail the current test
only; a failing reset or setup aborts the file and skips every test that
has not run yet.
"""

import logging
from typing import TYPE_CHECKING
from warnings import warn

from pytest_restspec.client import TransportError
from pytest_restspec.cleanup import reset_baseline, reset_baseline_with_security
from pytest_restspec.context import ExecutionContext
from pytest_restspec.errors import (
    ClusterResetFailed,
    ErrorContext,
    RestSpecError,
    RunnerWarning,
    StepError,
    UnexpectedRequestError,
)
from pytest_restspec.reports import FileReport, Outcome, RunnerState, TestReport
from pytest_restspec.schema import SETUP, TEARDOWN
from pytest_restspec.settings import RunnerSettings

if TYPE_CHECKING:
    from collections.abc import Iterable

if TYPE_CHECKING:
    from pytest_restspec.cleanup import ResetOperation
    from pytest_restspec.client import ApiClient
    from pytest_restspec.schema import SkipStep, Step, Test, TestFile

logger = logging.getLogger(__name__)


class Runner:
    """Executor of parsed test files against a service client.

    The stash and the last response live in an `ExecutionContext` created
    for each file: values captured in `setup` or in an earlier test are
    visible to later tests of the same file, and nothing is carried over
    to the next file.
    """

    def __init__(self, client: 'ApiClient',
                 settings: RunnerSettings | None = None, *,
                 reset: 'ResetOperation | None' = None) -> None:
        """Initialize the runner.

        Args:
            client: Service client used by `do` steps and resets.
            settings: Runner settings. Resolved from the environment when
                omitted.
            reset: Reset operation applied before and after each file.
                Chosen from the settings when omitted; no reset is made
                when the settings disable it.
        """
        self.client = client
        self.settings = settings or RunnerSettings()

        if reset is None and self.settings.reset:
            reset = reset_baseline_with_security if self.settings.reset_security else reset_baseline
        self.reset = reset

        self.state = RunnerState.IDLE
        self.context: ExecutionContext | None = None

    def run_all(self, test_files: 'Iterable[TestFile]') -> list[FileReport]:
        """Execute test files in order.

        Args:
            test_files: Parsed test files.

        Returns:
            One report per file.
        """
        return [self.run(test_file) for test_file in test_files]

    def run(self, test_file: 'TestFile') -> FileReport:
        """Execute a single test file.

        Args:
            test_file: Parsed test file.

        Returns:
            Report of every test of the file, in file order.
        """
        self.state = RunnerState.IDLE
        self.context = context = ExecutionContext(
            self.client,
            skip_features=self.settings.features_to_skip | test_file.skip_features,
            server_version=self.settings.server_version,
        )

        logger.info('Running %s', test_file.name)

        try:
            reason = self.evaluate_skip(test_file.skip, context)
        except StepError as error:
            return self.abort(test_file, error)

        if reason is not None:
            logger.info('Skipping %s: %s', test_file.name, reason)
            self.transition(RunnerState.DONE)
            return FileReport(
                name=test_file.name,
                tests=self.skip_all(test_file, reason),
                state=self.state,
            )

        self.transition(RunnerState.RESETTING_BEFORE)
        try:
            self.run_reset()
        except ClusterResetFailed as error:
            return self.abort(test_file, error)

        failure: RestSpecError | None = None
        reports: tuple[TestReport, ...]

        self.transition(RunnerState.RUNNING_SETUP)
        try:
            self.run_steps(test_file.setup or (), context, filename=test_file.name, test_name=SETUP)
        except StepError as error:
            logger.info('Setup of %s failed: %s', test_file.name, error.message)
            failure = error
            reports = self.skip_all(test_file, self.describe(error))
        else:
            self.transition(RunnerState.RUNNING_TESTS)
            reports = tuple(self.run_test(test, context) for test in test_file.tests)

        teardown_error = None
        self.transition(RunnerState.RUNNING_TEARDOWN)
        try:
            self.run_steps(test_file.teardown or (), context, filename=test_file.name, test_name=TEARDOWN)
        except StepError as error:
            teardown_error = self.describe(error)
            logger.warning('Teardown of %s failed: %s', test_file.name, error.message)
            warn(RunnerWarning(f'Teardown of {test_file.name} failed: {error.message}'), stacklevel=2)

        self.transition(RunnerState.RESETTING_AFTER)
        try:
            self.run_reset()
        except ClusterResetFailed as error:
            logger.warning('Reset after %s failed: %s', test_file.name, error.message)
            failure = failure or error
            teardown_error = teardown_error or self.describe(error)

        context.reset()
        self.transition(RunnerState.ABORTED if failure else RunnerState.DONE)

        return FileReport(
            name=test_file.name,
            tests=reports,
            state=self.state,
            teardown_error=teardown_error,
        )

    def run_test(self, test: 'Test', context: ExecutionContext) -> TestReport:
        """Execute a test, stopping at its first failing step.

        Args:
            test: Test to execute.
            context: Execution context of the file.

        Returns:
            Report of the test.
        """
        try:
            reason = self.evaluate_skip(test.skip, context)
            if reason is not None:
                logger.info('%s::%s skipped: %s', test.owner, test.name, reason)
                return TestReport(file=test.owner, name=test.name, outcome=Outcome.SKIPPED, reason=reason)

            self.run_steps(test.steps, context, filename=test.owner, test_name=test.name)

        except StepError as error:
            logger.info('%s::%s failed: %s', test.owner, test.name, error.message)
            return TestReport(
                file=test.owner,
                name=test.name,
                outcome=Outcome.FAILED,
                reason=str(error),
                error=error.kind,
                step_num=(error.context or {}).get('step_num'),
            )

        logger.info('%s::%s passed', test.owner, test.name)

        return TestReport(file=test.owner, name=test.name, outcome=Outcome.PASSED)

    def run_steps(self, steps: 'Iterable[Step]', context: ExecutionContext, *,
                  filename: str | None = None,
                  test_name: str | None = None) -> None:
        """Execute steps in order.

        Args:
            steps: Steps to execute.
            context: Execution context of the file.
            filename: Name of the file, for error reporting.
            test_name: Name of the test or section, for error reporting.

        Raises:
            StepError: On the first failing step.
        """
        for step_num, step in enumerate(steps):
            self.run_step(step, context, filename=filename, test_name=test_name, step_num=step_num)

    def run_step(self, step: 'Step', context: ExecutionContext, *,
                 filename: str | None = None,
                 test_name: str | None = None,
                 step_num: int | None = None) -> None:
        """Execute a step with unified error handling.

        Step errors get the step location attached; any other exception is
        wrapped into a generic `StepError`.

        Args:
            step: Step to execute.
            context: Execution context of the file.
            filename: Name of the file, for error reporting.
            test_name: Name of the test or section, for error reporting.
            step_num: Position of the step, for error reporting.

        Raises:
            StepError: If the step fails.
        """
        error_context = ErrorContext(
            filename=filename,
            test_name=test_name,
            step_num=step_num,
            context=context.stash.snapshot(),
            element=step.to_document(),
        )

        try:
            step(context)

        except StepError as error:
            error.with_context(error_context)
            raise

        except Exception as base:
            raise StepError(f'{base!r}', context=error_context) from base

    def run_reset(self) -> None:
        """Reset the service, if a reset operation is configured.

        Raises:
            ClusterResetFailed: If the reset fails.
        """
        if self.reset is None:
            return

        try:
            self.reset(self.client)
        except ClusterResetFailed:
            raise
        except Exception as base:
            raise ClusterResetFailed(f'Reset failed: {base!r}') from base

    @staticmethod
    def evaluate_skip(predicate: 'SkipStep | None', context: ExecutionContext) -> str | None:
        """Evaluate a skip predicate.

        Returns:
            Skip reason if the predicate holds, otherwise `None`.

        Raises:
            UnexpectedRequestError: If the service version cannot be
                determined.
        """
        if predicate is None:
            return None

        try:
            return predicate.evaluate(context)
        except StepError:
            raise
        except TransportError as base:
            raise UnexpectedRequestError(
                f'Cannot determine service version: {base}',
                status=base.status,
                body=base.body,
            ) from base
        except Exception as base:
            raise UnexpectedRequestError(f'Cannot determine service version: {base!r}') from base

    def abort(self, test_file: 'TestFile', error: RestSpecError) -> FileReport:
        """Abort a file before setup, skipping every test."""
        logger.warning('Aborting %s: %s', test_file.name, error.message)
        self.transition(RunnerState.ABORTED)

        if self.context is not None:
            self.context.reset()

        return FileReport(
            name=test_file.name,
            tests=self.skip_all(test_file, self.describe(error)),
            state=self.state,
        )

    def transition(self, state: RunnerState) -> None:
        """Move the runner to a new state."""
        logger.debug('Runner state %s -> %s', self.state, state)
        self.state = state

    @staticmethod
    def skip_all(test_file: 'TestFile', reason: str) -> tuple[TestReport, ...]:
        """Report every test of a file as skipped."""
        return tuple(
            TestReport(file=test_file.name, name=test.name, outcome=Outcome.SKIPPED, reason=reason)
            for test in test_file.tests
        )

    @staticmethod
    def describe(error: RestSpecError) -> str:
        """Short description of an error: its kind and message."""
        return f'{error.kind}: {error.message}'
