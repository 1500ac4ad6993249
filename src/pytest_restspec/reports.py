"""Execution reports.

The runner records one `TestReport` per test, in file order, and groups
them into a `FileReport` together with the final runner state.
"""

from enum import StrEnum
from typing import ClassVar

from pydantic import Field

from pytest_restspec.models import SchemaModel


class Outcome(StrEnum):
    """Final outcome of a test."""

    PASSED = 'passed'
    FAILED = 'failed'
    SKIPPED = 'skipped'


class RunnerState(StrEnum):
    """State of the runner while executing a test file."""

    IDLE = 'idle'
    RESETTING_BEFORE = 'resetting_before'
    RUNNING_SETUP = 'running_setup'
    RUNNING_TESTS = 'running_tests'
    RUNNING_TEARDOWN = 'running_teardown'
    RESETTING_AFTER = 'resetting_after'
    DONE = 'done'
    ABORTED = 'aborted'


class TestReport(SchemaModel):
    """Outcome of a single test."""

    __test__: ClassVar[bool] = False

    file: str = Field(
        title='File name',
    )
    name: str = Field(
        title='Test name',
    )
    outcome: Outcome = Field(
        title='Outcome',
    )
    reason: str | None = Field(
        default=None,
        title='Failure detail or skip reason',
    )
    error: str | None = Field(
        default=None,
        title='Error kind',
        description='Name of the error kind that failed the test, for example `AssertionFailed`.',
    )
    step_num: int | None = Field(
        default=None,
        title='Failed step',
        description='Zero-based position of the failing step.',
    )

    @property
    def nodeid(self) -> str:
        """Identifier of the test within the run."""
        return f'{self.file}::{self.name}'


class FileReport(SchemaModel):
    """Outcome of a test file."""

    name: str = Field(
        title='File name',
    )
    tests: tuple[TestReport, ...] = Field(
        default=(),
        title='Test reports',
    )
    state: RunnerState = Field(
        default=RunnerState.DONE,
        title='Final runner state',
    )
    teardown_error: str | None = Field(
        default=None,
        title='Teardown failure',
        description='Recorded teardown failure; it does not change test outcomes.',
    )

    def count(self, outcome: Outcome) -> int:
        """Count the tests with an outcome."""
        return sum(1 for report in self.tests if report.outcome == outcome)

    @property
    def passed(self) -> bool:
        """Whether no test failed."""
        return self.count(Outcome.FAILED) == 0

    def get(self, name: str) -> TestReport | None:
        """Return the report of a test by name."""
        for report in self.tests:
            if report.name == name:
                return report

        return None
