"""Pytest item reporting the outcome of a single YAML test."""

from typing import TYPE_CHECKING

import pytest

from pytest_restspec.reports import Outcome

if TYPE_CHECKING:
    from typing import Any

if TYPE_CHECKING:
    from _pytest._code.code import ExceptionInfo, TerminalRepr

    from pytest_restspec.schema import Test


class RestSpecFailure(AssertionError):
    """Failure of a YAML test, carrying its formatted report."""


class RestSpecCase(pytest.Item):
    """Pytest item for one test of a YAML test file.

    The owning `RestSpecFile` executes the whole file on first use; the
    item translates the recorded `TestReport` into a pytest outcome.
    """

    __test__ = False

    def __init__(self, *, test: 'Test', **kwargs: 'Any') -> None:
        """Initialize a pytest item backed by a parsed test.

        Args:
            test: Parsed test.
            **kwargs: Keyword pytest.Item arguments.
        """
        super().__init__(**kwargs)

        self.test = test

    def runtest(self) -> None:
        """Run the owning file, if needed, and report this test's outcome."""
        report = self.parent.run().get(self.test.name)  # type: ignore[union-attr]
        if report is None:
            raise RestSpecFailure(f'No report recorded for {self.test.name!r}')

        if report.outcome == Outcome.SKIPPED:
            pytest.skip(report.reason or 'skipped')

        if report.outcome == Outcome.FAILED:
            raise RestSpecFailure(report.reason or report.error or 'failed')

    def repr_failure(self, excinfo: 'ExceptionInfo[BaseException]',
                     style: 'Any' = None) -> 'str | TerminalRepr':
        """Represent a test failure by its formatted report."""
        if isinstance(excinfo.value, RestSpecFailure):
            return str(excinfo.value)

        return super().repr_failure(excinfo, style=style)

    def reportinfo(self) -> tuple['Any', int | None, str]:
        """Location of the test for pytest reports."""
        return self.path, None, f'{self.test.owner}::{self.test.name}'
