"""Pytest collector for YAML test files.

Each collected file is parsed with the shared `TestFileParser` and turned
into one `RestSpecCase` per test. The file is executed once, as a whole,
by the runner when its first test item runs; every item then reports its
own recorded outcome.
"""

from importlib import import_module
from typing import TYPE_CHECKING

import pytest

from pytest_restspec.client import ApiClient

from .case import RestSpecCase

if TYPE_CHECKING:
    from collections.abc import Iterable

if TYPE_CHECKING:
    from _pytest.config import Config

    from pytest_restspec.core import Runner
    from pytest_restspec.reports import FileReport
    from pytest_restspec.schema import TestFile
    from pytest_restspec.settings import RunnerSettings


def load_client(factory: str | None, settings: 'RunnerSettings') -> ApiClient:
    """Build the API client.

    Args:
        factory: `module:callable` reference of a factory receiving the
            settings, or `None` for the HTTP client.
        settings: Runner settings.

    Returns:
        The API client.

    Raises:
        pytest.UsageError: If the factory cannot be loaded or does not
            return an API client.
    """
    if not factory:
        from pytest_restspec.transport import HttpClient  # noqa: PLC0415
        return HttpClient.from_settings(settings)

    module_name, _, attribute = factory.partition(':')
    try:
        builder = getattr(import_module(module_name), attribute or 'create_client')
    except (ImportError, AttributeError) as base:
        raise pytest.UsageError(f'Cannot load client factory {factory!r}: {base}') from base

    client = builder(settings)
    if not isinstance(client, ApiClient):
        raise pytest.UsageError(f'Client factory {factory!r} did not return an API client')

    return client


def get_runner(config: 'Config') -> 'Runner':
    """Return the runner shared by the session, creating it on first use."""
    runner = config.restspec_runner  # type: ignore[attr-defined]
    if runner is None:
        from pytest_restspec.core import Runner  # noqa: PLC0415

        settings = config.restspec_settings  # type: ignore[attr-defined]
        client = load_client(config.getoption('restspec_client', default=None), settings)
        runner = config.restspec_runner = Runner(client, settings)  # type: ignore[attr-defined]

    return runner


class RestSpecFile(pytest.File):
    """Pytest file collector for YAML test files.

    This collector:
    - parses the file using `TestFileParser`;
    - emits one `RestSpecCase` per test, in file order;
    - runs the whole file once and caches its report.
    """

    __test__ = False

    test_file: 'TestFile | None' = None
    report: 'FileReport | None' = None

    def collect(self) -> 'Iterable[RestSpecCase]':
        """Collect pytest test items from a test file.

        Returns:
            Iterable of `RestSpecCase` instances for pytest execution.

        Raises:
            MalformedTestFile: If the test file is malformed.
        """
        self.test_file = self.config.restspec_parser.parse_file(self.path)  # type: ignore[attr-defined]

        for test in self.test_file.tests:
            yield RestSpecCase.from_parent(
                self,
                name=test.name,
                test=test,
            )

    def run(self) -> 'FileReport':
        """Execute the file, once, and return its report."""
        if self.report is None:
            if self.test_file is None:
                self.test_file = self.config.restspec_parser.parse_file(self.path)  # type: ignore[attr-defined]
            self.report = get_runner(self.config).run(self.test_file)

        return self.report
