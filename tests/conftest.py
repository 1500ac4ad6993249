"""Tests configurations and fixtures."""

from typing import TYPE_CHECKING

import pytest
import yaml

from pytest_restspec.client import Result
from pytest_restspec.context import ExecutionContext
from pytest_restspec.core import TestFileParser
from pytest_restspec.settings import RunnerSettings

if TYPE_CHECKING:
    from collections.abc import Mapping

if TYPE_CHECKING:
    from pytest_restspec.values import RuntimeValue


class FakeClient:
    """In-memory API client recording calls and replaying canned outcomes.

    Outcomes are queued per operation. A queued exception is raised, a
    queued `Result` is returned, and the last queued outcome is repeated
    once the queue is down to one item. Operations with nothing queued
    return an empty successful result.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict, RuntimeValue, Mapping[str, str] | None]] = []
        self.outcomes: dict[str, list[Result | Exception]] = {}

    def respond(self, operation: str, *outcomes: 'Result | Exception | RuntimeValue') -> None:
        """Queue outcomes for an operation; plain values become result bodies."""
        queue = self.outcomes.setdefault(operation, [])
        for outcome in outcomes:
            if isinstance(outcome, (Result, Exception)):
                queue.append(outcome)
            else:
                queue.append(Result(body=outcome))

    def invoke(self, operation: str, params: 'Mapping[str, RuntimeValue]', *,
               body: 'RuntimeValue' = None,
               headers: 'Mapping[str, str] | None' = None) -> Result:
        """Record the call and replay the next outcome."""
        self.calls.append((operation, dict(params), body, headers))

        queue = self.outcomes.get(operation)
        if not queue:
            return Result(body={})

        outcome = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(outcome, Exception):
            raise outcome

        return outcome

    @property
    def operations(self) -> list[str]:
        """Names of the invoked operations, in call order."""
        return [call[0] for call in self.calls]


@pytest.fixture
def loader() -> type[yaml.SafeLoader]:
    """Provide an isolated YAML SafeLoader class for tests.

    Returns:
        A subclass of `yaml.SafeLoader` that tests may extend freely.
    """
    class Loader(yaml.SafeLoader):
        pass

    return Loader


@pytest.fixture
def client() -> FakeClient:
    """Provide a fake API client."""
    return FakeClient()


@pytest.fixture
def context(client: FakeClient) -> ExecutionContext:
    """Provide an execution context bound to the fake client."""
    return ExecutionContext(client, skip_features={'unsupported'}, server_version='8.1.0')


@pytest.fixture
def parser(loader: type[yaml.SafeLoader]) -> TestFileParser:
    """Provide a test file parser with the default operation catalog."""
    return TestFileParser(loader)


@pytest.fixture
def settings() -> RunnerSettings:
    """Provide runner settings without resets and with a known version."""
    return RunnerSettings(
        reset=False,
        server_version='8.1.0',
        skip_features=frozenset({'unsupported'}),
    )
