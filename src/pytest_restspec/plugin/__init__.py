"""Pytest plugin for collecting and executing YAML REST API test files.

This module integrates the interpreter with pytest by:
- registering command-line and ini options;
- configuring a shared `TestFileParser` and the runner settings;
- collecting matching YAML files as test files, one item per test.
"""

from re import match
from typing import TYPE_CHECKING

from yaml import SafeLoader

from .spec import RestSpecFile

if TYPE_CHECKING:
    from pathlib import Path

if TYPE_CHECKING:
    from _pytest.config import Config
    from _pytest.config.argparsing import Parser
    from _pytest.nodes import Node

#: Default pattern of collected file names.
DEFAULT_FILE_PATTERN = r'^test_.+\.ya?ml$'


def pytest_addoption(parser: 'Parser') -> None:
    """Register pytest options for pytest-restspec.

    Args:
        parser: Pytest argument parser.
    """
    group = parser.getgroup('restspec', 'REST API YAML tests')
    group.addoption(
        '--restspec-client',
        action='store',
        dest='restspec_client',
        default=None,
        metavar='MODULE:FACTORY',
        help=(
            'Factory building the API client from the runner settings. '
            'Defaults to the HTTP client configured by RESTSPEC_* variables.'
        ),
    )
    group.addoption(
        '--restspec-skip-feature',
        action='append',
        dest='restspec_skip_features',
        default=[],
        metavar='FEATURE',
        help='Treat a feature as unsupported; tests requiring it are skipped.',
    )
    parser.addini(
        'restspec_file_pattern',
        help='Regular expression matching collected YAML test file names.',
        default=DEFAULT_FILE_PATTERN,
    )


def pytest_configure(config: 'Config') -> None:
    """Configure pytest-restspec integration.

    This hook attaches the runner settings and a shared `TestFileParser`
    to the pytest configuration object. The client and the runner are
    created lazily, on the first executed test.

    Args:
        config: Pytest configuration object.
    """
    from pytest_restspec.core import TestFileParser  # noqa: PLC0415
    from pytest_restspec.operations import OPERATIONS  # noqa: PLC0415
    from pytest_restspec.settings import RunnerSettings  # noqa: PLC0415

    settings = RunnerSettings()
    if features := config.getoption('restspec_skip_features', default=[]):
        settings = settings.model_copy(update={
            'skip_features': settings.skip_features | frozenset(features),
        })

    custom_client = config.getoption('restspec_client', default=None)

    config.restspec_settings = settings  # type: ignore[attr-defined]
    config.restspec_runner = None  # type: ignore[attr-defined]
    config.restspec_parser = TestFileParser(  # type: ignore[attr-defined]
        SafeLoader,
        operations=None if custom_client else OPERATIONS,
        skip_features=settings.features_to_skip,
    )


def pytest_collect_file(parent: 'Node', file_path: 'Path') -> RestSpecFile | None:
    """Collect YAML test files.

    Files whose name matches the `restspec_file_pattern` ini option are
    collected using `RestSpecFile`.

    Args:
        parent: Parent pytest collection node.
        file_path: Path to the file being considered.

    Returns:
        A `RestSpecFile` collector if the file matches, otherwise ``None``.
    """
    if match(parent.config.getini('restspec_file_pattern'), file_path.name):
        return RestSpecFile.from_parent(
            parent,
            path=file_path,
        )

    return None
