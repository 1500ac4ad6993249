"""YAML test file parser.

A test file is a stream of YAML documents. Each document is a mapping with
a single key: `setup`, `teardown` or the name of a test, whose value is the
list of steps. Parsing is all-or-nothing: any malformed document rejects
the whole file.
"""

import logging
from typing import TYPE_CHECKING

from yaml import SafeLoader, YAMLError, load_all
from yaml.error import MarkedYAMLError

from pytest_restspec.errors import ErrorContext, MalformedTestFile
from pytest_restspec.operations import OPERATIONS
from pytest_restspec.schema import SETUP, TEARDOWN, SkipStep, Test, TestFile

from .builder import StepBuilderMixin

if TYPE_CHECKING:
    from collections.abc import Collection
    from io import TextIOBase
    from pathlib import Path

if TYPE_CHECKING:
    from yaml import BaseLoader

    from pytest_restspec.schema import Step

logger = logging.getLogger(__name__)

#: Name reported for sources without a file name.
DEFAULT_NAME = '<unicode string>'


class TestFileParser(StepBuilderMixin):
    """Parser of YAML test files into `TestFile` models."""

    __test__ = False

    def __init__(self, loader: type['BaseLoader'] = SafeLoader,
                 operations: 'Collection[str] | None' = OPERATIONS,
                 skip_features: 'Collection[str]' = frozenset()) -> None:
        """Initialize the parser.

        Args:
            loader: YAML loader class.
            operations: Operation names accepted by `do` steps, or `None`
                to accept any well-formed name.
            skip_features: Features treated as unsupported, carried by
                every parsed file.
        """
        self.loader = loader
        self.operations = operations
        self.skip_features = frozenset(skip_features)

    def parse(self, content: 'TextIOBase | str', name: str = DEFAULT_NAME) -> TestFile:
        """Parse a YAML stream into a test file.

        Empty documents are ignored. `setup` and `teardown` may each appear
        once; a leading `skip` step of `setup` becomes the file-level skip
        predicate and a leading `skip` step of a test its test-level one.

        Args:
            content: YAML content as a string or file-like object.
            name: Name of the file, used in reports and error messages.

        Returns:
            The parsed test file.

        Raises:
            MalformedTestFile: If the YAML is invalid or a document does
                not follow the test file structure.
        """
        try:
            documents = list(load_all(content, Loader=self.loader))

        except MarkedYAMLError as base:
            raise MalformedTestFile.from_yaml_error(base).with_context(
                ErrorContext(filename=name),
            ) from base

        except YAMLError as base:
            raise MalformedTestFile(
                'Invalid YAML',
                context=ErrorContext(filename=name, error=base),
            ) from base

        setup: tuple[Step, ...] | None = None
        teardown: tuple[Step, ...] | None = None
        skip: SkipStep | None = None
        tests: dict[str, Test] = {}

        for document in documents:
            if document is None:
                continue

            if not isinstance(document, dict) or len(document) != 1:
                raise MalformedTestFile(
                    'Document must be a mapping with a single key',
                    context=ErrorContext(filename=name, element=document),
                )

            ((title, items),) = document.items()
            title = str(title)
            context = ErrorContext(filename=name, test_name=title)

            steps = self.build_steps(items, filename=name, test_name=title)
            predicate = None
            if steps and isinstance(steps[0], SkipStep):
                predicate, steps = steps[0], steps[1:]

            if title == SETUP:
                if setup is not None:
                    raise MalformedTestFile('Duplicate setup section', context=context)
                setup, skip = tuple(steps), predicate

            elif title == TEARDOWN:
                if teardown is not None:
                    raise MalformedTestFile('Duplicate teardown section', context=context)
                if predicate is not None:
                    raise MalformedTestFile('Teardown cannot be skipped', context=context)
                teardown = tuple(steps)

            else:
                if title in tests:
                    raise MalformedTestFile(f'Duplicate test {title!r}', context=context)
                tests[title] = Test(name=title, owner=name, skip=predicate, steps=tuple(steps))

        logger.debug('Parsed %s: %d test(s)', name, len(tests))

        return TestFile(
            name=name,
            setup=setup,
            teardown=teardown,
            tests=tuple(tests.values()),
            skip=skip,
            skip_features=self.skip_features,
        )

    def parse_file(self, path: 'Path') -> TestFile:
        """Parse a test file from disk.

        Args:
            path: Path of the YAML file.

        Returns:
            The parsed test file.

        Raises:
            MalformedTestFile: If the file is malformed.
        """
        with path.open('rt', encoding='utf-8') as content:
            return self.parse(content, name=str(path))
