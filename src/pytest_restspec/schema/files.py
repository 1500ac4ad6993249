"""Test and test file models.

A test file is an optional `setup` section, any number of named tests and
an optional `teardown` section. Each test is an ordered sequence of steps
with an optional leading skip predicate.
"""

from typing import Any, ClassVar

from pydantic import Field

from pytest_restspec.models import SchemaModel

from .assertions import AssertionStep
from .skips import SkipStep
from .steps import DoStep, SetStep, TransformAndSetStep

#: Any executable step.
type Step = DoStep | SetStep | TransformAndSetStep | AssertionStep | SkipStep

#: Reserved section names.
SETUP = 'setup'
TEARDOWN = 'teardown'


def _steps_document(skip: SkipStep | None, steps: tuple[Step, ...]) -> list[dict[str, Any]]:
    """Serialize a skip predicate and steps into a step list."""
    documents = [skip.to_document()] if skip is not None else []
    documents.extend(step.to_document() for step in steps)

    return documents


class Test(SchemaModel):
    """Named sequence of steps executed in order."""

    __test__: ClassVar[bool] = False

    name: str = Field(
        title='Test name',
    )
    owner: str = Field(
        default='',
        title='Owning file name',
    )
    skip: SkipStep | None = Field(
        default=None,
        title='Skip predicate',
        description='Evaluated before the first step; the test is skipped when it holds.',
    )
    steps: tuple[Step, ...] = Field(
        default=(),
        title='Test steps',
    )

    def to_document(self) -> dict[str, Any]:
        """Return the YAML document representation of the test."""
        return {self.name: _steps_document(self.skip, self.steps)}


class TestFile(SchemaModel):
    """Parsed test file.

    The `skip` predicate comes from the first step of `setup` and applies
    to the whole file.
    """

    __test__: ClassVar[bool] = False

    name: str = Field(
        title='File name',
    )
    setup: tuple[Step, ...] | None = Field(
        default=None,
        title='Setup steps',
        description='Run once before the tests of the file.',
    )
    teardown: tuple[Step, ...] | None = Field(
        default=None,
        title='Teardown steps',
        description='Run once after the tests, regardless of their outcome.',
    )
    tests: tuple[Test, ...] = Field(
        default=(),
        title='Tests',
    )
    skip: SkipStep | None = Field(
        default=None,
        title='File skip predicate',
    )
    skip_features: frozenset[str] = Field(
        default_factory=frozenset,
        title='Skipped features',
        description='Features treated as unsupported for every test of the file.',
    )

    @property
    def declared_features(self) -> frozenset[str]:
        """Features declared by the file and test skip predicates."""
        predicates = [self.skip, *(test.skip for test in self.tests)]

        return frozenset(
            feature
            for predicate in predicates
            if predicate is not None
            for feature in predicate.features
        )

    def to_documents(self) -> list[dict[str, Any]]:
        """Return the YAML documents representing the file.

        Loading the documents again yields an equivalent file.
        """
        documents = []

        if self.setup is not None or self.skip is not None:
            documents.append({SETUP: _steps_document(self.skip, self.setup or ())})

        documents.extend(test.to_document() for test in self.tests)

        if self.teardown is not None:
            documents.append({TEARDOWN: _steps_document(None, self.teardown)})

        return documents
