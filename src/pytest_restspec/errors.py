"""Core exception hierarchy.

This module defines the error types raised while parsing test files,
evaluating steps and preparing the service under test, together with a
formatter producing human-readable messages with location information and a
YAML snippet of the failing element.
"""

from os import linesep
from typing import TYPE_CHECKING, Any, TypedDict

from yaml import dump
from yaml.error import MarkedYAMLError

from pytest_restspec.values import MAPPINGS, SCALARS, SEQUENCES

if TYPE_CHECKING:
    from typing import Self

if TYPE_CHECKING:
    from pydantic_core import ErrorDetails, ValidationError

if TYPE_CHECKING:
    from pytest_restspec.values import RuntimeValue

SNIPPET_ELLIPSIS = f' ...{linesep}'
SNIPPET_SEPARATOR = f' ---{linesep}'
SNIPPET_INDENT = 2

FORMAT_REPLACER = '<runtime object>'
FORMAT_FILENAME = '<unicode string>'
FORMAT_INDENT = 4


class ErrorContext(TypedDict, total=False):
    """Container describing contextual information for error formatting.

    All fields are optional; the formatter adapts output based on
    provided values.
    """

    #: Name of the source file where the error occurred.
    filename: str | None

    #: Line number in the source file.
    line_num: int | None
    #: Column number in the source file.
    column_num: int | None

    #: Name of the test (or `setup`/`teardown`) owning the step.
    test_name: str | None
    #: Number of the step where the error occurred.
    step_num: int | None

    #: Underlying exception that triggered formatting.
    error: Exception | None

    #: Stash values available at the moment of failure.
    context: dict[str, Any] | None
    #: Document fragment associated with the error.
    element: Any


class ErrorFormatter:
    """Utility class for formatting test errors.

    Produces human-readable messages with optional source location and
    YAML-based contextual snippets.
    """

    @classmethod
    def format(cls, message: str, context: ErrorContext | None = None) -> str:
        """Format an error message using contextual information.

        Args:
            message: Base human-readable error message.
            context: Optional error context with location and data.

        Returns:
            A fully formatted error message suitable for display.
        """
        if not context:
            return message

        message += linesep
        message += cls.get_location_string(context, indent=FORMAT_INDENT)
        message += cls.get_snippet_string(context, indent=FORMAT_INDENT * 2)

        return message

    @classmethod
    def get_location_string(cls, context: ErrorContext, *,
                            indent: str | int | None = None) -> str:
        """Format source and execution location information.

        Args:
            context: Error context containing location metadata.
            indent: Optional indentation (string or number of spaces).

        Returns:
            A formatted location string including filename, line,
            column, test name and step number when available.
        """
        indent = cls._ensure_indent(indent)

        filename = context.get('filename')
        if not filename:
            filename = FORMAT_FILENAME

        message = f'{indent}in "{filename}"'
        if (line_num := context.get('line_num')) is not None:
            message += f', line {line_num + 1}'
            if (column_num := context.get('column_num')) is not None:
                message += f', column {column_num + 1}'
        message += linesep

        test_name = context.get('test_name')
        step_num = context.get('step_num')
        if test_name is not None or step_num is not None:
            message += indent
            if test_name is not None:
                message += f'in "{test_name}"'
                if step_num is not None:
                    message += ', '
            if step_num is not None:
                message += f'on step {step_num + 1}'
            message += linesep

        return message

    @classmethod
    def get_snippet_string(cls, context: ErrorContext, *,
                           indent: str | int | None = None) -> str:
        """Generate a formatted snippet illustrating the error context.

        Args:
            context: Error context containing document or exception data.
            indent: Optional indentation (string or number of spaces).

        Returns:
            A formatted multi-line snippet string, or an empty string
            if no snippet data is available.
        """
        indent = cls._ensure_indent(indent)

        error = context.get('error')
        if isinstance(error, MarkedYAMLError) and error.problem_mark:
            snippet = error.problem_mark.get_snippet(indent=0) or ''
            return cls._make_indent(snippet, indent)

        if element := context.get('element'):
            return cls._make_snippet(element, context, indent)

        return ''

    @classmethod
    def _make_snippet(cls, element: 'RuntimeValue',
                      context: ErrorContext, indent: str) -> str:
        """Build a YAML-based snippet for an element.

        Args:
            element: Element associated with the error.
            context: Error context containing optional stash values.
            indent: String indentation prefix.

        Returns:
            A formatted snippet string including stash and element data.
        """
        snippet = f'{indent}{SNIPPET_ELLIPSIS}'

        if values := context.get('context'):
            snippet += cls._make_yaml({'stash': {**values}}, indent)
            snippet += linesep
            snippet += f'{indent}{SNIPPET_SEPARATOR}'

        snippet += cls._make_yaml(element, indent)
        snippet += linesep

        return snippet

    @classmethod
    def _filter_unsafe(cls, value: 'RuntimeValue') -> 'RuntimeValue':
        """Recursively sanitize values for safe YAML serialization.

        Args:
            value: Arbitrary value to sanitize.

        Returns:
            A YAML-safe representation of the value.
        """
        if value is None or isinstance(value, SCALARS):
            return value

        if isinstance(value, MAPPINGS):
            return {
                key: cls._filter_unsafe(item)
                for key, item in value.items()
            }

        if isinstance(value, SEQUENCES):
            return [cls._filter_unsafe(item) for item in value]

        return FORMAT_REPLACER

    @classmethod
    def _make_yaml(cls, value: 'RuntimeValue', indent: str = '') -> str:
        """Serialize a value to a YAML-formatted string.

        Args:
            value: Arbitrary value to serialize.
            indent: Optional indentation prefix.

        Returns:
            A YAML-formatted string representation of the value.
        """
        data = dump(
            cls._filter_unsafe(value),
            indent=SNIPPET_INDENT,
            sort_keys=False,
            allow_unicode=True,
        )

        return cls._make_indent(data, indent)

    @staticmethod
    def _make_indent(value: str, indent: str) -> str:
        """Apply indentation to a multi-line string, dropping blank lines."""
        if not indent:
            return value

        return linesep.join(
            f'{indent}{line}'
            for line in value.splitlines()
            if line.strip()
        )

    @staticmethod
    def _ensure_indent(indent: str | int | None = None) -> str:
        """Normalize indentation given as a string or a number of spaces."""
        if isinstance(indent, int) and indent > 0:
            return ' ' * indent

        if isinstance(indent, str):
            return indent

        return ''


class RunnerWarning(UserWarning):
    """Warning emitted for non-fatal runner issues.

    Used for teardown failures which are recorded but do not change the
    outcome of tests that already ran.
    """


class RestSpecError(Exception, ErrorFormatter):
    """Base exception for all pytest-restspec errors.

    All custom exceptions raised by the library inherit from this class to
    allow unified error handling by callers.
    """

    def __init__(self, message: str, *,
                 context: ErrorContext | None = None) -> None:
        """Initialize an error.

        Args:
            message: Human-readable error description.
            context: Error context containing optional location and values.
        """
        self.message = message
        self.context = context

        super().__init__(message)

    def __str__(self) -> str:
        """String representation."""
        return self.format(self.message, self.context)

    @property
    def kind(self) -> str:
        """Name of the error kind, as reported in test outcomes."""
        return type(self).__name__

    def with_context(self, context: ErrorContext) -> 'Self':
        """Attach location information to the error.

        Values already present on the error take precedence over the
        provided ones.

        Args:
            context: Additional error context.

        Returns:
            The same error instance.
        """
        self.context = ErrorContext({**context, **(self.context or {})})
        return self


class MalformedTestFile(RestSpecError):
    """Error raised when a test file cannot be parsed.

    Parse errors are fatal for the offending file only.
    """

    @classmethod
    def from_yaml_error(cls, error: MarkedYAMLError) -> 'Self':
        """Create a parse error from a YAML decoding failure.

        Args:
            error: Exception raised by the YAML parser.

        Returns:
            MalformedTestFile representing the YAML failure.
        """
        mark = error.problem_mark or error.context_mark
        error_context = ErrorContext(error=error)
        if mark is not None:
            error_context.update(
                filename=mark.name,
                line_num=mark.line,
                column_num=mark.column,
            )

        message = 'Invalid YAML'
        if error.problem:
            message += f'{linesep}{' ' * FORMAT_INDENT}{error.problem}'

        return cls(message, context=error_context)

    @classmethod
    def from_pydantic_error(cls, error: 'ValidationError', *,
                            data: 'RuntimeValue' = None,
                            filename: str | None = None,
                            test_name: str | None = None,
                            step_num: int | None = None) -> 'Self':
        """Create a parse error from a Pydantic validation failure.

        The first validation issue that can be located in the document data
        is reported together with the minimal failing fragment.

        Args:
            error: ValidationError raised by Pydantic.
            data: Step document data.
            filename: Name of the source file where the error occurred.
            test_name: Name of the test owning the step.
            step_num: Number of the step where the error occurred.

        Returns:
            MalformedTestFile representing the validation failure.
        """
        error_context = ErrorContext(
            filename=filename,
            test_name=test_name,
            step_num=step_num,
            error=error,
            element=data,
        )

        if not data or not isinstance(data, dict):
            return cls('Type validation error', context=error_context)

        for item in error.errors(include_url=False, include_input=False):
            if context := cls._locate_pydantic_context(data, item):
                message, value = context
                return cls(message, context=ErrorContext({**error_context, 'element': value}))

        return cls('Validation error', context=error_context)

    @classmethod
    def _locate_pydantic_context(cls, value: 'RuntimeValue',
                                 error: 'ErrorDetails') -> tuple[str, Any] | None:
        """Locate the most specific failing element in validated data.

        Args:
            value: Root data structure being validated.
            error: Pydantic error details including location path.

        Returns:
            A tuple of (error message, extracted element) if a relevant
            context can be located, otherwise None.
        """
        container = last_item = value
        last_key: int | str | None = None

        for key in error['loc']:
            if isinstance(last_item, (list, tuple)):
                if isinstance(key, int) and 0 <= key < len(last_item):
                    container = last_item
                    last_item = last_item[key]
                    last_key = key
            elif isinstance(last_item, dict):
                if key in last_item:
                    container = last_item
                    last_item = last_item[key]
                    last_key = key
            else:
                return None

        message = None
        for item in (error.get('msg') or '').splitlines():
            if item_message := item.strip():
                message = item_message
                break

        if not message:
            return None

        if last_key is None:
            return message, container
        if isinstance(container, (list, tuple)):
            return message, [last_item]
        if isinstance(container, dict):
            return message, {last_key: last_item}

        return None


class UnrecognizedStep(MalformedTestFile):
    """Error raised for a step whose tag is not a known step kind."""


class StepError(RestSpecError):
    """Base error for step evaluation failures.

    Step errors are test-scoped: they fail the current test only and are
    recorded on its report with the error kind and detail.
    """


class PathNotFound(StepError):
    """A path segment is absent from the resolved value."""

    def __init__(self, path: str, segment: str | None = None) -> None:
        """Initialize the error.

        Args:
            path: Full path being resolved.
            segment: The first missing segment, if known.
        """
        self.path = path
        self.segment = segment

        message = f'Path {path!r} not found'
        if segment is not None and segment != path:
            message += f' (missing {segment!r})'

        super().__init__(message)


class UndefinedVariable(StepError):
    """A stash reference names a variable that was never set."""

    def __init__(self, name: str) -> None:
        """Initialize the error.

        Args:
            name: Name of the missing stash variable.
        """
        self.name = name

        super().__init__(f'Stash variable {name!r} is not defined')


class TypeMismatch(StepError):
    """A resolved value has a type the assertion cannot compare."""


class AssertionFailed(StepError):
    """A resolved value does not satisfy an assertion."""

    def __init__(self, kind: str, path: str,
                 expected: 'RuntimeValue', actual: 'RuntimeValue') -> None:
        """Initialize the error.

        Args:
            kind: Assertion kind, for example `match` or `length`.
            path: Path of the checked value.
            expected: Expected value after stash substitution.
            actual: Actual resolved value.
        """
        self.assertion = kind
        self.path = path
        self.expected = expected
        self.actual = actual

        super().__init__(
            f'{kind} failed for {path or "$body"!r}: '
            f'expected {expected!r}, actual {actual!r}',
        )


class CatchMismatch(StepError):
    """A `do` step declared an expected error which did not happen."""


class UnexpectedRequestError(StepError):
    """A `do` step failed without declaring an expected error."""

    def __init__(self, message: str, *,
                 status: int | None = None,
                 body: 'RuntimeValue' = None) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error description.
            status: HTTP status of the failed request, if any.
            body: Decoded error body, if any.
        """
        self.status = status
        self.body = body

        super().__init__(message)


class ClusterResetFailed(RestSpecError):
    """The service could not be reset to its baseline state.

    This error is file-scoped: remaining tests of the file are skipped since
    baseline state cannot be guaranteed.
    """
