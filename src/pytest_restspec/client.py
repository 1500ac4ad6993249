"""Service client boundary.

The interpreter never talks to the network itself. It drives an object
implementing `ApiClient`, which turns an operation name and arguments into
a request and returns a `Result`, or raises `TransportError` carrying the
status and decoded body of the failed response.
"""

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from pydantic import Field

from pytest_restspec.models import SchemaModel
from pytest_restspec.values import RuntimeValue, to_text


class Result(SchemaModel):
    """Outcome of a successful API call."""

    status: int = Field(
        default=200,
        title='HTTP status code',
    )
    headers: dict[str, str] = Field(
        default_factory=dict,
        title='Response headers',
    )
    body: Any = Field(
        default=None,
        title='Decoded response body',
    )

    def header_values(self, name: str) -> list[str]:
        """Return all values of a header, matched case-insensitively."""
        name = name.lower()

        return [
            value
            for key, value in self.headers.items()
            if key.lower() == name
        ]


class TransportError(Exception):
    """A request reached the service and failed, or never completed.

    Attributes:
        status: HTTP status code, or `None` when no response was received
            (connection failure, timeout).
        body: Decoded error body, if any.
    """

    def __init__(self, message: str, *,
                 status: int | None = None,
                 body: RuntimeValue = None,
                 headers: Mapping[str, str] | None = None) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error description.
            status: HTTP status code, if a response was received.
            body: Decoded error body.
            headers: Response headers.
        """
        self.message = message
        self.status = status
        self.body = body
        self.headers = dict(headers or {})

        super().__init__(message)

    def __str__(self) -> str:
        """String representation."""
        if self.status is None:
            return self.message

        return f'[{self.status}] {self.message}'

    @property
    def text(self) -> str:
        """Error message and body as a single searchable text."""
        if self.body is None:
            return self.message

        return f'{self.message} {to_text(self.body)}'

    def to_result(self) -> Result:
        """Represent the failed response as a result for later assertions."""
        return Result(
            status=self.status or 0,
            headers=self.headers,
            body=self.body,
        )


class RequestTimeout(TransportError):
    """The request did not complete within the configured timeout."""


class ParameterError(ValueError):
    """An operation was invoked with missing or unsupported arguments.

    Raised on the client side before any request is sent.
    """


@runtime_checkable
class ApiClient(Protocol):
    """Protocol of the service client driven by `do` steps."""

    def invoke(self, operation: str, params: Mapping[str, RuntimeValue], *,
               body: RuntimeValue = None,
               headers: Mapping[str, str] | None = None) -> Result:
        """Perform an API operation.

        Args:
            operation: Dotted operation name, for example `indices.create`.
            params: Path and query arguments.
            body: Request body, if any.
            headers: Additional request headers.

        Returns:
            The decoded response.

        Raises:
            TransportError: If the request fails.
            ParameterError: If the arguments are invalid for the operation.
        """
        ...  # pragma: no cover
