"""Skip predicates.

A `skip` step is evaluated before a test (or, inside `setup`, before the
whole file) runs. It holds when the service version falls inside one of
the declared version ranges or when a declared feature is unsupported by
the runner.
"""

from re import compile as regexp
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import Field, field_validator

from pytest_restspec.errors import UnexpectedRequestError

from .steps import BaseStep

if TYPE_CHECKING:
    from pytest_restspec.context import ExecutionContext

#: Version range matching every version.
ALL_VERSIONS = 'all'

#: `low - high` range; either end may be omitted.
RANGE_PATTERN = regexp(r'^\s*(?P<low>\S*)\s*-\s*(?P<high>\S*)\s*$')

_NUMBER_PATTERN = regexp(r'\d+')

type Version = tuple[int, ...]


def parse_version(text: str) -> Version:
    """Parse a version string into comparable numeric components.

    Pre-release suffixes (`7.0.0-beta1`, `8.1.0-SNAPSHOT`) are ignored.

    Args:
        text: Version string.

    Returns:
        Tuple of integers; the empty tuple for unparsable input.
    """
    release = text.strip().split('-', 1)[0]

    return tuple(int(number) for number in _NUMBER_PATTERN.findall(release))


def version_in_range(version: str, ranges: str) -> bool:
    """Check whether a version falls inside comma separated ranges.

    Args:
        version: Service version.
        ranges: Ranges such as `7.0.0 - 7.9.99`, ` - 6.99.99`, `8.0.0 - `
            or `all`. Both ends are inclusive.

    Returns:
        True if the version is inside any of the ranges.

    Raises:
        ValueError: If a range is malformed.
    """
    current = parse_version(version)

    for item in ranges.split(','):
        if item.strip() == ALL_VERSIONS:
            return True

        bounds = RANGE_PATTERN.match(item)
        if not bounds:
            raise ValueError(f'Invalid version range {item.strip()!r}')

        if not current:
            continue

        low = parse_version(bounds['low']) if bounds['low'] else ()
        high = parse_version(bounds['high']) if bounds['high'] else None

        if low <= current and (high is None or current <= high):
            return True

    return False


class SkipStep(BaseStep):
    """Predicate deciding whether a test or file is skipped."""

    tag: ClassVar[str] = 'skip'

    version: str | None = Field(
        default=None,
        title='Skipped versions',
        description='Comma separated inclusive version ranges, or `all`.',
        examples=[
            '- 6.99.99',
            '7.0.0 - 7.2.99, 8.0.0 - ',
            'all',
        ],
    )
    features: tuple[str, ...] = Field(
        default=(),
        title='Required features',
        description='Features the test needs; the test skips if any is unsupported.',
    )
    reason: str = Field(
        default='',
        title='Skip reason',
    )

    @field_validator('features', mode='before')
    @classmethod
    def wrap_feature(cls, value: Any) -> Any:
        """Accept a single feature name as well as a list."""
        if isinstance(value, str):
            return (value,)

        return value

    @field_validator('version')
    @classmethod
    def check_version(cls, value: str | None) -> str | None:
        """Validate the version ranges."""
        if value is not None:
            version_in_range('', value)

        return value

    def __call__(self, context: 'ExecutionContext') -> None:
        """Skip predicates have no runtime effect once the test runs."""

    def evaluate(self, context: 'ExecutionContext') -> str | None:
        """Decide whether the predicate holds.

        The service version is only requested when a version range is
        declared and no unsupported feature already decided the outcome.

        Args:
            context: Execution context of the file.

        Returns:
            Skip reason if the predicate holds, otherwise `None`.

        Raises:
            TransportError: If the service version cannot be fetched.
            UnexpectedRequestError: If the service version is not a
                parsable version.
        """
        unsupported = [feature for feature in self.features if feature in context.skip_features]
        if unsupported:
            return f'Unsupported feature(s): {", ".join(unsupported)}'

        if self.version is None:
            return None

        if self.version.strip() == ALL_VERSIONS:
            return self.reason or 'Skipped for all versions'

        version = context.server_version
        if not parse_version(version):
            raise UnexpectedRequestError(
                f'Cannot evaluate version range {self.version!r}: '
                f'unknown service version {version!r}',
            )

        if version_in_range(version, self.version):
            return self.reason or f'Skipped for versions {self.version}'

        return None

    def to_document(self) -> dict[str, Any]:
        """Return the YAML document representation of the step."""
        document: dict[str, Any] = {}
        if self.version is not None:
            document['version'] = self.version
        if self.features:
            document['features'] = list(self.features)
        if self.reason:
            document['reason'] = self.reason

        return {self.tag: document}
