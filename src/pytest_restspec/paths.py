"""Dotted path resolution into nested response values.

Paths are dot-separated segments. A segment indexes a mapping by key or a
sequence by integer position. `\\.` escapes a literal dot inside a key, a
segment written as `$name` is replaced by a stashed value, and the special
segment `_arbitrary_key_` selects the first entry of a mapping.
"""

from typing import TYPE_CHECKING

from pytest_restspec.errors import PathNotFound
from pytest_restspec.values import MAPPINGS, SEQUENCES, to_text

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

if TYPE_CHECKING:
    from pytest_restspec.stash import Stash
    from pytest_restspec.values import RuntimeValue

#: Segment selecting a deterministic (first) entry of a mapping.
ARBITRARY_KEY = '_arbitrary_key_'

#: Path resolving to the last response body itself.
BODY_PATH = '$body'

_ESCAPE = '\\'
_SEPARATOR = '.'


def split_path(path: str) -> list[str]:
    """Split a path into segments, honoring escaped dots.

    Args:
        path: Dotted path, for example `hits.hits.0._source` or
            `settings.index\\.number_of_shards`.

    Returns:
        List of segments. The empty path yields an empty list.
    """
    if not path:
        return []

    segments: list[str] = []
    current: list[str] = []

    chars = iter(path)
    for char in chars:
        if char == _ESCAPE:
            following = next(chars, '')
            if following != _SEPARATOR:
                current.append(char)
            current.append(following)
        elif char == _SEPARATOR:
            segments.append(''.join(current))
            current = []
        else:
            current.append(char)

    segments.append(''.join(current))

    return segments


class PathResolver:
    """Resolver for dotted paths against nested values.

    Resolution is strict and proceeds left to right without backtracking:
    any missing key, out of range index or attempt to descend into a scalar
    raises `PathNotFound`.
    """

    def __init__(self, stash: 'Stash | None' = None,
                 bindings: 'Mapping[str, RuntimeValue] | None' = None) -> None:
        """Initialize the resolver.

        Args:
            stash: Stash used to substitute `$name` segments.
            bindings: Reserved names resolved before the stash.
        """
        self.stash = stash
        self.bindings = bindings

    def resolve(self, root: 'RuntimeValue', path: str) -> 'RuntimeValue':
        """Resolve a path against a value.

        Args:
            root: Value to traverse.
            path: Dotted path. The empty path and `$body` return the root.

        Returns:
            The value found at the end of the path.

        Raises:
            PathNotFound: If any segment is absent.
            UndefinedVariable: If a `$name` segment is not stashed.
        """
        if path in ('', BODY_PATH):
            return root

        return self.resolve_segments(root, split_path(path), path)

    def resolve_segments(self, root: 'RuntimeValue', segments: 'Sequence[str]',
                         path: str) -> 'RuntimeValue':
        """Resolve already split segments against a value.

        Args:
            root: Value to traverse.
            segments: Path segments.
            path: Full path, for error reporting.

        Returns:
            The value found at the end of the segments.

        Raises:
            PathNotFound: If any segment is absent.
            UndefinedVariable: If a `$name` segment is not stashed.
        """
        value = root

        for position, segment in enumerate(segments):
            key = self._substitute(segment)
            last = position == len(segments) - 1
            value = self._step(value, key, path, last=last)

        return value

    def _substitute(self, segment: str) -> str:
        """Replace stash references inside a segment."""
        if self.stash is None or '$' not in segment:
            return segment

        return to_text(self.stash.resolve(segment, self.bindings))

    @staticmethod
    def _step(value: 'RuntimeValue', key: str, path: str, *,
              last: bool = False) -> 'RuntimeValue':
        """Descend one segment.

        Args:
            value: Current value.
            key: Current segment after substitution.
            path: Full path, for error reporting.
            last: Whether the segment is the final one.

        Returns:
            The child value.

        Raises:
            PathNotFound: If the segment cannot be applied.
        """
        if isinstance(value, MAPPINGS):
            if key == ARBITRARY_KEY and key not in value:
                if not value:
                    raise PathNotFound(path, key)
                first = next(iter(value))
                return first if last else value[first]
            if key in value:
                return value[key]
            raise PathNotFound(path, key)

        if isinstance(value, SEQUENCES):
            if key == ARBITRARY_KEY:
                if not value:
                    raise PathNotFound(path, key)
                return value[0]
            if key.isdecimal() and int(key) < len(value):
                return value[int(key)]
            raise PathNotFound(path, key)

        raise PathNotFound(path, key)
