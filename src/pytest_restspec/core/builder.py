"""Step decoding.

Decodes the single-key step mappings of a test document into step models.
Multi-pair `match`, `set` and comparison steps are expanded into one step
per pair, in document order.
"""

from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from pytest_restspec.errors import ErrorContext, MalformedTestFile, UnrecognizedStep
from pytest_restspec.schema import AssertionStep, DoStep, SetStep, SkipStep, TransformAndSetStep
from pytest_restspec.schema.assertions import UNARY_KINDS
from pytest_restspec.transforms import parse_transform

if TYPE_CHECKING:
    from collections.abc import Callable, Collection

if TYPE_CHECKING:
    from pytest_restspec.schema import Step
    from pytest_restspec.values import RuntimeValue

#: `do` options other than the operation itself.
DO_OPTIONS = frozenset({'catch', 'headers', 'warnings', 'allowed_warnings'})

#: `do` options accepted and ignored.
IGNORED_DO_OPTIONS = frozenset({'node_selector'})

#: Assertion tags expanded pair by pair.
ASSERTION_KINDS = ('match', 'is_true', 'is_false', 'lt', 'lte', 'gt', 'gte', 'length', 'contains')

#: Decodes the value of a step mapping into one or more steps.
type StepDecoder = Callable[[RuntimeValue], list[Step]]


class StepBuilderMixin:
    """Mixin decoding step documents into step models.

    Classes using the mixin provide `operations`, the names of operations
    accepted by `do` steps, or `None` to accept any well-formed name.
    """

    operations: 'Collection[str] | None' = None

    @property
    def decoders(self) -> dict[str, 'StepDecoder']:
        """Step decoders by tag."""
        decoders: dict[str, StepDecoder] = {
            'do': self.build_do,
            'set': self.build_set,
            'transform_and_set': self.build_transform_and_set,
            'skip': self.build_skip,
        }
        for kind in ASSERTION_KINDS:
            decoders[kind] = self._assertion_decoder(kind)

        return decoders

    def build_steps(self, items: 'RuntimeValue', *,
                    filename: str | None = None,
                    test_name: str | None = None) -> list['Step']:
        """Decode the step list of a section.

        Args:
            items: Section value; a list of step mappings or `None`.
            filename: Name of the source file, for error reporting.
            test_name: Name of the section, for error reporting.

        Returns:
            Decoded steps in document order.

        Raises:
            MalformedTestFile: If a step cannot be decoded.
            UnrecognizedStep: If a step tag is unknown.
        """
        if items is None:
            return []

        if not isinstance(items, list):
            raise MalformedTestFile(
                f'Section {test_name!r} must be a list of steps',
                context=ErrorContext(filename=filename, test_name=test_name, element=items),
            )

        steps: list[Step] = []
        for step_num, item in enumerate(items):
            decoded = self.build_step(item, filename=filename, test_name=test_name, step_num=step_num)
            if step_num > 0 and any(isinstance(step, SkipStep) for step in decoded):
                raise MalformedTestFile(
                    'Skip must be the first step',
                    context=ErrorContext(
                        filename=filename,
                        test_name=test_name,
                        step_num=step_num,
                        element=item,
                    ),
                )
            steps.extend(decoded)

        return steps

    def build_step(self, item: 'RuntimeValue', *,
                   filename: str | None = None,
                   test_name: str | None = None,
                   step_num: int | None = None) -> list['Step']:
        """Decode a single step mapping.

        Args:
            item: Step document.
            filename: Name of the source file, for error reporting.
            test_name: Name of the section, for error reporting.
            step_num: Position of the step, for error reporting.

        Returns:
            One or more decoded steps.

        Raises:
            MalformedTestFile: If the step cannot be decoded.
            UnrecognizedStep: If the step tag is unknown.
        """
        context = ErrorContext(
            filename=filename,
            test_name=test_name,
            step_num=step_num,
            element=item,
        )

        if not isinstance(item, dict) or len(item) != 1:
            raise MalformedTestFile('Step must be a mapping with a single key', context=context)

        ((tag, value),) = item.items()

        decoder = self.decoders.get(tag)
        if decoder is None:
            raise UnrecognizedStep(f'Unrecognized step {tag!r}', context=context)

        try:
            return decoder(value)

        except ValidationError as base:
            raise MalformedTestFile.from_pydantic_error(
                base,
                data=item,
                filename=filename,
                test_name=test_name,
                step_num=step_num,
            ) from base

        except (ValueError, TypeError) as base:
            raise MalformedTestFile(f'{base}', context=context) from base

    def build_do(self, value: 'RuntimeValue') -> list['Step']:
        """Decode a `do` step."""
        if not isinstance(value, dict):
            raise TypeError('do step must be a mapping')

        options = {key: item for key, item in value.items() if key in DO_OPTIONS}
        calls = [
            key for key in value
            if key not in DO_OPTIONS and key not in IGNORED_DO_OPTIONS
        ]
        if len(calls) != 1:
            raise ValueError(f'do step must name exactly one operation, got {len(calls)}')

        operation = calls[0]
        if self.operations is not None and operation not in self.operations:
            raise ValueError(f'Unknown operation {operation!r}')

        arguments = value[operation]
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise TypeError(f'Arguments of {operation!r} must be a mapping')

        params = {key: item for key, item in arguments.items() if key != 'body'}

        for name in ('warnings', 'allowed_warnings'):
            if isinstance(options.get(name), str):
                options[name] = [options[name]]

        return [DoStep.model_validate({
            **options,
            'operation': operation,
            'params': params,
            'body': arguments.get('body'),
        })]

    def build_set(self, value: 'RuntimeValue') -> list['Step']:
        """Decode a `set` step, one step per pair."""
        pairs = self._pairs('set', value)

        return [SetStep.model_validate({'path': path, 'as': target}) for path, target in pairs]

    def build_transform_and_set(self, value: 'RuntimeValue') -> list['Step']:
        """Decode a `transform_and_set` step, one step per pair."""
        steps: list[Step] = []

        for target, expression in self._pairs('transform_and_set', value):
            if not isinstance(expression, str):
                raise TypeError(f'Transform of {target!r} must be a string')
            name, arguments = parse_transform(expression)
            steps.append(TransformAndSetStep.model_validate({
                'path': ','.join(arguments),
                'transform': name,
                'as': target,
            }))

        return steps

    def build_skip(self, value: 'RuntimeValue') -> list['Step']:
        """Decode a `skip` predicate."""
        if not isinstance(value, dict):
            raise TypeError('skip step must be a mapping')

        return [SkipStep.model_validate(value)]

    def _assertion_decoder(self, kind: str) -> 'StepDecoder':
        """Build the decoder of an assertion kind."""
        def decode(value: 'RuntimeValue') -> list['Step']:
            if kind in UNARY_KINDS:
                if value is not None and not isinstance(value, str):
                    raise TypeError(f'{kind} expects a path')
                return [AssertionStep(kind=kind, path=value or '')]

            return [
                AssertionStep(kind=kind, path=path, expected=expected)
                for path, expected in self._pairs(kind, value)
            ]

        return decode

    @staticmethod
    def _pairs(tag: str, value: 'RuntimeValue') -> list[tuple[str, Any]]:
        """Return the key/value pairs of a mapping step with string keys."""
        if not isinstance(value, dict) or not value:
            raise TypeError(f'{tag} step must be a non-empty mapping')

        return [
            ('' if key is None else str(key), item)
            for key, item in value.items()
        ]
