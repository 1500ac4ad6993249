"""Test document models."""

from .assertions import AssertionStep
from .files import SETUP, TEARDOWN, Step, Test, TestFile
from .skips import SkipStep
from .steps import BaseStep, DoStep, SetStep, TransformAndSetStep

__all__ = (
    'SETUP',
    'TEARDOWN',
    'AssertionStep',
    'BaseStep',
    'DoStep',
    'SetStep',
    'SkipStep',
    'Step',
    'Test',
    'TestFile',
    'TransformAndSetStep',
)
