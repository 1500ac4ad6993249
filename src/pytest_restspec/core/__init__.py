"""Test file parsing and execution."""

from .parser import TestFileParser
from .runner import Runner

__all__ = (
    'Runner',
    'TestFileParser',
)
