"""Test suite for the pytest-restspec package.

This package contains unit and integration tests validating test file
parsing, step evaluation, the runner state machine, the HTTP client and
the pytest integration.
"""
