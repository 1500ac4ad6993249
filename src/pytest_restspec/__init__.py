"""Interpreter and pytest plugin for declarative YAML REST API test suites.

The `pytest_restspec` package loads multi-document YAML test files that
describe sequences of API calls and assertions, runs them against a live
service client and reports a per-test outcome.

Key features:
- setup/teardown/test partition of a test file with strict step decoding;
- a variable stash with typed `$name` substitution;
- dotted path resolution into arbitrary nested responses;
- regex, numeric and deep structural comparisons;
- expected failures (`catch`) and version/feature based skips.

The package can be used standalone via `Runner` or through pytest, which
collects YAML test files as test items.
"""
