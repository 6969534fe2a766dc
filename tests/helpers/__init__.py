"""Test helpers and utilities.

This module provides shared utilities for testing:
- assertions: Custom assertions for tool responses
"""

from tests.helpers.assertions import assert_error_response, assert_success_response

__all__ = [
    "assert_success_response",
    "assert_error_response",
]
