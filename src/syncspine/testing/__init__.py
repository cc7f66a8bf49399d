"""Verification harness and resource test driver for providers."""

from syncspine.testing.harness import (
    CheckStatus,
    VerificationReport,
    VerificationResult,
    verify_at_least_one,
    verify_no_empty_columns,
    verify_optional,
    verify_table,
)
from syncspine.testing.resource_test import ResourceTestCase, resource_test, resource_test_async

__all__ = [
    "CheckStatus",
    "ResourceTestCase",
    "VerificationReport",
    "VerificationResult",
    "resource_test",
    "resource_test_async",
    "verify_at_least_one",
    "verify_no_empty_columns",
    "verify_optional",
    "verify_table",
]
