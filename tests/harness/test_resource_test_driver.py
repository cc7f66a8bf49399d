"""Tests for the end-to-end resource test driver."""

from __future__ import annotations

import pytest

from syncspine.core.errors import VerificationError
from syncspine.provider import Provider
from syncspine.testing import CheckStatus, ResourceTestCase, resource_test, resource_test_async
from tests._support.cli_provider import build_failing_provider, build_provider
from tests._support.sync_tables import build_users


def _case(provider, tmp_path, **kwargs) -> ResourceTestCase:
    return ResourceTestCase(
        provider=provider,
        config={"token": "test"},
        connection_url=f"sqlite:///{tmp_path / 'resource_test.db'}",
        **kwargs,
    )


class TestResourceTest:
    def test_full_provider_passes(self, tmp_path):
        provider = build_provider()
        try:
            report = resource_test(
                _case(provider, tmp_path, at_least_one={"users": [["email", "phone"]]}, parallel_fetching_limit=2)
            )
        finally:
            provider.close()

        assert report.passed
        checked = {r.table for r in report.results}
        assert {"accounts", "instances", "users"} <= checked

    def test_selected_resources_only(self, tmp_path):
        provider = build_provider()
        try:
            report = resource_test(_case(provider, tmp_path, resources=["users"]))
        finally:
            provider.close()

        assert {r.table for r in report.results} == {"users"}

    def test_missing_values_raise(self, tmp_path, settings):
        rows = [{"id": 1, "name": "ada"}]
        provider = Provider("p", "1", {"users": build_users(rows)}, settings=settings)
        try:
            with pytest.raises(VerificationError):
                resource_test(_case(provider, tmp_path))
        finally:
            provider.close()

    def test_report_returned_without_raising(self, tmp_path, settings):
        rows = [{"id": 1, "name": "ada"}, {"id": 2, "name": "bob"}]
        provider = Provider("p", "1", {"users": build_users(rows)}, settings=settings)
        try:
            report = resource_test(
                _case(provider, tmp_path, at_least_one={"users": [["email", "phone"]]}),
                raise_on_failure=False,
            )
        finally:
            provider.close()

        failed = {(r.check_name, r.table) for r in report.failures()}
        assert ("at_least_one", "users") in failed
        assert ("no_empty_columns", "users") in failed

    @pytest.mark.asyncio
    async def test_fetch_diagnostics_count_as_failures(self, tmp_path):
        provider = build_failing_provider()
        try:
            report = await resource_test_async(_case(provider, tmp_path), raise_on_failure=False)
        finally:
            provider.close()

        fetch_failures = [r for r in report.results if r.check_name == "fetch"]
        # one per failing region scope
        assert len(fetch_failures) == 2
        assert all(r.status is CheckStatus.FAIL and r.table == "accounts" for r in fetch_failures)
        assert all(r.message.startswith("resource: accounts. summary: source offline") for r in fetch_failures)

    def test_tables_recreated_between_runs(self, tmp_path):
        for _ in range(2):
            provider = build_provider()
            try:
                report = resource_test(_case(provider, tmp_path, resources=["users"]))
            finally:
                provider.close()
            assert report.passed
