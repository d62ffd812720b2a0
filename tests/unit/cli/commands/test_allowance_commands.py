"""Tests for the allowance maintenance commands."""

import pytest

from shp_billing.calculators.time_utils import utc_now


@pytest.fixture
def logged(invoke, client_task):
    """Two 1h entries logged latest-first against a 1h allowance."""
    client_id, task_id = client_task
    for start in ["2025-03-10T09:00", "2025-03-03T09:00"]:
        result = invoke(
            "log-time", "--task-id", task_id, "--start", start, "--minutes", "60"
        )
        assert result.exit_code == 0, result.output
    return client_id


class TestRecalculate:
    """Test recalculate."""

    def test_single_client(self, invoke, logged):
        result = invoke("recalculate", "--client-id", logged)

        assert result.exit_code == 0, result.output
        assert "Recalculated 2 entries" in result.output
        assert "Total hours:    2.00 h" in result.output
        assert "Billable hours: 1.00 h" in result.output

    def test_all_clients(self, invoke, logged):
        result = invoke("recalculate", "--all")

        assert result.exit_code == 0
        assert "Recalculated 1 client(s)" in result.output
        assert logged in result.output

    @pytest.mark.parametrize("args", [[], ["--client-id", "x", "--all"]])
    def test_requires_exactly_one_target(self, invoke, args):
        result = invoke("recalculate", *args)

        assert result.exit_code == 2
        assert "exactly one of --client-id or --all" in result.output

    def test_unknown_client(self, invoke):
        result = invoke("recalculate", "--client-id", "missing")

        assert result.exit_code == 4


class TestResetYear:
    """Test reset-year."""

    def test_reset_single_client(self, invoke, logged):
        result = invoke("reset-year", "--client-id", logged)

        assert result.exit_code == 0
        assert f"Reset 1 client(s) to {utc_now().year}-01-01" in result.output

    def test_bulk_reset_skips_current_clients(self, invoke, client_task):
        year = str(utc_now().year)

        first = invoke("reset-year", "--all", "--year", year)
        second = invoke("reset-year", "--all", "--year", year)

        assert "Reset 1 client(s)" in first.output
        assert "Reset 0 client(s)" in second.output

    def test_invalid_year(self, invoke, logged):
        result = invoke("reset-year", "--client-id", logged, "--year", "1900")

        assert result.exit_code == 3


class TestUpdateAllowance:
    """Test update-allowance."""

    def test_update_recalculates_used_hours(self, invoke, logged):
        result = invoke("update-allowance", "--client-id", logged, "--hours", "5")

        assert result.exit_code == 0, result.output
        assert "Allowance changed from 1.00 h to 5.00 h" in result.output
        assert "Recalculated 2 entries" in result.output

    def test_update_without_usage(self, invoke, client_task):
        client_id, _ = client_task

        result = invoke("update-allowance", "--client-id", client_id, "--hours", "3")

        assert result.exit_code == 0
        assert "Recalculated" not in result.output

    def test_negative_hours(self, invoke, client_task):
        client_id, _ = client_task

        result = invoke("update-allowance", "--client-id", client_id, "--hours=-2")

        assert result.exit_code == 3
        assert "Invalid Input" in result.output

    def test_hours_must_be_a_number(self, invoke, client_task):
        client_id, _ = client_task

        result = invoke("update-allowance", "--client-id", client_id, "--hours", "lots")

        assert result.exit_code == 2
        assert "'lots' is not a valid number" in result.output

    @pytest.mark.parametrize("hours", ["NaN", "Infinity"])
    def test_hours_must_be_finite(self, invoke, client_task, hours):
        client_id, _ = client_task

        result = invoke("update-allowance", "--client-id", client_id, "--hours", hours)

        assert result.exit_code == 2
        assert "is not a finite number" in result.output
