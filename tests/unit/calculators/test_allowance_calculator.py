"""Unit tests for the annual hour allowance engine.

This module tests:
- Splitting a new entry into free and billable hours
- Usage updates, including the calendar-year reset
- Rebuilding a client's billing history
- The hourly rate fallback chain
"""

import datetime as dt
from decimal import Decimal

import pytest

from shp_billing.calculators.allowance_calculator import (
    RecalculationInput,
    apply_usage,
    effective_hours_used,
    evaluate_entry,
    needs_year_reset,
    recalculate_entries,
    resolve_hourly_rate,
)
from shp_billing.exceptions import InvalidInputError
from shp_billing.models.billing import BillingStatus, ClientUsage

NOW = dt.datetime(2025, 6, 15, 12, 0)
RATE = Decimal("75")


def usage(allowance="10", used="0", last_year_reset=dt.datetime(2025, 1, 1)):
    return ClientUsage(
        client_id="client-1",
        annual_hour_allowance=Decimal(allowance),
        yearly_hours_used=Decimal(used),
        last_year_reset=last_year_reset,
    )


class TestNeedsYearReset:
    """Test the stale accumulator check."""

    def test_never_reset(self):
        assert needs_year_reset(None, NOW) is True

    def test_reset_in_previous_year(self):
        assert needs_year_reset(dt.datetime(2024, 12, 31, 23, 59), NOW) is True

    def test_reset_in_current_year(self):
        assert needs_year_reset(dt.datetime(2025, 1, 1), NOW) is False

    def test_effective_hours_of_stale_counter_is_zero(self):
        client = usage(used="50", last_year_reset=dt.datetime(2024, 3, 1))
        assert effective_hours_used(client, NOW) == Decimal("0")

    def test_effective_hours_of_current_counter(self):
        client = usage(used="4.5")
        assert effective_hours_used(client, NOW) == Decimal("4.5")


class TestEvaluateEntry:
    """Test billing of a single new entry."""

    def test_entry_straddling_allowance_boundary(self):
        """Test 2h against 1h remaining: half free, half billable."""
        billing = evaluate_entry(usage(used="9"), 120, RATE, NOW)

        assert billing.free_hours == Decimal("1")
        assert billing.billable_hours == Decimal("1")
        assert billing.billable_amount == Decimal("75.00")
        assert billing.developer_amount == Decimal("150.00")
        assert billing.is_within_allowance is False
        assert billing.billing_status == BillingStatus.PENDING

    def test_entry_exactly_filling_allowance(self):
        """Test an entry that uses up exactly the remaining allowance."""
        billing = evaluate_entry(usage(used="9"), 60, RATE, NOW)

        assert billing.is_within_allowance is True
        assert billing.billable_amount == Decimal("0.00")
        assert billing.developer_amount == Decimal("75.00")

    def test_stale_counter_is_ignored(self):
        """Test usage from a previous year does not reduce the allowance."""
        client = usage(allowance="2", used="50", last_year_reset=dt.datetime(2024, 3, 1))

        billing = evaluate_entry(client, 90, Decimal("80"), NOW)

        assert billing.is_within_allowance is True
        assert billing.billable_amount == Decimal("0.00")
        assert billing.developer_amount == Decimal("120.00")

    def test_never_reset_client_gets_full_allowance(self):
        client = usage(allowance="2", used="7", last_year_reset=None)

        billing = evaluate_entry(client, 120, RATE, NOW)

        assert billing.is_within_allowance is True
        assert billing.free_hours == Decimal("2")

    def test_zero_allowance_bills_everything(self):
        billing = evaluate_entry(usage(allowance="0"), 30, RATE, NOW)

        assert billing.billable_amount == Decimal("37.50")
        assert billing.developer_amount == Decimal("37.50")
        assert billing.is_within_allowance is False

    def test_zero_duration(self):
        billing = evaluate_entry(usage(used="10"), 0, RATE, NOW)

        assert billing.is_within_allowance is True
        assert billing.billable_amount == Decimal("0.00")
        assert billing.developer_amount == Decimal("0.00")
        assert billing.free_hours == Decimal("0")

    def test_overused_allowance_has_no_negative_remaining(self):
        """Test usage above the allowance leaves zero, not negative, free hours."""
        billing = evaluate_entry(usage(allowance="2", used="5"), 60, RATE, NOW)

        assert billing.free_hours == Decimal("0")
        assert billing.billable_amount == Decimal("75.00")

    def test_repeating_fraction_amount_is_rounded_to_cents(self):
        """Test 20 minutes at 75 bills exactly 25.00."""
        billing = evaluate_entry(usage(allowance="0"), 20, RATE, NOW)

        assert billing.billable_hours == Decimal("0.3333")
        assert billing.billable_amount == Decimal("25.00")

    @pytest.mark.parametrize("minutes", [1, 45, 90, 125, 600])
    def test_free_plus_billable_equals_duration(self, minutes):
        billing = evaluate_entry(usage(allowance="3", used="1.25"), minutes, RATE, NOW)

        expected = (Decimal(minutes) / Decimal(60)).quantize(Decimal("0.0001"))
        assert billing.free_hours + billing.billable_hours == expected

    def test_developer_amount_does_not_depend_on_allowance(self):
        fully_free = evaluate_entry(usage(allowance="100"), 90, RATE, NOW)
        fully_billed = evaluate_entry(usage(allowance="0"), 90, RATE, NOW)

        assert fully_free.developer_amount == fully_billed.developer_amount
        assert fully_free.developer_amount == Decimal("112.50")

    def test_negative_duration_rejected(self):
        with pytest.raises(InvalidInputError, match="non-negative"):
            evaluate_entry(usage(), -5, RATE, NOW)

    def test_negative_rate_rejected(self):
        with pytest.raises(InvalidInputError, match="Hourly rate"):
            evaluate_entry(usage(), 30, Decimal("-1"), NOW)

    def test_evaluation_does_not_change_client(self):
        client = usage(used="9")

        evaluate_entry(client, 120, RATE, NOW)

        assert client.yearly_hours_used == Decimal("9")


class TestApplyUsage:
    """Test usage updates after an entry is stored."""

    def test_adds_hours_in_current_year(self):
        client = usage(used="9")

        updated = apply_usage(client, 60, NOW)

        assert updated.yearly_hours_used == Decimal("10")
        assert updated.last_year_reset == dt.datetime(2025, 1, 1)

    def test_stale_counter_is_replaced(self):
        client = usage(used="50", last_year_reset=dt.datetime(2024, 3, 1))

        updated = apply_usage(client, 90, NOW)

        assert updated.yearly_hours_used == Decimal("1.5")
        assert updated.last_year_reset == NOW

    def test_first_entry_ever_sets_reset(self):
        updated = apply_usage(usage(last_year_reset=None), 30, NOW)

        assert updated.yearly_hours_used == Decimal("0.5")
        assert updated.last_year_reset == NOW

    def test_original_snapshot_is_unchanged(self):
        client = usage(used="1")

        apply_usage(client, 60, NOW)

        assert client.yearly_hours_used == Decimal("1")

    def test_negative_duration_rejected(self):
        with pytest.raises(InvalidInputError):
            apply_usage(usage(), -1, NOW)

    def test_sequential_entries_consume_allowance_in_order(self):
        """Test evaluate and apply in sequence: the third hour is billed."""
        client = usage(allowance="2", used="0")
        billings = []

        for _ in range(3):
            billings.append(evaluate_entry(client, 60, RATE, NOW))
            client = apply_usage(client, 60, NOW)

        assert [b.is_within_allowance for b in billings] == [True, True, False]
        assert billings[2].billable_amount == Decimal("75.00")
        assert client.yearly_hours_used == Decimal("3")


class TestRecalculateEntries:
    """Test rebuilding a client's billing history."""

    @pytest.fixture
    def entries(self):
        """Entries deliberately given out of chronological order."""
        return [
            RecalculationInput("e2", dt.datetime(2025, 1, 10, 9), 90, RATE),
            RecalculationInput("e1", dt.datetime(2025, 1, 5, 9), 60, RATE),
            RecalculationInput("e3", dt.datetime(2025, 1, 20, 9), 60, RATE),
        ]

    def test_entries_processed_by_start_time(self, entries):
        result = recalculate_entries(Decimal("2"), entries)

        assert [e.entry_id for e in result.entries] == ["e1", "e2", "e3"]

    def test_earliest_entries_absorb_allowance(self, entries):
        result = recalculate_entries(Decimal("2"), entries)
        billing = {e.entry_id: e.billing for e in result.entries}

        assert billing["e1"].is_within_allowance is True
        assert billing["e2"].free_hours == Decimal("1")
        assert billing["e2"].billable_amount == Decimal("37.50")
        assert billing["e3"].billable_amount == Decimal("75.00")

    def test_totals(self, entries):
        result = recalculate_entries(Decimal("2"), entries)

        assert result.total_hours == Decimal("3.5")
        assert result.free_hours == Decimal("2")
        assert result.billable_hours == Decimal("1.5")

    def test_totals_below_allowance(self):
        result = recalculate_entries(
            Decimal("10"),
            [RecalculationInput("e1", dt.datetime(2025, 1, 5), 90, RATE)],
        )

        assert result.free_hours == Decimal("1.5")
        assert result.billable_hours == Decimal("0")

    def test_recalculation_is_idempotent(self, entries):
        first = recalculate_entries(Decimal("2"), entries)
        second = recalculate_entries(Decimal("2"), list(reversed(entries)))

        assert first == second

    def test_all_entries_reset_to_pending(self, entries):
        result = recalculate_entries(Decimal("2"), entries)

        assert {e.billing.billing_status for e in result.entries} == {
            BillingStatus.PENDING
        }

    def test_equal_start_times_ordered_by_creation(self):
        start = dt.datetime(2025, 2, 1, 9)
        entries = [
            RecalculationInput("b", start, 60, RATE, created_at=dt.datetime(2025, 2, 2)),
            RecalculationInput("a", start, 60, RATE, created_at=dt.datetime(2025, 2, 3)),
        ]

        result = recalculate_entries(Decimal("1"), entries)

        assert [e.entry_id for e in result.entries] == ["b", "a"]
        assert result.entries[0].billing.is_within_allowance is True
        assert result.entries[1].billing.is_within_allowance is False

    def test_entries_without_duration_count_as_zero(self):
        entries = [
            RecalculationInput("timer", dt.datetime(2025, 1, 1), None, RATE),
            RecalculationInput("e1", dt.datetime(2025, 1, 2), 60, RATE),
        ]

        result = recalculate_entries(Decimal("1"), entries)

        assert result.total_hours == Decimal("1")
        assert result.entries[0].billing.developer_amount == Decimal("0.00")

    def test_year_boundary_is_not_reset(self):
        """Test one continuous allowance pool across calendar years."""
        entries = [
            RecalculationInput("dec", dt.datetime(2024, 12, 30), 60, RATE),
            RecalculationInput("jan", dt.datetime(2025, 1, 2), 60, RATE),
        ]

        result = recalculate_entries(Decimal("1"), entries)

        assert result.entries[1].billing.is_within_allowance is False
        assert result.total_hours == Decimal("2")

    def test_matches_sequential_logging(self):
        """Test a rebuild reproduces what logging the entries one by one gave."""
        durations = [20, 20, 20, 45]
        client = usage(allowance="1", used="0")
        logged = []
        for minutes in durations:
            logged.append(evaluate_entry(client, minutes, RATE, NOW))
            client = apply_usage(client, minutes, NOW)

        result = recalculate_entries(
            Decimal("1"),
            [
                RecalculationInput(f"e{i}", dt.datetime(2025, 3, 1, 9 + i), m, RATE)
                for i, m in enumerate(durations)
            ],
        )

        assert [e.billing for e in result.entries] == logged
        assert result.total_hours == client.yearly_hours_used

    def test_empty_history(self):
        result = recalculate_entries(Decimal("2"), [])

        assert result.entries == []
        assert result.total_hours == Decimal("0")

    def test_negative_allowance_rejected(self):
        with pytest.raises(InvalidInputError, match="allowance"):
            recalculate_entries(Decimal("-1"), [])


class TestResolveHourlyRate:
    """Test the rate fallback chain."""

    def test_entry_rate_wins(self):
        assert resolve_hourly_rate(Decimal("100"), Decimal("90"), RATE) == Decimal("100")

    def test_developer_rate_when_entry_has_none(self):
        assert resolve_hourly_rate(None, Decimal("90"), RATE) == Decimal("90")

    def test_default_rate_last(self):
        assert resolve_hourly_rate(None, None, RATE) == Decimal("75")

    def test_explicit_zero_rate_is_kept(self):
        assert resolve_hourly_rate(Decimal("0"), Decimal("90"), RATE) == Decimal("0")
