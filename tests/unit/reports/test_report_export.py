"""Unit tests for report export to DataFrames and CSV."""

import datetime as dt
from decimal import Decimal

import pandas as pd

from shp_billing.models.billing import BillingStatus
from shp_billing.reports.billing_reports import (
    AllowanceStatus,
    AllowanceTrackingItem,
    ClientBreakdownItem,
    ClientShare,
    DeveloperPayment,
    EntryRecord,
    summarize_entries,
)
from shp_billing.reports.export import (
    ALLOWANCE_COLUMNS,
    CLIENT_BREAKDOWN_COLUMNS,
    DEVELOPER_PAYMENT_COLUMNS,
    allowance_frame,
    client_breakdown_frame,
    developer_payments_frame,
    summary_frame,
    write_csv,
)


def allowance_item(**overrides):
    values = dict(
        client_id="c-1",
        client_name="acme.example",
        annual_hour_allowance=Decimal("10"),
        yearly_hours_used=Decimal("9"),
        remaining_hours=Decimal("1"),
        usage_percentage=Decimal("90.00"),
        status=AllowanceStatus.EXCEEDED,
        last_year_reset=dt.datetime(2025, 1, 1),
        needs_year_reset=False,
    )
    values.update(overrides)
    return AllowanceTrackingItem(**values)


class TestFrames:
    """Test DataFrame construction per report."""

    def test_allowance_frame(self):
        df = allowance_frame([allowance_item()])

        assert list(df.columns) == ALLOWANCE_COLUMNS
        assert df.loc[0, "Client"] == "acme.example"
        assert df.loc[0, "Used"] == Decimal("9")
        assert df.loc[0, "Status"] == "EXCEEDED"

    def test_empty_frames_keep_columns(self):
        assert list(allowance_frame([]).columns) == ALLOWANCE_COLUMNS
        assert list(client_breakdown_frame([]).columns) == CLIENT_BREAKDOWN_COLUMNS
        assert list(developer_payments_frame([]).columns) == DEVELOPER_PAYMENT_COLUMNS
        assert developer_payments_frame([]).empty

    def test_client_breakdown_frame(self):
        item = ClientBreakdownItem(
            client_id="c-1",
            client_name="acme.example",
            entry_count=2,
            total_hours=Decimal("2"),
            free_hours=Decimal("1"),
            billable_hours=Decimal("1"),
            total_billable_amount=Decimal("75.00"),
            total_developer_amount=Decimal("150.00"),
        )

        df = client_breakdown_frame([item])

        assert df.loc[0, "Entries"] == 2
        assert df.loc[0, "Billable Amount"] == Decimal("75.00")

    def test_developer_payments_one_row_per_client(self):
        payment = DeveloperPayment(
            developer_id="d-1",
            developer_name="Jane Roe",
            email="jane@example.com",
            entry_count=3,
            total_hours=Decimal("1.5"),
            total_amount=Decimal("112.50"),
            client_breakdown={
                "other.example": ClientShare(
                    hours=Decimal("0.5"), amount=Decimal("37.50"), entries=1
                ),
                "acme.example": ClientShare(
                    hours=Decimal("1"), amount=Decimal("75.00"), entries=2
                ),
            },
        )

        df = developer_payments_frame([payment])

        assert list(df["Client"]) == ["acme.example", "other.example"]
        assert list(df["Amount"]) == [Decimal("75.00"), Decimal("37.50")]
        assert set(df["Developer"]) == {"Jane Roe"}

    def test_developer_without_clients_gets_total_row(self):
        payment = DeveloperPayment(
            developer_id="d-1",
            developer_name="Jane Roe",
            entry_count=1,
            total_hours=Decimal("1"),
            total_amount=Decimal("75.00"),
        )

        df = developer_payments_frame([payment])

        assert len(df) == 1
        assert pd.isna(df.loc[0, "Client"])
        assert df.loc[0, "Amount"] == Decimal("75.00")

    def test_summary_frame(self):
        entry = EntryRecord(
            entry_id="e-1",
            client_id="c-1",
            client_name="acme.example",
            developer_id="d-1",
            developer_name="Jane Roe",
            duration_minutes=60,
            billable_amount=Decimal("75.00"),
            developer_amount=Decimal("75.00"),
            is_within_allowance=False,
            billing_status=BillingStatus.PENDING,
        )

        df = summary_frame(summarize_entries([entry])).set_index("Metric")

        assert df.loc["Entries", "Value"] == 1
        assert df.loc["Billable Amount", "Value"] == Decimal("75.00")
        assert df.loc["Status PENDING", "Value"] == 1
        assert df.loc["Status PAID", "Value"] == 0


class TestWriteCsv:
    """Test CSV output."""

    def test_writes_exact_amounts(self, tmp_path):
        path = write_csv(allowance_frame([allowance_item()]), tmp_path / "allowance.csv")

        df = pd.read_csv(path, dtype=str)
        assert df.loc[0, "Allowance"] == "10"
        assert df.loc[0, "Usage %"] == "90.00"
        assert df.loc[0, "Last Reset"].startswith("2025-01-01")

    def test_creates_parent_folders(self, tmp_path):
        path = write_csv(allowance_frame([]), tmp_path / "out" / "reports" / "a.csv")

        assert path.exists()
        assert path.read_text().strip() == ",".join(ALLOWANCE_COLUMNS)
