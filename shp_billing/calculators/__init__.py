"""Calculator modules for the billing engine."""

from shp_billing.calculators.allowance_calculator import (
    EntryBilling,
    RecalculatedEntry,
    RecalculationInput,
    RecalculationResult,
    apply_usage,
    effective_hours_used,
    evaluate_entry,
    needs_year_reset,
    recalculate_entries,
    resolve_hourly_rate,
)
from shp_billing.calculators.time_utils import (
    calculate_duration_minutes,
    minutes_to_hours,
    quantize_hours,
    quantize_money,
    start_of_year,
    utc_now,
)

__all__ = [
    # allowance_calculator
    "EntryBilling",
    "RecalculatedEntry",
    "RecalculationInput",
    "RecalculationResult",
    "apply_usage",
    "effective_hours_used",
    "evaluate_entry",
    "needs_year_reset",
    "recalculate_entries",
    "resolve_hourly_rate",
    # time_utils
    "calculate_duration_minutes",
    "minutes_to_hours",
    "quantize_hours",
    "quantize_money",
    "start_of_year",
    "utc_now",
]
