"""
Billing service: the allowance engine bound to the database.

Every operation that reads and then writes a client's usage runs:

1. inside the client's in-process lock (``ClientLockRegistry``)
2. inside one database transaction (``session_scope``), reading the client
   row ``FOR UPDATE`` so the snapshot is the latest committed one
3. inside ``RetryHandler``, which re-runs steps 1 and 2 from scratch when the
   optimistic ``version`` check or the database reports a lost race

Validation happens before step 1, so rejected input never mutates state.
"""

import datetime as dt
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Dict, Iterator, List, Optional

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from shp_billing.calculators.allowance_calculator import (
    EntryBilling,
    RecalculationInput,
    apply_usage,
    evaluate_entry,
    needs_year_reset,
    recalculate_entries,
    resolve_hourly_rate,
)
from shp_billing.calculators.time_utils import (
    calculate_duration_minutes,
    start_of_year,
    utc_now,
)
from shp_billing.config.settings import BillingEngineConfig, get_config
from shp_billing.db.engine import session_scope
from shp_billing.db.models import Client, TimeEntry
from shp_billing.db.repository import (
    ClientRepository,
    DeveloperRepository,
    TaskRepository,
    TimeEntryRepository,
)
from shp_billing.exceptions import (
    ConcurrentUpdateConflict,
    InvalidInputError,
    NotFoundError,
    PartialRecalculationFailure,
)
from shp_billing.models.billing import TimeEntryInput
from shp_billing.reports.billing_reports import (
    AllowanceTrackingItem,
    BillingSummary,
    ClientBreakdownItem,
    ClientRecord,
    DeveloperPayment,
    EntryRecord,
    allowance_tracking,
    client_breakdown,
    developer_payments,
    summarize_entries,
)
from shp_billing.services.client_locks import ClientLockRegistry
from shp_billing.services.retry_handler import RetryHandler
from shp_billing.utils.logging_utils import (
    LogContext,
    generate_correlation_id,
    log_function_call,
)
from shp_billing.validators.entry_validators import EntryValidators, raise_for_errors

logger = logging.getLogger(__name__)


@dataclass
class TimeEntryResult:
    """A stored time entry and the client usage after it."""

    entry_id: str
    client_id: str
    duration_minutes: Optional[int]
    hourly_rate: Decimal
    billing: EntryBilling
    yearly_hours_used: Decimal
    year_reset_applied: bool

    @property
    def is_active_timer(self) -> bool:
        return self.duration_minutes is None


@dataclass
class RecalculationSummary:
    """Totals of one client's recalculation pass."""

    client_id: str
    entries_processed: int
    total_hours: Decimal
    free_hours: Decimal
    billable_hours: Decimal


@dataclass
class BulkRecalculationResult:
    """Per-client outcomes of a bulk recalculation."""

    results: Dict[str, RecalculationSummary] = field(default_factory=dict)
    failures: Dict[str, Exception] = field(default_factory=dict)

    @property
    def succeeded(self) -> int:
        return len(self.results)

    @property
    def failed(self) -> int:
        return len(self.failures)


@dataclass
class YearResetResult:
    """Clients whose usage counter was reset."""

    reset_date: dt.datetime
    client_ids: List[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.client_ids)


@dataclass
class AllowanceUpdateResult:
    """Outcome of changing a client's allowance."""

    client_id: str
    previous_allowance: Decimal
    new_allowance: Decimal
    recalculation: Optional[RecalculationSummary] = None


@contextmanager
def _translate_conflicts(client_id: str) -> Iterator[None]:
    """Report a failed optimistic version check as ConcurrentUpdateConflict."""
    try:
        yield
    except StaleDataError as e:
        logger.warning(f"Concurrent usage update detected for client {client_id}")
        raise ConcurrentUpdateConflict(client_id) from e


class BillingService:
    """
    Logs time, stops timers, recalculates and resets client allowances.

    Example:
        >>> service = BillingService(create_session_factory(engine))
        >>> result = service.log_time(
        ...     TimeEntryInput(task_id=task_id, start_time=start, duration_minutes=90)
        ... )
        >>> result.billing.developer_amount
        Decimal('112.50')
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        config: Optional[BillingEngineConfig] = None,
        clock: Callable[[], dt.datetime] = utc_now,
        lock_registry: Optional[ClientLockRegistry] = None,
        retry_handler: Optional[RetryHandler] = None,
    ):
        """
        Initialize the billing service.

        Args:
            session_factory: Factory for database sessions
            config: Engine configuration (defaults to the global config)
            clock: Returns the current naive UTC time
            lock_registry: Per-client locks; share one registry between all
                services that write to the same database in this process
            retry_handler: Retry policy for lost races
        """
        self.session_factory = session_factory
        self.config = config or get_config()
        self.clock = clock
        self.locks = lock_registry or ClientLockRegistry()
        self.retry_handler = retry_handler or RetryHandler(
            max_retries=self.config.max_retries,
            base_delay=self.config.retry_delay,
        )

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def create_client(
        self,
        domain_name: str,
        annual_hour_allowance: Optional[Decimal] = None,
        notes: Optional[str] = None,
    ) -> Client:
        """Create a client, with the configured default allowance if none is given."""
        if annual_hour_allowance is None:
            annual_hour_allowance = self.config.default_annual_hour_allowance
        raise_for_errors(
            EntryValidators.validate_allowance(annual_hour_allowance),
            "Invalid annual hour allowance",
        )
        if not domain_name or not domain_name.strip():
            raise InvalidInputError("Client domain name is required")

        with session_scope(self.session_factory) as session:
            client = ClientRepository.create(
                session,
                domain_name=domain_name.strip(),
                annual_hour_allowance=Decimal(annual_hour_allowance),
                yearly_hours_used=Decimal("0"),
                notes=notes,
            )
        logger.info(f"Created client {client.domain_name} ({client.id})")
        return client

    def create_task(self, client_id: str, title: str):
        """Create a task for an existing client."""
        with session_scope(self.session_factory) as session:
            ClientRepository.get_or_raise(session, client_id)
            task = TaskRepository.create(session, client_id=client_id, title=title)
        logger.info(f"Created task {task.id} for client {client_id}")
        return task

    def create_developer(
        self,
        name: str,
        email: Optional[str] = None,
        hourly_rate: Optional[Decimal] = None,
    ):
        """Create a developer, optionally with a default hourly rate."""
        if hourly_rate is not None:
            hourly_rate = Decimal(hourly_rate)
            if not hourly_rate.is_finite():
                raise InvalidInputError(
                    f"Hourly rate must be a finite number, got {hourly_rate}"
                )
            if hourly_rate < 0:
                raise InvalidInputError(f"Hourly rate cannot be negative, got {hourly_rate}")

        with session_scope(self.session_factory) as session:
            developer = DeveloperRepository.create(
                session,
                name=name,
                email=email,
                hourly_rate=hourly_rate,
            )
        logger.info(f"Created developer {developer.name} ({developer.id})")
        return developer

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _run_for_client(self, client_id: str, operation: Callable, *args):
        """Run ``operation(session, client_id, *args)`` serialized and retried."""

        def attempt():
            with self.locks.lock(client_id), LogContext(client_id=client_id):
                with _translate_conflicts(client_id), session_scope(
                    self.session_factory
                ) as session:
                    return operation(session, client_id, *args)

        attempt.__name__ = getattr(operation, "__name__", "operation")
        return self.retry_handler.execute_with_retry(attempt)

    def _client_id_for_task(self, task_id: str) -> str:
        with session_scope(self.session_factory) as session:
            task = TaskRepository.get(session, task_id)
            if task is None:
                raise NotFoundError("Task", task_id)
            return task.client_id

    def _developer_rate(self, session: Session, developer_id: Optional[str]):
        if not developer_id:
            return None
        developer = DeveloperRepository.get(session, developer_id)
        if developer is None:
            raise NotFoundError("Developer", developer_id)
        return developer.hourly_rate

    def _bill_entry(
        self, client: Client, entry: TimeEntry, duration_minutes: Optional[int]
    ) -> TimeEntryResult:
        """Evaluate ``entry`` against the locked client and apply its usage."""
        now = self.clock()
        usage = client.to_usage()

        billing = evaluate_entry(usage, duration_minutes or 0, entry.hourly_rate, now)
        entry.apply_billing(billing)

        year_reset_applied = False
        # Running timers are counted when they stop
        if duration_minutes:
            year_reset_applied = needs_year_reset(usage.last_year_reset, now)
            client.apply_usage(apply_usage(usage, duration_minutes, now))
            if year_reset_applied:
                logger.info(
                    f"New calendar year for client {client.id}: "
                    f"discarded {usage.yearly_hours_used} h from previous year"
                )

        return TimeEntryResult(
            entry_id=entry.id,
            client_id=client.id,
            duration_minutes=duration_minutes,
            hourly_rate=entry.hourly_rate,
            billing=billing,
            yearly_hours_used=client.yearly_hours_used,
            year_reset_applied=year_reset_applied,
        )

    # ------------------------------------------------------------------
    # Logging time
    # ------------------------------------------------------------------

    def log_time(self, entry_input: TimeEntryInput) -> TimeEntryResult:
        """
        Store a time entry and charge it against the client's allowance.

        The duration is the explicit ``duration_minutes`` or, when that is
        missing or zero, derived from ``start_time``/``end_time``. Without either the entry is
        a running timer: it is stored with zero amounts and does not count
        against the allowance until ``stop_timer``.

        Args:
            entry_input: The submitted entry

        Returns:
            TimeEntryResult with the entry's billing fields

        Raises:
            InvalidInputError: If the entry fails validation
            NotFoundError: If the task or developer does not exist
            ConcurrentUpdateConflict: If the retries could not win the race
        """
        raise_for_errors(
            EntryValidators.validate_time_entry(entry_input), "Invalid time entry"
        )

        with LogContext(correlation_id=generate_correlation_id()):
            client_id = self._client_id_for_task(entry_input.task_id)
            result = self._run_for_client(client_id, self._log_time, entry_input)

        if result.is_active_timer:
            logger.info(f"Started timer {result.entry_id} for client {client_id}")
        else:
            logger.info(
                f"Logged {result.duration_minutes} min for client {client_id}: "
                f"billable {result.billing.billable_amount}, "
                f"used {result.yearly_hours_used} h"
            )
        return result

    def _log_time(
        self, session: Session, client_id: str, entry_input: TimeEntryInput
    ) -> TimeEntryResult:
        client = ClientRepository.get_or_raise(session, client_id, for_update=True)
        developer_rate = self._developer_rate(session, entry_input.developer_id)

        duration_minutes = entry_input.duration_minutes
        # A zero duration counts as missing when an end time is known
        if not duration_minutes and entry_input.end_time is not None:
            duration_minutes = calculate_duration_minutes(
                entry_input.start_time, entry_input.end_time
            )

        entry = TimeEntryRepository.create(
            session,
            task_id=entry_input.task_id,
            developer_id=entry_input.developer_id,
            description=entry_input.description,
            start_time=entry_input.start_time,
            end_time=entry_input.end_time,
            duration_minutes=duration_minutes,
            hourly_rate=resolve_hourly_rate(
                entry_input.hourly_rate,
                developer_rate,
                self.config.default_hourly_rate,
            ),
        )
        return self._bill_entry(client, entry, duration_minutes)

    def stop_timer(self, entry_id: Optional[str] = None) -> TimeEntryResult:
        """
        Stop a running timer and bill it like a newly logged entry.

        Args:
            entry_id: Timer to stop; the most recently started one if None

        Returns:
            TimeEntryResult for the stopped entry

        Raises:
            NotFoundError: If there is no matching running timer
            InvalidInputError: If the timer starts in the future
        """
        with LogContext(correlation_id=generate_correlation_id()):
            with session_scope(self.session_factory) as session:
                timer = TimeEntryRepository.latest_active_timer(session, entry_id)
                if timer is None:
                    raise NotFoundError("Active timer", entry_id)
                timer_id = timer.id
                client_id = timer.task.client_id

            result = self._run_for_client(client_id, self._stop_timer, timer_id)

        logger.info(
            f"Stopped timer {timer_id} after {result.duration_minutes} min: "
            f"billable {result.billing.billable_amount}"
        )
        return result

    def _stop_timer(
        self, session: Session, client_id: str, timer_id: str
    ) -> TimeEntryResult:
        client = ClientRepository.get_or_raise(session, client_id, for_update=True)
        entry = TimeEntryRepository.get(session, timer_id)
        if entry is None or not entry.is_active_timer:
            raise NotFoundError("Active timer", timer_id)

        now = self.clock()
        duration_minutes = calculate_duration_minutes(entry.start_time, now)
        if duration_minutes < 0:
            raise InvalidInputError(
                f"Timer {timer_id} starts in the future ({entry.start_time})"
            )

        entry.end_time = now
        entry.duration_minutes = duration_minutes
        entry.hourly_rate = resolve_hourly_rate(
            entry.hourly_rate,
            entry.developer.hourly_rate if entry.developer else None,
            self.config.default_hourly_rate,
        )
        return self._bill_entry(client, entry, duration_minutes)

    # ------------------------------------------------------------------
    # Recalculation
    # ------------------------------------------------------------------

    def recalculate(self, client_id: str) -> RecalculationSummary:
        """
        Rebuild billing fields for all of a client's entries.

        Entries are replayed by start time from zero usage against the
        current allowance; every entry is set back to PENDING and the
        client's ``yearly_hours_used`` becomes the sum of all entry hours.
        Running the pass twice yields the same result.

        Raises:
            NotFoundError: If the client does not exist
            PartialRecalculationFailure: If an entry could not be stored;
                nothing was changed
        """
        with LogContext(correlation_id=generate_correlation_id()):
            summary = self._run_for_client(client_id, self._recalculate)

        logger.info(
            f"Recalculated {summary.entries_processed} entries for client "
            f"{client_id}: {summary.total_hours} h total, "
            f"{summary.free_hours} h free, {summary.billable_hours} h billable"
        )
        return summary

    def _recalculate(self, session: Session, client_id: str) -> RecalculationSummary:
        client = ClientRepository.get_or_raise(session, client_id, for_update=True)
        return self._recalculate_client(session, client)

    def _recalculate_client(
        self, session: Session, client: Client
    ) -> RecalculationSummary:
        entries = TimeEntryRepository.list_for_client(session, client.id)
        by_id = {entry.id: entry for entry in entries}

        result = recalculate_entries(
            client.annual_hour_allowance,
            [
                RecalculationInput(
                    entry_id=entry.id,
                    start_time=entry.start_time,
                    duration_minutes=entry.duration_minutes,
                    hourly_rate=resolve_hourly_rate(
                        entry.hourly_rate,
                        entry.developer.hourly_rate if entry.developer else None,
                        self.config.default_hourly_rate,
                    ),
                    created_at=entry.created_at,
                )
                for entry in entries
            ],
        )

        for recalculated in result.entries:
            entry = by_id[recalculated.entry_id]
            try:
                entry.apply_billing(recalculated.billing)
                session.flush()
            except (StaleDataError, OperationalError):
                raise
            except SQLAlchemyError as e:
                logger.error(
                    f"Failed to store recalculated billing for entry {entry.id}: {e}"
                )
                raise PartialRecalculationFailure(client.id, [entry.id], cause=e) from e

        client.yearly_hours_used = result.total_hours
        session.flush()

        return RecalculationSummary(
            client_id=client.id,
            entries_processed=len(result.entries),
            total_hours=result.total_hours,
            free_hours=result.free_hours,
            billable_hours=result.billable_hours,
        )

    @log_function_call(level="DEBUG")
    def recalculate_all(
        self, client_ids: Optional[List[str]] = None
    ) -> BulkRecalculationResult:
        """
        Recalculate several clients in parallel.

        Each client still runs serialized under its own lock; a failure of
        one client is recorded in the result and does not stop the others.

        Args:
            client_ids: Clients to recalculate (all clients if None)

        Returns:
            BulkRecalculationResult with per-client summaries and failures
        """
        if client_ids is None:
            with session_scope(self.session_factory) as session:
                client_ids = ClientRepository.list_ids(session)

        bulk = BulkRecalculationResult()
        if not client_ids:
            return bulk

        workers = min(self.config.recalculation_workers, len(client_ids))
        logger.info(f"Recalculating {len(client_ids)} clients with {workers} workers")

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(self.recalculate, client_id): client_id
                for client_id in client_ids
            }
            for future in as_completed(futures):
                client_id = futures[future]
                try:
                    bulk.results[client_id] = future.result()
                except Exception as e:
                    logger.error(
                        f"Recalculation failed for client {client_id}: "
                        f"{type(e).__name__}: {e}"
                    )
                    bulk.failures[client_id] = e

        logger.info(
            f"Bulk recalculation finished: {bulk.succeeded} succeeded, "
            f"{bulk.failed} failed"
        )
        return bulk

    # ------------------------------------------------------------------
    # Year resets and allowance changes
    # ------------------------------------------------------------------

    def _resolve_reset_date(self, target_year: Optional[int]) -> dt.datetime:
        now = self.clock()
        year = now.year if target_year is None else target_year
        raise_for_errors(EntryValidators.validate_year(year, now), "Invalid year")
        return start_of_year(year)

    def reset_year(
        self, client_id: str, target_year: Optional[int] = None
    ) -> YearResetResult:
        """
        Zero a client's usage and mark it reset on January 1st of ``target_year``.

        Stored entries keep their billing fields.

        Args:
            client_id: Client to reset
            target_year: Year to reset into (current year if None)
        """
        reset_date = self._resolve_reset_date(target_year)

        with LogContext(correlation_id=generate_correlation_id()):
            self._run_for_client(client_id, self._reset_client, reset_date, False)

        logger.info(f"Reset yearly hours of client {client_id} to {reset_date.date()}")
        return YearResetResult(reset_date=reset_date, client_ids=[client_id])

    def _reset_client(
        self,
        session: Session,
        client_id: str,
        reset_date: dt.datetime,
        only_if_stale: bool,
    ) -> bool:
        client = ClientRepository.get_or_raise(session, client_id, for_update=True)
        if only_if_stale and not (
            client.last_year_reset is None or client.last_year_reset < reset_date
        ):
            return False

        client.yearly_hours_used = Decimal("0")
        client.last_year_reset = reset_date
        return True

    def bulk_reset_year(self, target_year: Optional[int] = None) -> YearResetResult:
        """
        Reset every client not yet reset for ``target_year``.

        Clients whose ``last_year_reset`` is missing or earlier than January
        1st of ``target_year`` are reset; the rest are left alone.
        """
        reset_date = self._resolve_reset_date(target_year)
        result = YearResetResult(reset_date=reset_date)

        with LogContext(correlation_id=generate_correlation_id()):
            with session_scope(self.session_factory) as session:
                candidates = ClientRepository.list_ids_needing_reset(session, reset_date)

            for client_id in candidates:
                # Re-checked under the lock; another writer may have reset it
                if self._run_for_client(client_id, self._reset_client, reset_date, True):
                    result.client_ids.append(client_id)

        logger.info(f"Reset {result.count} clients to {reset_date.date()}")
        return result

    def update_allowance(
        self, client_id: str, new_allowance: Decimal
    ) -> AllowanceUpdateResult:
        """
        Change a client's annual hour allowance.

        When the client has used any hours, its entries are recalculated
        against the new allowance in the same transaction.

        Raises:
            InvalidInputError: If the allowance is missing or negative
            NotFoundError: If the client does not exist
        """
        raise_for_errors(
            EntryValidators.validate_allowance(new_allowance),
            "Invalid annual hour allowance",
        )

        with LogContext(correlation_id=generate_correlation_id()):
            result = self._run_for_client(
                client_id, self._update_allowance, Decimal(new_allowance)
            )

        logger.info(
            f"Allowance of client {client_id} changed from "
            f"{result.previous_allowance} to {result.new_allowance} h"
            + (" (entries recalculated)" if result.recalculation else "")
        )
        return result

    def _update_allowance(
        self, session: Session, client_id: str, new_allowance: Decimal
    ) -> AllowanceUpdateResult:
        client = ClientRepository.get_or_raise(session, client_id, for_update=True)
        result = AllowanceUpdateResult(
            client_id=client_id,
            previous_allowance=client.annual_hour_allowance,
            new_allowance=new_allowance,
        )

        client.annual_hour_allowance = new_allowance
        session.flush()

        if client.yearly_hours_used > 0:
            result.recalculation = self._recalculate_client(session, client)
        return result

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def _default_period(
        self, start: Optional[dt.datetime], end: Optional[dt.datetime]
    ):
        """Fill a missing start/end with the current calendar month."""
        now = self.clock()
        month_start = dt.datetime(now.year, now.month, 1)
        if now.month == 12:
            next_month = dt.datetime(now.year + 1, 1, 1)
        else:
            next_month = dt.datetime(now.year, now.month + 1, 1)

        start = start or month_start
        end = end or next_month - dt.timedelta(microseconds=1)
        if end < start:
            raise InvalidInputError(f"Report end ({end}) is before start ({start})")
        return start, end

    def _entry_records(
        self,
        start: Optional[dt.datetime],
        end: Optional[dt.datetime],
        client_id: Optional[str] = None,
        developer_id: Optional[str] = None,
    ) -> List[EntryRecord]:
        start, end = self._default_period(start, end)
        with session_scope(self.session_factory) as session:
            entries = TimeEntryRepository.list_in_range(
                session, start, end, client_id=client_id, developer_id=developer_id
            )
            return [EntryRecord.from_time_entry(entry) for entry in entries]

    def billing_summary(
        self,
        start: Optional[dt.datetime] = None,
        end: Optional[dt.datetime] = None,
        client_id: Optional[str] = None,
        developer_id: Optional[str] = None,
    ) -> BillingSummary:
        """Summarize entries started in [start, end] (default: this month)."""
        return summarize_entries(
            self._entry_records(start, end, client_id=client_id, developer_id=developer_id)
        )

    def client_breakdown(
        self,
        start: Optional[dt.datetime] = None,
        end: Optional[dt.datetime] = None,
        client_id: Optional[str] = None,
    ) -> List[ClientBreakdownItem]:
        """Per-client totals for entries started in [start, end]."""
        return client_breakdown(self._entry_records(start, end, client_id=client_id))

    def developer_payments(
        self,
        start: Optional[dt.datetime] = None,
        end: Optional[dt.datetime] = None,
        developer_id: Optional[str] = None,
    ) -> List[DeveloperPayment]:
        """Per-developer amounts for entries started in [start, end]."""
        return developer_payments(
            self._entry_records(start, end, developer_id=developer_id)
        )

    def allowance_report(
        self, client_id: Optional[str] = None
    ) -> List[AllowanceTrackingItem]:
        """Allowance consumption per client in the current year."""
        with session_scope(self.session_factory) as session:
            clients = ClientRepository.list_clients(session, client_id=client_id)
            if client_id and not clients:
                raise NotFoundError("Client", client_id)
            records = [ClientRecord.from_client(client) for client in clients]
        return allowance_tracking(records, self.clock())
