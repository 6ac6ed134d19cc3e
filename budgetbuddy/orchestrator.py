"""
Main Orchestrator for Budget Buddy

This module ties together all the components and defines the
end-to-end flows for:
1. Transactions (draft → validate → categorize → append → recompute → save)
2. Budget plans (text → parse → preview → merge → save)
3. Insights (recent transactions + budgets → advice)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing invalid reaches the Transaction Store
- Assistant answers are validated, and every assistant failure has a fallback
- Mutations are serialized, and every step is audited

The assistant calls are the only places a flow waits on the outside world.
Each one is awaited to completion or timeout BEFORE the ledger lock is taken,
so a slow service never holds up other mutations.
"""

import asyncio
import threading
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, NamedTuple, Optional, Union
from uuid import UUID

import structlog
from pydantic import ValidationError

from budgetbuddy.agents import GeminiAssistant, LedgerAssistant
from budgetbuddy.audit import AuditLogger, create_correlation_id
from budgetbuddy.config import (
    LedgerSettings,
    MonthMatching,
    Settings,
    StorageBackend,
    get_settings,
)
from budgetbuddy.ledger import Ledger, PlanMergeResult, resolve_category, sample_transactions
from budgetbuddy.models.ledger import (
    Budget,
    ExpenseCategory,
    ParsedPlan,
    Transaction,
    TransactionDraft,
    TransactionType,
    match_category,
    to_decimal,
)
from budgetbuddy.services.storage import (
    AuditStorageInterface,
    InMemoryLedgerStorage,
    JsonFileLedgerStorage,
    LedgerStorageInterface,
    StorageError,
)
from budgetbuddy.validation import TransactionValidationError, TransactionValidator


logger = structlog.get_logger(__name__)

NO_PLAN_MESSAGE = "Could not extract a valid budget plan. Please ensure the text is clear."
NO_INSIGHTS_MESSAGE = "Keep tracking your expenses to see insights!"
INSIGHTS_UNAVAILABLE_MESSAGE = "Unable to generate insights at the moment."

DEFAULT_ASSISTANT_TIMEOUT = 20.0


class PlanImportResult(NamedTuple):
    applied: bool
    message: str
    merge: Optional[PlanMergeResult] = None
    plan: Optional[ParsedPlan] = None


class LedgerSession:
    """
    One open ledger plus everything needed to persist and audit it.

    All mutations go through `lock`. Use `open()` to build a session from
    storage; it seeds sample data when nothing was saved yet.

    Callers that share one session between threads, each with its own
    event loop, go through `run_exclusive()`.
    """

    def __init__(
        self,
        ledger: Ledger,
        storage: Optional[LedgerStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self.ledger = ledger
        self.storage = storage
        self.audit_logger = audit_logger or AuditLogger()
        self.lock = asyncio.Lock()
        self._thread_lock = threading.Lock()

    def run_exclusive(self, coro: Any) -> Any:
        """
        Run a mutating flow to completion on a fresh event loop.

        One calling thread at a time. `lock` only serializes coroutines
        that share a loop.
        """
        with self._thread_lock:
            return asyncio.run(coro)

    @classmethod
    async def open(
        cls,
        storage: Optional[LedgerStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        month_matching: MonthMatching = MonthMatching.MONTH_ONLY,
        seed_sample_data: bool = True,
        today: Callable[[], date] = date.today,
        correlation_id: Optional[UUID] = None,
    ) -> "LedgerSession":
        """
        Load the saved ledger, or start a new one.

        Raises:
            StorageError: If the storage exists but cannot be read
        """
        audit_logger = audit_logger or AuditLogger()
        snapshot = None
        if storage is not None:
            try:
                snapshot = await storage.load_snapshot()
            except StorageError as e:
                await audit_logger.log_error(
                    error_type="StorageError",
                    error_message=str(e),
                    details={"backend": storage.backend_name},
                    correlation_id=correlation_id,
                )
                raise

        if snapshot is None:
            transactions = sample_transactions(today()) if seed_sample_data else []
            ledger = Ledger(transactions, month_matching=month_matching, today=today)
        else:
            ledger = Ledger.from_snapshot(snapshot, month_matching=month_matching, today=today)
            await audit_logger.log_snapshot_loaded(
                transaction_count=len(snapshot.transactions),
                skipped=snapshot.skipped_records,
                correlation_id=correlation_id,
            )

        return cls(ledger, storage, audit_logger)

    async def commit(self, correlation_id: Optional[UUID] = None) -> bool:
        """
        Persist the current state. Call with `lock` held.

        A failed save is audited and reported as False. The in-memory
        ledger stays authoritative.
        """
        if self.storage is None:
            return True

        snapshot = self.ledger.snapshot()
        try:
            await self.storage.save_snapshot(snapshot)
        except Exception as e:
            await self.audit_logger.log_save_failed(
                backend=self.storage.backend_name,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            return False

        await self.audit_logger.log_snapshot_saved(
            transaction_count=len(snapshot.transactions),
            correlation_id=correlation_id,
        )
        return True

    async def log_spending(self, correlation_id: Optional[UUID]) -> None:
        await self.audit_logger.log_spending_recomputed(
            spent={b.category: b.spent for b in self.ledger.budgets.budgets if b.spent},
            transaction_count=len(self.ledger.transactions),
            correlation_id=correlation_id,
        )


class TransactionFlow:
    """
    Orchestrates adding and removing transactions.

    Flow:
    1. Validate → reject the whole submission on any error
    2. Categorize → only if no category was given, OTHER on any failure
    3. Append → head of the store, spending recomputed
    4. Save → failures are audited, never raised
    """

    def __init__(
        self,
        session: LedgerSession,
        assistant: Optional[LedgerAssistant] = None,
        validator: Optional[TransactionValidator] = None,
        timeout: Optional[float] = DEFAULT_ASSISTANT_TIMEOUT,
    ):
        self._session = session
        self._assistant = assistant
        self._validator = validator or TransactionValidator(today=session.ledger.today)
        self._timeout = timeout

    @property
    def validator(self) -> TransactionValidator:
        return self._validator

    async def add_transaction(
        self,
        draft: TransactionDraft,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Validate, categorize and store one transaction.

        Raises:
            TransactionValidationError: If the draft is incomplete or invalid.
                Nothing is stored in that case.
        """
        correlation_id = correlation_id or create_correlation_id()
        audit_logger = self._session.audit_logger

        result = self._validator.validate(draft)
        if not result.is_valid:
            await audit_logger.log_transaction_rejected(
                issues=[
                    {"field": i.field, "type": i.issue_type, "message": i.message}
                    for i in result.errors
                ],
                correlation_id=correlation_id,
            )
            raise TransactionValidationError(result.issues)

        category: Any = draft.category
        if category is None:
            resolution = await resolve_category(
                draft.description,
                draft.kind,
                self._assistant,
                timeout=self._timeout,
            )
            if resolution.error and self._assistant is not None:
                await audit_logger.log_external_service_error(
                    service=self._assistant.service_name,
                    operation="suggest_category",
                    error_message=resolution.error,
                    correlation_id=correlation_id,
                )
            await audit_logger.log_category_resolved(
                description=draft.description,
                suggested=resolution.suggested,
                category=resolution.category.value,
                fell_back=resolution.fell_back,
                correlation_id=correlation_id,
            )
            category = resolution.category

        transaction = Transaction(
            amount=draft.amount,
            kind=draft.kind,
            category=category,
            description=draft.description,
            date=draft.date or self._session.ledger.today(),
        )

        async with self._session.lock:
            self._session.ledger.append(transaction)
            await audit_logger.log_transaction_added(
                transaction_id=transaction.id,
                category=transaction.category.value,
                amount=transaction.amount,
                correlation_id=correlation_id,
            )
            await self._session.log_spending(correlation_id)
            await self._session.commit(correlation_id)

        return transaction

    async def remove_transaction(
        self,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """Remove a transaction. Unknown ids are a no-op and return False."""
        correlation_id = correlation_id or create_correlation_id()
        audit_logger = self._session.audit_logger

        async with self._session.lock:
            removed = self._session.ledger.remove(transaction_id)
            await audit_logger.log_transaction_removed(
                transaction_id=transaction_id,
                found=removed,
                correlation_id=correlation_id,
            )
            if removed:
                await self._session.log_spending(correlation_id)
                await self._session.commit(correlation_id)

        return removed


class BudgetPlanFlow:
    """
    Orchestrates budget plan import and manual limit edits.

    Plan import is two steps so the user can preview what was found:
    1. parse_plan → ParsedPlan or None (Budget Set untouched)
    2. apply_plan → merge limits, drop lines that match no category
    """

    def __init__(
        self,
        session: LedgerSession,
        assistant: Optional[LedgerAssistant] = None,
        timeout: Optional[float] = DEFAULT_ASSISTANT_TIMEOUT,
    ):
        self._session = session
        self._assistant = assistant
        self._timeout = timeout

    async def parse_plan(
        self,
        plan_text: str,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[ParsedPlan]:
        """
        Ask the assistant to structure a free-text plan.

        Returns None if no plan could be extracted, for whatever reason.
        """
        correlation_id = correlation_id or create_correlation_id()
        audit_logger = self._session.audit_logger

        if not plan_text or not plan_text.strip():
            await audit_logger.log_plan_extraction_failed(
                reason="empty plan text",
                correlation_id=correlation_id,
            )
            return None

        if self._assistant is None:
            await audit_logger.log_plan_extraction_failed(
                reason="no assistant configured",
                correlation_id=correlation_id,
            )
            return None

        try:
            data = await asyncio.wait_for(
                self._assistant.parse_budget_plan(plan_text),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            await audit_logger.log_external_service_error(
                service=self._assistant.service_name,
                operation="parse_budget_plan",
                error_message=f"timed out after {self._timeout}s",
                correlation_id=correlation_id,
            )
            await audit_logger.log_plan_extraction_failed(
                reason="timed out",
                correlation_id=correlation_id,
            )
            return None
        except Exception as e:
            await audit_logger.log_external_service_error(
                service=self._assistant.service_name,
                operation="parse_budget_plan",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            await audit_logger.log_plan_extraction_failed(
                reason=str(e),
                correlation_id=correlation_id,
            )
            return None

        plan = ParsedPlan.from_untrusted(data)
        if plan is None:
            await audit_logger.log_plan_extraction_failed(
                reason="answer was not a plan",
                correlation_id=correlation_id,
            )
            return None

        await audit_logger.log_plan_parsed(
            line_count=len(plan.budgets),
            month=plan.month,
            correlation_id=correlation_id,
        )
        return plan

    async def apply_plan(
        self,
        plan: ParsedPlan,
        correlation_id: Optional[UUID] = None,
    ) -> PlanMergeResult:
        """Merge a parsed plan into the Budget Set and save."""
        correlation_id = correlation_id or create_correlation_id()
        audit_logger = self._session.audit_logger

        async with self._session.lock:
            result = self._session.ledger.apply_plan(plan)
            for line in result.dropped:
                await audit_logger.log_plan_line_dropped(
                    category=line.category,
                    limit=line.limit,
                    correlation_id=correlation_id,
                )
            await audit_logger.log_plan_applied(
                applied=result.applied,
                dropped=[line.category for line in result.dropped],
                correlation_id=correlation_id,
            )
            await self._session.commit(correlation_id)

        return result

    async def import_plan(
        self,
        plan_text: str,
        correlation_id: Optional[UUID] = None,
    ) -> PlanImportResult:
        """Parse and apply in one go."""
        correlation_id = correlation_id or create_correlation_id()

        plan = await self.parse_plan(plan_text, correlation_id)
        if plan is None:
            return PlanImportResult(applied=False, message=NO_PLAN_MESSAGE)

        merge = await self.apply_plan(plan, correlation_id)
        message = f"Budget plan applied: {len(merge.applied)} limits updated."
        if merge.dropped:
            message += f" {len(merge.dropped)} lines did not match a category."
        return PlanImportResult(applied=True, message=message, merge=merge, plan=plan)

    async def set_limit(
        self,
        category: Union[ExpenseCategory, str],
        value: Any,
        correlation_id: Optional[UUID] = None,
    ) -> Budget:
        """
        Set one category's limit by hand.

        Anything that is not a finite number is treated as 0.

        Raises:
            ValueError: If `category` is not an expense category
        """
        correlation_id = correlation_id or create_correlation_id()

        resolved = match_category(category, TransactionType.EXPENSE)
        if resolved is None:
            raise ValueError(f"Unknown expense category: {category!r}")
        limit = to_decimal(value)
        if limit is None:
            limit = Decimal("0")

        async with self._session.lock:
            previous = self._session.ledger.set_limit(resolved, limit)
            await self._session.audit_logger.log_limit_updated(
                category=resolved.value,
                old_limit=previous,
                new_limit=limit,
                correlation_id=correlation_id,
            )
            await self._session.commit(correlation_id)

        return self._session.ledger.budgets.get(resolved)


class InsightFlow:
    """Asks the assistant for advice on recent activity. Never raises."""

    def __init__(
        self,
        session: LedgerSession,
        assistant: Optional[LedgerAssistant] = None,
        transaction_count: int = 10,
        timeout: Optional[float] = DEFAULT_ASSISTANT_TIMEOUT,
    ):
        self._session = session
        self._assistant = assistant
        self._transaction_count = transaction_count
        self._timeout = timeout

    async def get_insights(self, correlation_id: Optional[UUID] = None) -> str:
        correlation_id = correlation_id or create_correlation_id()
        audit_logger = self._session.audit_logger
        recent = self._session.ledger.transactions[:self._transaction_count]

        if self._assistant is None:
            await audit_logger.log_insights_generated(
                transaction_count=len(recent),
                fallback=True,
                correlation_id=correlation_id,
            )
            return INSIGHTS_UNAVAILABLE_MESSAGE

        try:
            text = await asyncio.wait_for(
                self._assistant.generate_insights(recent, self._session.ledger.budgets),
                timeout=self._timeout,
            )
        except Exception as e:
            await audit_logger.log_external_service_error(
                service=self._assistant.service_name,
                operation="generate_insights",
                error_message=str(e) or type(e).__name__,
                correlation_id=correlation_id,
            )
            await audit_logger.log_insights_generated(
                transaction_count=len(recent),
                fallback=True,
                correlation_id=correlation_id,
            )
            return INSIGHTS_UNAVAILABLE_MESSAGE

        text = (text or "").strip()
        await audit_logger.log_insights_generated(
            transaction_count=len(recent),
            fallback=not text,
            correlation_id=correlation_id,
        )
        return text or NO_INSIGHTS_MESSAGE


class AppComponents(NamedTuple):
    session: LedgerSession
    transactions: TransactionFlow
    plans: BudgetPlanFlow
    insights: InsightFlow


def create_ledger_storage(
    ledger_settings: LedgerSettings,
) -> tuple[LedgerStorageInterface, Optional[AuditStorageInterface]]:
    """
    Build the configured storage backend.

    Returns:
        (ledger_storage, audit_storage). Audit storage is only available
        with the Google Sheets backend.
    """
    backend = ledger_settings.storage_backend

    if backend == StorageBackend.GOOGLE_SHEETS:
        # Imported here so the other backends work without Google libraries configured
        from budgetbuddy.services.storage.google_sheets import (
            GoogleSheetsAuditStorage,
            GoogleSheetsClient,
            GoogleSheetsLedgerStorage,
        )
        client = GoogleSheetsClient()
        return GoogleSheetsLedgerStorage(client), GoogleSheetsAuditStorage(client)

    if backend == StorageBackend.JSON:
        return JsonFileLedgerStorage(Path(ledger_settings.data_file)), None

    return InMemoryLedgerStorage(), None


def create_assistant(settings: Settings) -> Optional[LedgerAssistant]:
    """The Gemini assistant, or None if Gemini is not configured."""
    try:
        return GeminiAssistant(
            settings=settings.gemini,
            insight_transaction_count=settings.ledger.insight_transaction_count,
        )
    except Exception as e:
        logger.warning("assistant_not_configured", error=str(e))
        return None


async def create_app_components(
    settings: Optional[Settings] = None,
    assistant: Optional[LedgerAssistant] = None,
    storage: Optional[LedgerStorageInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Application settings. Loaded from the environment if None.
        assistant: Text-understanding service. Built from settings if None.
        storage: Ledger storage. Built from settings if None.
        audit_storage: Audit storage. Built from settings if None.

    Returns:
        AppComponents with an opened session and the three flows
    """
    settings = settings or get_settings()
    ledger_settings = settings.ledger

    if storage is None:
        try:
            storage, configured_audit_storage = create_ledger_storage(ledger_settings)
        except Exception as e:
            # Storage not configured - continue without persistence
            logger.warning("storage_not_configured", error=str(e))
            storage, configured_audit_storage = InMemoryLedgerStorage(), None
        audit_storage = audit_storage or configured_audit_storage

    if assistant is None:
        assistant = create_assistant(settings)

    try:
        timeout = settings.gemini.timeout_seconds
    except ValidationError:
        timeout = DEFAULT_ASSISTANT_TIMEOUT

    audit_logger = AuditLogger(audit_storage)
    session = await LedgerSession.open(
        storage=storage,
        audit_logger=audit_logger,
        month_matching=ledger_settings.month_matching,
        seed_sample_data=ledger_settings.seed_sample_data,
    )

    return AppComponents(
        session=session,
        transactions=TransactionFlow(session, assistant, timeout=timeout),
        plans=BudgetPlanFlow(session, assistant, timeout=timeout),
        insights=InsightFlow(
            session,
            assistant,
            transaction_count=ledger_settings.insight_transaction_count,
            timeout=timeout,
        ),
    )
