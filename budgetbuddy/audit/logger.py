"""
Audit Logger

DESIGN DECISION: Every change to the ledger is logged.
This provides:
1. Traceability of every limit and transaction
2. A record of what the text-understanding service answered
3. Debugging capability when a collaborator or backend fails

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from decimal import Decimal
from typing import Mapping, Optional
from uuid import UUID, uuid4

import structlog

from budgetbuddy.models.audit import AuditEvent, AuditEventBuilder
from budgetbuddy.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("budgetbuddy.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_transaction_added(
        self,
        transaction_id: str,
        category: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a new transaction."""
        await self.log(AuditEventBuilder.transaction_added(
            transaction_id=transaction_id,
            category=category,
            amount=str(amount),
            correlation_id=correlation_id,
        ))

    async def log_transaction_removed(
        self,
        transaction_id: str,
        found: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a transaction removal (including no-op removals)."""
        await self.log(AuditEventBuilder.transaction_removed(
            transaction_id=transaction_id,
            found=found,
            correlation_id=correlation_id,
        ))

    async def log_transaction_rejected(
        self,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a rejected submission."""
        await self.log(AuditEventBuilder.transaction_rejected(
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_category_resolved(
        self,
        description: str,
        suggested: Optional[str],
        category: str,
        fell_back: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log what the categorization service said and what was stored."""
        await self.log(AuditEventBuilder.category_resolved(
            description=description,
            suggested=suggested,
            category=category,
            fell_back=fell_back,
            correlation_id=correlation_id,
        ))

    async def log_spending_recomputed(
        self,
        spent: Mapping,
        transaction_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a spending recomputation."""
        await self.log(AuditEventBuilder.spending_recomputed(
            spent={getattr(k, "value", str(k)): str(v) for k, v in spent.items()},
            transaction_count=transaction_count,
            correlation_id=correlation_id,
        ))

    async def log_plan_parsed(
        self,
        line_count: int,
        month: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a successful plan extraction."""
        await self.log(AuditEventBuilder.plan_parsed(
            line_count=line_count,
            month=month,
            correlation_id=correlation_id,
        ))

    async def log_plan_extraction_failed(
        self,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log that no plan could be extracted."""
        await self.log(AuditEventBuilder.plan_extraction_failed(
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_plan_applied(
        self,
        applied: Mapping,
        dropped: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a plan merge."""
        await self.log(AuditEventBuilder.plan_applied(
            applied={getattr(k, "value", str(k)): str(v) for k, v in applied.items()},
            dropped=dropped,
            correlation_id=correlation_id,
        ))

    async def log_plan_line_dropped(
        self,
        category: str,
        limit: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a plan line that matched no budget."""
        await self.log(AuditEventBuilder.plan_line_dropped(
            category=category,
            limit=str(limit),
            correlation_id=correlation_id,
        ))

    async def log_limit_updated(
        self,
        category: str,
        old_limit: Decimal,
        new_limit: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a manual limit change."""
        await self.log(AuditEventBuilder.limit_updated(
            category=category,
            old_limit=str(old_limit),
            new_limit=str(new_limit),
            correlation_id=correlation_id,
        ))

    async def log_insights_generated(
        self,
        transaction_count: int,
        fallback: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an insights request."""
        await self.log(AuditEventBuilder.insights_generated(
            transaction_count=transaction_count,
            fallback=fallback,
            correlation_id=correlation_id,
        ))

    async def log_snapshot_loaded(
        self,
        transaction_count: int,
        skipped: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a ledger load."""
        await self.log(AuditEventBuilder.snapshot_loaded(
            transaction_count=transaction_count,
            skipped=skipped,
            correlation_id=correlation_id,
        ))

    async def log_snapshot_saved(
        self,
        transaction_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a ledger save."""
        await self.log(AuditEventBuilder.snapshot_saved(
            transaction_count=transaction_count,
            correlation_id=correlation_id,
        ))

    async def log_save_failed(
        self,
        backend: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed ledger save."""
        await self.log(AuditEventBuilder.save_failed(
            backend=backend,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a plan import).
    Pass it through all subsequent operations.
    """
    return uuid4()
