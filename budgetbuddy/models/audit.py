"""
Audit Models for Budget Buddy

Every change to the ledger is recorded as an audit event. This gives:
1. Traceability of where each limit and transaction came from
2. Visibility into what the text-understanding service answered
3. Debugging information when a collaborator or storage backend fails

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Transactions
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_REMOVED = "transaction_removed"
    TRANSACTION_REJECTED = "transaction_rejected"

    # Categorization
    CATEGORY_RESOLVED = "category_resolved"
    CATEGORY_FALLBACK = "category_fallback"

    # Aggregation
    SPENDING_RECOMPUTED = "spending_recomputed"

    # Budget plans
    PLAN_PARSED = "plan_parsed"
    PLAN_EXTRACTION_FAILED = "plan_extraction_failed"
    PLAN_APPLIED = "plan_applied"
    PLAN_LINE_DROPPED = "plan_line_dropped"
    LIMIT_UPDATED = "limit_updated"

    # Insights
    INSIGHTS_GENERATED = "insights_generated"

    # Persistence
    SNAPSHOT_LOADED = "snapshot_loaded"
    SNAPSHOT_SAVED = "snapshot_saved"
    SAVE_FAILED = "save_failed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Entity ids are strings because transaction ids are opaque.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'budget', 'plan')"
    )
    entity_id: Optional[str] = None

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one plan import)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_added(tx_id, "Food", "12.50", correlation_id)
    """

    @staticmethod
    def transaction_added(
        transaction_id: str,
        category: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction added: {category} {amount}",
            details={"category": category, "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def transaction_removed(
        transaction_id: str,
        found: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REMOVED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=(
                "Transaction removed" if found
                else "Remove requested for unknown transaction (no-op)"
            ),
            details={"found": found},
            is_user_action=True,
        )

    @staticmethod
    def transaction_rejected(
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"Transaction rejected with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def category_resolved(
        description: str,
        suggested: Optional[str],
        category: str,
        fell_back: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.CATEGORY_FALLBACK if fell_back
                else AuditEventType.CATEGORY_RESOLVED
            ),
            severity=AuditSeverity.WARNING if fell_back else AuditSeverity.INFO,
            entity_type="category",
            correlation_id=correlation_id,
            description=(
                f"Category suggestion {suggested!r} not usable, stored as {category}"
                if fell_back
                else f"Category resolved to {category}"
            ),
            details={
                "description": description[:100],
                "suggested": suggested,
                "category": category,
            },
        )

    @staticmethod
    def spending_recomputed(
        spent: dict[str, str],
        transaction_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPENDING_RECOMPUTED,
            severity=AuditSeverity.DEBUG,
            entity_type="budget_set",
            correlation_id=correlation_id,
            description=f"Spending recomputed over {transaction_count} transactions",
            details={"spent": spent},
        )

    @staticmethod
    def plan_parsed(
        line_count: int,
        month: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PLAN_PARSED,
            entity_type="plan",
            correlation_id=correlation_id,
            description=f"Budget plan parsed with {line_count} category limits",
            details={"line_count": line_count, "month": month},
        )

    @staticmethod
    def plan_extraction_failed(
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PLAN_EXTRACTION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="plan",
            correlation_id=correlation_id,
            description="No valid budget plan could be extracted",
            details={"reason": reason},
            is_user_action=True,
        )

    @staticmethod
    def plan_applied(
        applied: dict[str, str],
        dropped: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PLAN_APPLIED,
            entity_type="plan",
            correlation_id=correlation_id,
            description=(
                f"Budget plan applied: {len(applied)} limits set, "
                f"{len(dropped)} lines dropped"
            ),
            details={"applied": applied, "dropped": dropped},
            is_user_action=True,
        )

    @staticmethod
    def plan_line_dropped(
        category: str,
        limit: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PLAN_LINE_DROPPED,
            severity=AuditSeverity.WARNING,
            entity_type="plan",
            correlation_id=correlation_id,
            description=f"Plan category {category!r} does not match any budget",
            details={"category": category, "limit": limit},
        )

    @staticmethod
    def limit_updated(
        category: str,
        old_limit: str,
        new_limit: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LIMIT_UPDATED,
            entity_type="budget",
            entity_id=category,
            correlation_id=correlation_id,
            description=f"{category} limit changed from {old_limit} to {new_limit}",
            details={"old_limit": old_limit, "new_limit": new_limit},
            is_user_action=True,
        )

    @staticmethod
    def insights_generated(
        transaction_count: int,
        fallback: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSIGHTS_GENERATED,
            severity=AuditSeverity.WARNING if fallback else AuditSeverity.INFO,
            entity_type="insights",
            correlation_id=correlation_id,
            description=(
                "Insights unavailable, fallback message shown" if fallback
                else "Insights generated"
            ),
            details={"transaction_count": transaction_count},
        )

    @staticmethod
    def snapshot_loaded(
        transaction_count: int,
        skipped: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_LOADED,
            severity=AuditSeverity.WARNING if skipped else AuditSeverity.INFO,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=(
                f"Ledger loaded with {transaction_count} transactions"
                + (f", {len(skipped)} malformed records skipped" if skipped else "")
            ),
            details={"transaction_count": transaction_count, "skipped": skipped},
        )

    @staticmethod
    def snapshot_saved(
        transaction_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_SAVED,
            severity=AuditSeverity.DEBUG,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=f"Ledger saved with {transaction_count} transactions",
            details={"transaction_count": transaction_count},
        )

    @staticmethod
    def save_failed(
        backend: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=f"Saving ledger to {backend} failed",
            error_message=error_message,
            details={"backend": backend},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service} ({operation})",
            error_message=error_message,
            details={"service": service, "operation": operation},
            correlation_id=correlation_id,
        )
