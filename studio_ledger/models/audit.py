"""
Audit Models for Studio Ledger

Every mutation of the studio's records is logged for audit purposes.
This provides:
1. Traceability of who-changed-what on leads, projects and money
2. Debugging information when a derived balance looks wrong
3. The ability to reconstruct a conversion step by step

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Leads
    LEAD_CREATED = "lead_created"
    LEAD_UPDATED = "lead_updated"
    LEAD_DELETED = "lead_deleted"
    LEAD_STATUS_CHANGED = "lead_status_changed"

    # Conversion
    LEAD_CONVERTED = "lead_converted"
    CONVERSION_REJECTED = "conversion_rejected"
    PROMO_CODE_REDEEMED = "promo_code_redeemed"

    # Clients and projects
    CLIENT_CREATED = "client_created"
    PROJECT_CREATED = "project_created"
    PROJECT_UPDATED = "project_updated"
    PROJECT_STATUS_CHANGED = "project_status_changed"
    REVISION_ADDED = "revision_added"
    REVISION_UPDATED = "revision_updated"
    PROJECT_DELETED = "project_deleted"

    # Ledger
    TRANSACTION_RECORDED = "transaction_recorded"
    PROJECTIONS_REFRESHED = "projections_refreshed"

    # System events
    PERSISTENCE_FAILED = "persistence_failed"
    SYSTEM_ERROR = "system_error"


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

    This is the core unit of our audit trail.
    Every mutation creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'lead', 'project', 'transaction')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all writes of one conversion)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
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
        event = AuditEventBuilder.lead_created(lead_id, name, channel)
        event = AuditEventBuilder.lead_converted(lead_id, client_id, project_id, ...)
    """

    @staticmethod
    def lead_created(
        lead_id: str,
        name: str,
        channel: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEAD_CREATED,
            entity_type="lead",
            entity_id=lead_id,
            correlation_id=correlation_id,
            description=f"Lead created: {name}",
            details={"contact_channel": channel},
            is_user_action=True,
        )

    @staticmethod
    def lead_updated(lead_id: str, fields: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEAD_UPDATED,
            entity_type="lead",
            entity_id=lead_id,
            description=f"Lead updated: {', '.join(fields)}",
            details={"fields": fields},
            is_user_action=True,
        )

    @staticmethod
    def lead_deleted(lead_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEAD_DELETED,
            entity_type="lead",
            entity_id=lead_id,
            description="Lead deleted",
            is_user_action=True,
        )

    @staticmethod
    def lead_status_changed(lead_id: str, old: str, new: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEAD_STATUS_CHANGED,
            entity_type="lead",
            entity_id=lead_id,
            description=f"Lead moved from {old} to {new}",
            details={"from": old, "to": new},
            is_user_action=True,
        )

    @staticmethod
    def lead_converted(
        lead_id: str,
        client_id: str,
        project_id: str,
        total_cost: Decimal,
        down_payment: Decimal,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEAD_CONVERTED,
            entity_type="lead",
            entity_id=lead_id,
            correlation_id=correlation_id,
            description="Lead converted to client and project",
            details={
                "client_id": client_id,
                "project_id": project_id,
                "total_cost": str(total_cost),
                "down_payment": str(down_payment),
            },
            is_user_action=True,
        )

    @staticmethod
    def conversion_rejected(
        lead_id: str,
        reason: str,
        field: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONVERSION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="lead",
            entity_id=lead_id,
            correlation_id=correlation_id,
            description=f"Conversion rejected: {reason}",
            details={"field": field},
        )

    @staticmethod
    def promo_code_redeemed(
        promo_code_id: str,
        code: str,
        usage_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROMO_CODE_REDEEMED,
            entity_type="promo_code",
            entity_id=promo_code_id,
            correlation_id=correlation_id,
            description=f"Promo code {code} redeemed",
            details={"usage_count": usage_count},
        )

    @staticmethod
    def client_created(client_id: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CLIENT_CREATED,
            entity_type="client",
            entity_id=client_id,
            description=f"Client created: {name}",
            is_user_action=True,
        )

    @staticmethod
    def project_created(project_id: str, name: str, team_size: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROJECT_CREATED,
            entity_type="project",
            entity_id=project_id,
            description=f"Project created: {name}",
            details={"team_size": team_size},
            is_user_action=True,
        )

    @staticmethod
    def project_updated(
        project_id: str,
        fields: list[str],
        team_payment_changes: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROJECT_UPDATED,
            entity_type="project",
            entity_id=project_id,
            correlation_id=correlation_id,
            description=f"Project updated: {', '.join(fields)}",
            details={"fields": fields, "team_payment_changes": team_payment_changes},
            is_user_action=True,
        )

    @staticmethod
    def revision_added(project_id: str, revision_id: str, freelancer_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REVISION_ADDED,
            entity_type="project",
            entity_id=project_id,
            description=f"Revision {revision_id} requested from {freelancer_id}",
            details={"revision_id": revision_id, "freelancer_id": freelancer_id},
            is_user_action=True,
        )

    @staticmethod
    def revision_updated(project_id: str, revision_id: str, status: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REVISION_UPDATED,
            entity_type="project",
            entity_id=project_id,
            description=f"Revision {revision_id} is now {status}",
            details={"revision_id": revision_id, "status": status},
            is_user_action=True,
        )

    @staticmethod
    def project_status_changed(
        project_id: str,
        old: str,
        new: str,
        progress: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROJECT_STATUS_CHANGED,
            entity_type="project",
            entity_id=project_id,
            description=f"Project moved from {old} to {new}",
            details={"from": old, "to": new, "progress": progress},
            is_user_action=True,
        )

    @staticmethod
    def project_deleted(
        project_id: str,
        removed_transactions: int,
        removed_payments: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROJECT_DELETED,
            severity=AuditSeverity.WARNING,
            entity_type="project",
            entity_id=project_id,
            correlation_id=correlation_id,
            description="Project deleted with its transactions and team payments",
            details={
                "removed_transactions": removed_transactions,
                "removed_team_payments": removed_payments,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_recorded(
        transaction_id: str,
        amount: Decimal,
        transaction_type: str,
        category: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_RECORDED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"{transaction_type.capitalize()} recorded: {category} {amount}",
            details={
                "amount": str(amount),
                "type": transaction_type,
                "category": category,
            },
        )

    @staticmethod
    def projections_refreshed(changed: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROJECTIONS_REFRESHED,
            severity=AuditSeverity.DEBUG,
            description="Derived balances recomputed from the transaction list",
            details=changed,
        )

    @staticmethod
    def persistence_failed(
        entity_type: str,
        entity_id: str,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSISTENCE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Persistence failed: {operation} {entity_type}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
