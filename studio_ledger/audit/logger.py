"""
Audit Logger

DESIGN DECISION: Every mutation of leads, projects and money is logged.
This provides:
1. Traceability of every balance change
2. Debugging capability when a derived value looks off
3. A record of which writes belonged to one conversion

The audit logger:
- Is async so it sits naturally next to the persistence calls
- Gracefully handles failures (a lost audit row never fails a write)
- Supports correlation IDs to trace related events
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from studio_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from studio_ledger.store.interface import AuditStorageInterface


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
        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_lead_created(
        self,
        lead_id: str,
        name: str,
        channel: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.lead_created(
            lead_id=lead_id,
            name=name,
            channel=channel,
            correlation_id=correlation_id,
        ))

    async def log_lead_updated(self, lead_id: str, fields: list[str]) -> None:
        await self.log(AuditEventBuilder.lead_updated(lead_id=lead_id, fields=fields))

    async def log_lead_deleted(self, lead_id: str) -> None:
        await self.log(AuditEventBuilder.lead_deleted(lead_id=lead_id))

    async def log_lead_status_changed(self, lead_id: str, old: str, new: str) -> None:
        await self.log(AuditEventBuilder.lead_status_changed(lead_id=lead_id, old=old, new=new))

    async def log_lead_converted(
        self,
        lead_id: str,
        client_id: str,
        project_id: str,
        total_cost: Decimal,
        down_payment: Decimal,
        correlation_id: UUID,
    ) -> None:
        """Log a completed conversion."""
        await self.log(AuditEventBuilder.lead_converted(
            lead_id=lead_id,
            client_id=client_id,
            project_id=project_id,
            total_cost=total_cost,
            down_payment=down_payment,
            correlation_id=correlation_id,
        ))

    async def log_conversion_rejected(
        self,
        lead_id: str,
        reason: str,
        field: Optional[str],
        correlation_id: UUID,
    ) -> None:
        """Log a conversion that failed validation."""
        await self.log(AuditEventBuilder.conversion_rejected(
            lead_id=lead_id,
            reason=reason,
            field=field,
            correlation_id=correlation_id,
        ))

    async def log_promo_code_redeemed(
        self,
        promo_code_id: str,
        code: str,
        usage_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.promo_code_redeemed(
            promo_code_id=promo_code_id,
            code=code,
            usage_count=usage_count,
            correlation_id=correlation_id,
        ))

    async def log_client_created(self, client_id: str, name: str) -> None:
        await self.log(AuditEventBuilder.client_created(client_id=client_id, name=name))

    async def log_project_created(self, project_id: str, name: str, team_size: int) -> None:
        await self.log(AuditEventBuilder.project_created(
            project_id=project_id,
            name=name,
            team_size=team_size,
        ))

    async def log_project_updated(
        self,
        project_id: str,
        fields: list[str],
        team_payment_changes: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.project_updated(
            project_id=project_id,
            fields=fields,
            team_payment_changes=team_payment_changes,
            correlation_id=correlation_id,
        ))

    async def log_revision_added(self, project_id: str, revision_id: str, freelancer_id: str) -> None:
        await self.log(AuditEventBuilder.revision_added(project_id, revision_id, freelancer_id))

    async def log_revision_updated(self, project_id: str, revision_id: str, status: str) -> None:
        await self.log(AuditEventBuilder.revision_updated(project_id, revision_id, status))

    async def log_project_status_changed(
        self,
        project_id: str,
        old: str,
        new: str,
        progress: int,
    ) -> None:
        await self.log(AuditEventBuilder.project_status_changed(
            project_id=project_id,
            old=old,
            new=new,
            progress=progress,
        ))

    async def log_project_deleted(
        self,
        project_id: str,
        removed_transactions: int,
        removed_payments: int,
        correlation_id: UUID,
    ) -> None:
        """Log a project deletion and the size of its cascade."""
        await self.log(AuditEventBuilder.project_deleted(
            project_id=project_id,
            removed_transactions=removed_transactions,
            removed_payments=removed_payments,
            correlation_id=correlation_id,
        ))

    async def log_transaction_recorded(
        self,
        transaction_id: str,
        amount: Decimal,
        transaction_type: str,
        category: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_recorded(
            transaction_id=transaction_id,
            amount=amount,
            transaction_type=transaction_type,
            category=category,
            correlation_id=correlation_id,
        ))

    async def log_projections_refreshed(self, changed: dict[str, int]) -> None:
        await self.log(AuditEventBuilder.projections_refreshed(changed=changed))

    async def log_persistence_failed(
        self,
        entity_type: str,
        entity_id: str,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a gateway write that did not go through."""
        await self.log(AuditEventBuilder.persistence_failed(
            entity_type=entity_type,
            entity_id=entity_id,
            operation=operation,
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


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a multi-write action (e.g., a lead conversion).
    Pass it through all subsequent operations.
    """
    return uuid4()
