"""
Data Models Package

This package contains all Pydantic models used in Studio Ledger.
All records flowing through the system must conform to these schemas.
"""

from studio_ledger.models.entities import (
    AddOn,
    AssignedTeamMember,
    Card,
    CardType,
    Client,
    ClientStatus,
    ContactChannel,
    DiscountType,
    FinancialPocket,
    FlowDirection,
    Lead,
    LeadStatus,
    Package,
    PaymentStatus,
    PocketType,
    Project,
    ProjectStatus,
    PromoCode,
    Revision,
    RevisionStatus,
    RewardLedgerEntry,
    TeamMember,
    TeamPaymentStatus,
    TeamProjectPayment,
    Transaction,
    TransactionType,
    new_id,
    new_portal_token,
    to_money,
)
from studio_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Entity models
    "AddOn",
    "AssignedTeamMember",
    "Card",
    "CardType",
    "Client",
    "ClientStatus",
    "ContactChannel",
    "DiscountType",
    "FinancialPocket",
    "FlowDirection",
    "Lead",
    "LeadStatus",
    "Package",
    "PaymentStatus",
    "PocketType",
    "Project",
    "ProjectStatus",
    "PromoCode",
    "Revision",
    "RevisionStatus",
    "RewardLedgerEntry",
    "TeamMember",
    "TeamPaymentStatus",
    "TeamProjectPayment",
    "Transaction",
    "TransactionType",
    "new_id",
    "new_portal_token",
    "to_money",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
