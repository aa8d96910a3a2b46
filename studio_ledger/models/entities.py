"""
Core Data Models for Studio Ledger

These models define the strict schemas for every record the studio keeps:
leads, clients, projects, team members and the money ledger.

DESIGN DECISION: Balances on Card, FinancialPocket, TeamMember and the
amount_paid/payment_status pair on Project are CACHED PROJECTIONS.
They are stored so that lists render without a ledger fold, but they are
never authoritative. The ledger derivation module recomputes them from the
transaction list after every write.
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


MONEY_QUANTUM = Decimal("0.01")


def to_money(value: Decimal) -> Decimal:
    """Round an amount to currency precision."""
    return Decimal(value).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def new_id(prefix: str) -> str:
    """Generate an opaque, unique record id."""
    return f"{prefix}-{uuid4().hex}"


def new_portal_token() -> str:
    return str(uuid4())


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ContactChannel(str, Enum):
    """Where a lead first reached the studio."""
    INSTAGRAM = "instagram"
    WHATSAPP = "whatsapp"
    REFERRAL = "referral"
    WEBSITE = "website"
    SUGGESTION_FORM = "suggestion_form"
    OTHER = "other"


class LeadStatus(str, Enum):
    """
    Kanban columns for leads.

    CONVERTED and REJECTED are terminal. CONVERTED can only be reached
    through the conversion pipeline.
    """
    NEW = "new"
    DISCUSSION = "discussion"
    FOLLOW_UP = "follow_up"
    CONVERTED = "converted"
    REJECTED = "rejected"


class ClientStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class ProjectStatus(str, Enum):
    """Project lifecycle. Every transition is allowed, including backwards."""
    PREPARATION = "preparation"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    EDITING = "editing"
    PRINTING = "printing"
    SHIPPED = "shipped"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Derived payment state of a project."""
    BELUM_BAYAR = "belum_bayar"    # nothing paid yet
    DP_TERBAYAR = "dp_terbayar"    # down payment received
    LUNAS = "lunas"                # paid in full


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class FlowDirection(str, Enum):
    """
    Explicit effect of a transaction on its pocket.

    Rows recorded before this field existed leave it empty and fall back
    to description-prefix inference.
    """
    CREDIT = "credit"
    DEBIT = "debit"


class CardType(str, Enum):
    PRABAYAR = "prabayar"
    KREDIT = "kredit"
    DEBIT = "debit"


class PocketType(str, Enum):
    """
    Pocket variants.

    REWARD_POOL is derived from team reward balances instead of its own
    transactions; every other type folds its transactions.
    """
    SAVING = "saving"
    LOCKED = "locked"
    EXPENSE = "expense"
    REWARD_POOL = "reward_pool"


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class TeamPaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"


# =============================================================================
# SALES
# =============================================================================

class Lead(BaseModel):
    """An unconverted sales prospect."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=lambda: new_id("LEAD"))
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Prospect name"
    )
    contact_channel: ContactChannel
    location: str = Field(default="", max_length=300)
    status: LeadStatus = Field(default=LeadStatus.NEW)
    created_on: date = Field(
        default_factory=date.today,
        description="When the lead was created"
    )
    notes: Optional[str] = Field(default=None, max_length=2000)

    @property
    def is_terminal(self) -> bool:
        return self.status in (LeadStatus.CONVERTED, LeadStatus.REJECTED)


class Client(BaseModel):
    """
    A paying customer.

    portal_access_id is an unguessable capability for the client-facing
    read-only view. It must be unique across all clients.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=lambda: new_id("CLI"))
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(default="", max_length=200)
    phone: str = Field(default="", max_length=50)
    instagram: Optional[str] = Field(default=None, max_length=100)
    since: date = Field(default_factory=date.today)
    status: ClientStatus = Field(default=ClientStatus.ACTIVE)
    last_contact: datetime = Field(default_factory=datetime.utcnow)
    portal_access_id: str = Field(
        default_factory=new_portal_token,
        min_length=1,
        description="Capability token for the client portal"
    )


class PromoCode(BaseModel):
    """
    A discount code.

    usage_count only ever goes up. max_usage and expiry_date are optional.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=lambda: new_id("PROMO"))
    code: str = Field(..., min_length=1, max_length=50)
    discount_type: DiscountType
    discount_value: Decimal = Field(..., ge=0)
    is_active: bool = True
    usage_count: int = Field(default=0, ge=0)
    max_usage: Optional[int] = Field(default=None, ge=1)
    expiry_date: Optional[date] = None
    created_at: date = Field(default_factory=date.today)

    @model_validator(mode='after')
    def validate_percentage(self) -> 'PromoCode':
        if self.discount_type == DiscountType.PERCENTAGE and self.discount_value > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        return self

    def is_expired(self, on: Optional[date] = None) -> bool:
        on = on or date.today()
        return self.expiry_date is not None and self.expiry_date < on

    @property
    def has_capacity(self) -> bool:
        """True if one more redemption stays within max_usage."""
        return self.max_usage is None or self.usage_count < self.max_usage

    def is_redeemable(self, on: Optional[date] = None) -> bool:
        return self.is_active and not self.is_expired(on) and self.has_capacity


# =============================================================================
# CATALOG
# =============================================================================

class Package(BaseModel):
    """A priced service package."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=lambda: new_id("PKG"))
    name: str = Field(..., min_length=1, max_length=200)
    price: Decimal = Field(..., ge=0, decimal_places=2)
    description: Optional[str] = None


class AddOn(BaseModel):
    """An optional extra sold on top of a package."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=lambda: new_id("ADD"))
    name: str = Field(..., min_length=1, max_length=200)
    price: Decimal = Field(..., ge=0, decimal_places=2)


# =============================================================================
# TEAM
# =============================================================================

class TeamMember(BaseModel):
    """A freelancer the studio books onto projects."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=lambda: new_id("TM"))
    name: str = Field(..., min_length=1, max_length=200)
    role: str = Field(default="", max_length=100)
    email: str = Field(default="", max_length=200)
    phone: str = Field(default="", max_length=50)
    standard_fee: Decimal = Field(default=Decimal("0"), ge=0)
    reward_balance: Decimal = Field(
        default=Decimal("0"),
        description="Cached projection of the member's reward ledger"
    )
    portal_access_id: str = Field(default_factory=new_portal_token)


class AssignedTeamMember(BaseModel):
    """A team member's seat on one project."""

    member_id: str
    name: str
    role: str = ""
    fee: Decimal = Field(default=Decimal("0"), ge=0)
    reward: Decimal = Field(default=Decimal("0"), ge=0)


class RewardLedgerEntry(BaseModel):
    """
    Signed movement on a team member's reward balance.

    Grants are positive, withdrawals are stored negative.
    """

    id: str
    team_member_id: str
    posted_on: date
    description: str
    amount: Decimal
    source_transaction_id: Optional[str] = None


class TeamProjectPayment(BaseModel):
    """Fee/reward tracking row for one member on one project."""

    id: str
    project_id: str
    team_member_id: str
    team_member_name: str
    event_date: date
    status: TeamPaymentStatus = TeamPaymentStatus.UNPAID
    fee: Decimal = Field(default=Decimal("0"), ge=0)
    reward: Decimal = Field(default=Decimal("0"), ge=0)


# =============================================================================
# PROJECTS
# =============================================================================

class RevisionStatus(str, Enum):
    """Progress of one revision request handed to a freelancer."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class Revision(BaseModel):
    """
    A change request on a delivered edit.

    The admin writes the notes and deadline; the assigned freelancer
    answers with notes, a drive link and a status.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=lambda: new_id("REV"))
    created_at: datetime = Field(default_factory=datetime.utcnow)
    admin_notes: str = Field(..., min_length=1, max_length=2000)
    deadline: date
    freelancer_id: str
    status: RevisionStatus = RevisionStatus.PENDING
    freelancer_notes: Optional[str] = Field(default=None, max_length=2000)
    drive_link: Optional[str] = Field(default=None, max_length=500)
    completed_at: Optional[datetime] = None


class Project(BaseModel):
    """
    A booked job for a client.

    amount_paid and payment_status are derived from INCOME transactions
    with a matching project_id. Never edit them directly.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=lambda: new_id("PRJ"))
    project_name: str = Field(..., min_length=1, max_length=200)
    client_id: str
    client_name: str = Field(..., description="Denormalized client display name")
    project_type: str = Field(default="", max_length=100)
    package_id: Optional[str] = None
    package_name: Optional[str] = None
    add_ons: list[AddOn] = Field(default_factory=list)
    event_date: date
    deadline_date: Optional[date] = None
    location: str = Field(default="", max_length=300)
    team: list[AssignedTeamMember] = Field(default_factory=list)

    status: ProjectStatus = Field(default=ProjectStatus.PREPARATION)
    progress: int = Field(default=0, ge=0, le=100)
    sub_status: str = Field(default="", max_length=100)
    shipping_details: str = Field(default="", max_length=300)

    total_cost: Decimal = Field(default=Decimal("0"), ge=0)
    amount_paid: Decimal = Field(default=Decimal("0"), ge=0)
    payment_status: PaymentStatus = Field(default=PaymentStatus.BELUM_BAYAR)
    promo_code_id: Optional[str] = None
    discount_amount: Optional[Decimal] = Field(default=None, ge=0)

    final_drive_link: str = Field(default="", max_length=500)
    revisions: list[Revision] = Field(default_factory=list)

    notes: Optional[str] = Field(default=None, max_length=2000)

    @model_validator(mode='after')
    def validate_dates(self) -> 'Project':
        if self.deadline_date and self.deadline_date < self.event_date:
            raise ValueError("Deadline cannot be before the project date")
        return self


# =============================================================================
# MONEY
# =============================================================================

class Transaction(BaseModel):
    """
    One money movement. The transaction list is the single source of truth
    for every balance in the system.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=lambda: new_id("TRN"))
    posted_on: date = Field(default_factory=date.today)
    description: str = Field(..., min_length=1, max_length=500)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    type: TransactionType
    category: str = Field(..., min_length=1, max_length=100)
    method: str = Field(default="Sistem", max_length=50)

    # Associations
    project_id: Optional[str] = None
    card_id: Optional[str] = None
    pocket_id: Optional[str] = None
    counterparty_id: Optional[str] = Field(
        default=None,
        description="Team member this transaction pays or rewards"
    )
    flow_direction: Optional[FlowDirection] = Field(
        default=None,
        description="Effect on pocket_id; inferred from description when absent"
    )

    @property
    def signed_amount(self) -> Decimal:
        """+amount for income, -amount for expense."""
        return self.amount if self.type == TransactionType.INCOME else -self.amount


class Card(BaseModel):
    """A bank card or the virtual cash sink."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=lambda: new_id("CARD"))
    card_holder_name: str = Field(default="")
    bank_name: str = Field(..., min_length=1)
    card_type: CardType = Field(default=CardType.DEBIT)
    last_four_digits: str = Field(default="", max_length=4)
    expiry_date: Optional[str] = Field(default=None, description="MM/YY")
    balance: Decimal = Field(
        default=Decimal("0"),
        description="Cached signed sum of the card's transactions"
    )


class FinancialPocket(BaseModel):
    """A named sub-allocation of funds."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=lambda: new_id("POC"))
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="")
    type: PocketType
    amount: Decimal = Field(
        default=Decimal("0"),
        description="Cached projection, see ledger.derivation.pocket_amount"
    )
    goal_amount: Optional[Decimal] = Field(default=None, ge=0)
    lock_end_date: Optional[date] = None
    source_card_id: Optional[str] = None

    @field_validator('lock_end_date')
    @classmethod
    def lock_date_only_for_locked(cls, v: Optional[date], info) -> Optional[date]:
        pocket_type = info.data.get('type')
        if v is not None and pocket_type is not None and pocket_type != PocketType.LOCKED:
            raise ValueError("Only LOCKED pockets carry a lock end date")
        return v

    @model_validator(mode='after')
    def validate_lock(self) -> 'FinancialPocket':
        if self.type == PocketType.LOCKED and self.lock_end_date is None:
            raise ValueError("LOCKED pockets require a lock end date")
        return self
