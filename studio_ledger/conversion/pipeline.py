"""
Lead Conversion Pipeline

Turns a sales lead into a client, a project and (when a down payment is
taken) an income transaction, in one logical operation.

FLOW:
1. Validate the form against the lead and the catalog
2. Price the booking (package + add-ons - promo discount)
3. Build every new and updated record
4. Hand back a ConversionResult; the caller applies its ChangeSet

DESIGN DECISION: convert_lead() never touches the store. It is a pure
computation over its inputs. If any check fails, it raises before a single
record exists, so a failed conversion leaves nothing behind and the user
can simply resubmit a corrected form.

The same pipeline serves the admin kanban board and the public booking
form; there is no separate, looser path for unauthenticated submissions.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from studio_ledger.config import LedgerSettings, get_settings
from studio_ledger.errors import PromoCodeExhaustedError, ValidationError
from studio_ledger.ledger.derivation import compute_payment_status
from studio_ledger.models.entities import (
    AddOn,
    Card,
    Client,
    ClientStatus,
    DiscountType,
    FinancialPocket,
    FlowDirection,
    Lead,
    LeadStatus,
    Package,
    Project,
    ProjectStatus,
    PromoCode,
    Transaction,
    TransactionType,
    new_portal_token,
    to_money,
)
from studio_ledger.store.entity_store import ChangeSet, EntityStore
from studio_ledger.store.interface import NotFoundError


ZERO = Decimal("0")


class ConversionForm(BaseModel):
    """
    What the user submits when converting a lead.

    Ids left blank by the form arrive as empty strings and are
    normalized to None.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    # Contact details
    email: str = Field(default="", max_length=200)
    phone: str = Field(default="", max_length=50)
    instagram: Optional[str] = Field(default=None, max_length=100)

    # Project
    project_name: str = Field(..., min_length=1, max_length=200)
    project_type: str = Field(default="", max_length=100)
    event_date: date
    location: str = Field(default="", max_length=300)

    # Pricing
    package_id: Optional[str] = None
    add_on_ids: list[str] = Field(default_factory=list)
    promo_code_id: Optional[str] = None

    # Payment
    down_payment: Decimal = Field(default=ZERO, ge=0)
    down_payment_card_id: Optional[str] = None

    notes: Optional[str] = Field(default=None, max_length=2000)

    @field_validator('package_id', 'promo_code_id', 'down_payment_card_id', mode='before')
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator('add_on_ids')
    @classmethod
    def unique_add_on_ids(cls, v: list[str]) -> list[str]:
        """Each add-on is charged once, in the order first selected."""
        return list(dict.fromkeys(v))


class Catalog(BaseModel):
    """Everything a conversion may reference."""

    packages: list[Package] = Field(default_factory=list)
    add_ons: list[AddOn] = Field(default_factory=list)
    promo_codes: list[PromoCode] = Field(default_factory=list)
    cards: list[Card] = Field(default_factory=list)
    pockets: list[FinancialPocket] = Field(default_factory=list)

    @classmethod
    def from_store(cls, store: EntityStore) -> "Catalog":
        return cls(
            packages=store.packages.list(),
            add_ons=store.add_ons.list(),
            promo_codes=store.promo_codes.list(),
            cards=store.cards.list(),
            pockets=store.pockets.list(),
        )

    @staticmethod
    def _lookup(records: list, collection: str, record_id: str):
        for record in records:
            if record.id == record_id:
                return record
        raise NotFoundError(collection, record_id)

    def package(self, package_id: str) -> Package:
        return self._lookup(self.packages, "packages", package_id)

    def add_on(self, add_on_id: str) -> AddOn:
        return self._lookup(self.add_ons, "add_ons", add_on_id)

    def promo_code(self, promo_code_id: str) -> PromoCode:
        return self._lookup(self.promo_codes, "promo_codes", promo_code_id)

    def card(self, card_id: str) -> Card:
        return self._lookup(self.cards, "cards", card_id)

    def pocket(self, pocket_id: str) -> Optional[FinancialPocket]:
        return next((p for p in self.pockets if p.id == pocket_id), None)


class Quote(BaseModel):
    """Price breakdown of a booking."""

    package: Package
    add_ons: list[AddOn] = Field(default_factory=list)
    promo_code: Optional[PromoCode] = None
    subtotal: Decimal
    discount: Decimal
    total_cost: Decimal


class ConversionResult(BaseModel):
    """
    Every record a conversion produces or changes.

    Nothing here has been written anywhere yet.
    """

    client: Client
    project: Project
    transaction: Optional[Transaction] = None
    updated_card: Optional[Card] = None
    updated_pocket: Optional[FinancialPocket] = None
    updated_promo_code: Optional[PromoCode] = None
    updated_lead: Lead

    subtotal: Decimal
    discount: Decimal
    total_cost: Decimal
    remaining: Decimal

    def to_change_set(self) -> ChangeSet:
        """
        Writes in dependency order: the client exists before the project
        that references it, the project before its transaction.
        """
        changes = ChangeSet()
        changes.insert("clients", self.client)
        changes.insert("projects", self.project)
        changes.replace("leads", self.updated_lead)
        if self.transaction is not None:
            changes.insert("transactions", self.transaction)
        if self.updated_card is not None:
            changes.replace("cards", self.updated_card)
        if self.updated_pocket is not None:
            changes.replace("pockets", self.updated_pocket)
        if self.updated_promo_code is not None:
            changes.replace("promo_codes", self.updated_promo_code)
        return changes


class LeadConverter:
    """
    Validates and prices a lead conversion, then builds its records.

    Usage:
        converter = LeadConverter()
        result = converter.convert_lead(lead, form, Catalog.from_store(store))
        store.apply(result.to_change_set())
    """

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = settings or get_settings().ledger

    def _validate_form(self, lead: Lead, form: ConversionForm) -> None:
        """Checks that need no catalog access."""
        if lead.is_terminal:
            raise ValidationError(
                f"Lead is already {lead.status.value} and cannot be converted",
                field="lead",
            )
        if form.package_id is None:
            raise ValidationError("No package selected", field="package_id")
        if form.down_payment > 0 and form.down_payment_card_id is None:
            raise ValidationError(
                "A destination card is required when a down payment is taken",
                field="down_payment_card_id",
            )

    def _check_promo_code(self, promo: PromoCode, today: date) -> None:
        if not promo.is_active:
            raise ValidationError(f"Promo code {promo.code} is not active", field="promo_code_id")
        if promo.is_expired(today):
            raise ValidationError(f"Promo code {promo.code} has expired", field="promo_code_id")
        if self._settings.enforce_promo_usage_cap and not promo.has_capacity:
            raise PromoCodeExhaustedError(
                f"Promo code {promo.code} has reached its usage limit of {promo.max_usage}",
                field="promo_code_id",
            )

    def quote(
        self,
        form: ConversionForm,
        catalog: Catalog,
        today: Optional[date] = None,
    ) -> Quote:
        """
        Price a booking.

        Raises:
            ValidationError: No package selected or unusable promo code
            NotFoundError: A referenced package, add-on or promo code is unknown
        """
        today = today or date.today()
        if form.package_id is None:
            raise ValidationError("No package selected", field="package_id")

        package = catalog.package(form.package_id)
        add_ons = [catalog.add_on(add_on_id) for add_on_id in form.add_on_ids]
        subtotal = package.price + sum((a.price for a in add_ons), ZERO)

        promo = None
        discount = ZERO
        if form.promo_code_id is not None:
            promo = catalog.promo_code(form.promo_code_id)
            self._check_promo_code(promo, today)
            if promo.discount_type == DiscountType.PERCENTAGE:
                discount = to_money(subtotal * promo.discount_value / 100)
            else:
                # A flat discount never takes a booking below zero
                discount = min(promo.discount_value, subtotal)

        return Quote(
            package=package,
            add_ons=add_ons,
            promo_code=promo,
            subtotal=subtotal,
            discount=discount,
            total_cost=subtotal - discount,
        )

    def convert_lead(
        self,
        lead: Lead,
        form: ConversionForm,
        catalog: Catalog,
        existing_portal_ids: Iterable[str] = (),
        today: Optional[date] = None,
    ) -> ConversionResult:
        """
        Build the client, project, transaction and updated records for a conversion.

        Raises:
            ValidationError: Missing package, down payment without card,
                terminal lead, or unusable promo code
            PromoCodeExhaustedError: Redemption would exceed the promo's cap
            NotFoundError: Unknown package, add-on, promo code or card
        """
        today = today or date.today()

        # Stage 1: form-level checks
        self._validate_form(lead, form)

        # Stage 2: catalog lookups and pricing
        quote = self.quote(form, catalog, today)
        card = catalog.card(form.down_payment_card_id) if form.down_payment > 0 else None

        down_payment = to_money(form.down_payment)
        remaining = quote.total_cost - down_payment

        # Stage 3: build records
        taken = set(existing_portal_ids)
        token = new_portal_token()
        while token in taken:
            token = new_portal_token()

        client = Client(
            name=lead.name,
            email=form.email,
            phone=form.phone,
            instagram=form.instagram,
            since=today,
            status=ClientStatus.ACTIVE,
            last_contact=datetime.utcnow(),
            portal_access_id=token,
        )

        project = Project(
            project_name=form.project_name,
            client_id=client.id,
            client_name=client.name,
            project_type=form.project_type,
            package_id=quote.package.id,
            package_name=quote.package.name,
            add_ons=quote.add_ons,
            event_date=form.event_date,
            location=form.location or lead.location,
            status=ProjectStatus.CONFIRMED,
            progress=0,
            total_cost=quote.total_cost,
            amount_paid=down_payment,
            payment_status=compute_payment_status(down_payment, quote.total_cost),
            promo_code_id=quote.promo_code.id if quote.promo_code else None,
            discount_amount=quote.discount if quote.discount > 0 else None,
            notes=form.notes,
        )

        transaction = None
        updated_card = None
        updated_pocket = None
        if down_payment > 0:
            pocket = catalog.pocket(self._settings.client_income_pocket_id)
            transaction = Transaction(
                id=f"TRN-DP-{project.id}",
                posted_on=today,
                description=f"{self._settings.down_payment_category} {project.project_name}",
                amount=down_payment,
                type=TransactionType.INCOME,
                category=self._settings.down_payment_category,
                method=self._settings.down_payment_method,
                project_id=project.id,
                card_id=card.id,
                pocket_id=pocket.id if pocket else None,
                flow_direction=FlowDirection.CREDIT,
            )
            updated_card = card.model_copy(update={"balance": card.balance + down_payment})
            if pocket is not None:
                updated_pocket = pocket.model_copy(update={"amount": pocket.amount + down_payment})

        updated_promo_code = None
        if quote.promo_code is not None:
            updated_promo_code = quote.promo_code.model_copy(
                update={"usage_count": quote.promo_code.usage_count + 1}
            )

        return ConversionResult(
            client=client,
            project=project,
            transaction=transaction,
            updated_card=updated_card,
            updated_pocket=updated_pocket,
            updated_promo_code=updated_promo_code,
            updated_lead=lead.model_copy(update={"status": LeadStatus.CONVERTED}),
            subtotal=quote.subtotal,
            discount=quote.discount,
            total_cost=quote.total_cost,
            remaining=remaining,
        )
