"""
Main Orchestrator for Studio Ledger

This module ties together the store, the derivation rules, the conversion
pipeline and the kanban rules, and defines every write the studio makes:
1. Leads (manual entry, public suggestions, notes, board moves)
2. Conversion (admin conversion form and the public booking form)
3. Clients and projects (entry, edits, board moves, revisions)
4. Money (transactions, pocket deposits, team rewards)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every write is one ChangeSet, checked before anything happens
- Derived balances are recomputed in the same ChangeSet as the write
- The gateway is written before the in-memory store; if it fails the
  store is left exactly as it was
- Writes are serialized: a write reads the store, persists and applies
  while holding the write lock, so two overlapping calls never build
  records from the same stale snapshot
- Every step is audited

This is the "glue" that keeps the cached balances honest even when a
single call site forgets about them.
"""

import asyncio
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

import structlog
from pydantic import ValidationError as PydanticValidationError

from studio_ledger.audit import AuditLogger, create_correlation_id
from studio_ledger.config import LedgerSettings, get_settings, validate_all_settings
from studio_ledger.conversion import Catalog, ConversionForm, ConversionResult, LeadConverter
from studio_ledger.errors import ValidationError
from studio_ledger.ledger import (
    card_balance,
    pocket_amount,
    project_payment_state,
    refresh_projections,
    reward_ledger_entries,
    team_member_reward_balance,
)
from studio_ledger.models.entities import (
    AssignedTeamMember,
    Client,
    ContactChannel,
    FlowDirection,
    Lead,
    LeadStatus,
    PaymentStatus,
    Project,
    ProjectStatus,
    Revision,
    RevisionStatus,
    RewardLedgerEntry,
    Transaction,
    TransactionType,
    new_portal_token,
    to_money,
)
from studio_ledger.store import (
    AuditStorageInterface,
    ChangeOperation,
    ChangeSet,
    EntityStore,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsGateway,
    NotFoundError,
    PersistenceGateway,
    StorageError,
)
from studio_ledger.workflow import (
    ProjectEdit,
    add_revision,
    apply_project_edit,
    kanban,
    team_payment_changes,
    update_revision,
)


logger = structlog.get_logger(__name__)


class StudioOperations:
    """
    Every mutation and read view the studio UI needs.

    Usage:
        ops = StudioOperations(EntityStore(), gateway=GoogleSheetsGateway())
        await ops.load()
        result = await ops.convert_lead(lead_id, form)
    """

    def __init__(
        self,
        store: Optional[EntityStore] = None,
        gateway: Optional[PersistenceGateway] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._store = store if store is not None else EntityStore()
        self._gateway = gateway
        self._audit_logger = audit_logger or AuditLogger()
        self._settings = settings or get_settings().ledger
        self._converter = LeadConverter(self._settings)
        # Held from the first store read of a write until its ChangeSet is applied
        self._write_lock = asyncio.Lock()

    @property
    def store(self) -> EntityStore:
        return self._store

    # =========================================================================
    # COMMIT PATH
    # =========================================================================

    async def _persist(self, changes: ChangeSet, correlation_id: Optional[UUID]) -> None:
        """Write each step to the gateway in order."""
        if self._gateway is None:
            return

        for step in changes:
            try:
                if step.operation == ChangeOperation.INSERT:
                    await self._gateway.insert_record(step.collection, step.record)
                elif step.operation == ChangeOperation.REPLACE:
                    await self._gateway.update_record(step.collection, step.record)
                else:
                    await self._gateway.delete_record(step.collection, step.record_id)
            except Exception as e:
                await self._audit_logger.log_persistence_failed(
                    entity_type=step.collection,
                    entity_id=step.record_id,
                    operation=step.operation.value,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
                if isinstance(e, StorageError):
                    raise
                raise StorageError(
                    f"Failed to {step.operation.value} {step.collection}/{step.record_id}: {e}"
                ) from e

    async def _commit(
        self,
        changes: ChangeSet,
        correlation_id: Optional[UUID] = None,
    ) -> ChangeSet:
        """
        Persist and apply a ChangeSet together with its projection refresh.

        The caller holds the write lock, taken before it read the records
        the ChangeSet was built from.

        Returns the full ChangeSet that was applied.

        Raises:
            DuplicateError / NotFoundError: The ChangeSet does not fit the store
            StorageError: The gateway rejected a write; the store is untouched
        """
        staged = self._store.clone()
        staged.apply(changes)
        refresh = refresh_projections(staged, self._settings)

        full = ChangeSet(changes).extend(refresh)
        await self._persist(full, correlation_id)
        self._store.apply(full)

        if refresh:
            changed: dict[str, int] = {}
            for step in refresh:
                changed[step.collection] = changed.get(step.collection, 0) + 1
            await self._audit_logger.log_projections_refreshed(changed)

        return full

    async def load(self) -> dict[str, int]:
        """
        Hydrate the store from the gateway, then bring cached balances up to date.

        Every collection is fetched and validated before the store changes.
        Returns the collection sizes.
        """
        async with self._write_lock:
            if self._gateway is not None:
                fetched = {}
                for name in self._store.collection_names():
                    fetched[name] = await self._gateway.list_records(name)

                # Validate everything before replacing anything
                scratch = EntityStore()
                for name, payloads in fetched.items():
                    try:
                        scratch.load(name, payloads)
                    except PydanticValidationError as e:
                        await self._audit_logger.log_error(
                            error_type="invalid_stored_record",
                            error_message=str(e),
                            details={"collection": name},
                        )
                        raise
                for name, payloads in fetched.items():
                    self._store.load(name, payloads)

            await self._commit(ChangeSet())
            sizes = self._store.sizes()

        logger.info("store_loaded", **sizes)
        return sizes

    async def refresh(self) -> ChangeSet:
        """Recompute every cached balance and persist the ones that moved."""
        async with self._write_lock:
            return await self._commit(ChangeSet())

    # =========================================================================
    # LEADS
    # =========================================================================

    async def add_lead(
        self,
        name: str,
        contact_channel: ContactChannel,
        location: str = "",
        notes: Optional[str] = None,
        created_on: Optional[date] = None,
    ) -> Lead:
        lead = Lead(
            name=name,
            contact_channel=contact_channel,
            location=location,
            notes=notes,
            created_on=created_on or date.today(),
        )
        async with self._write_lock:
            await self._commit(ChangeSet().insert("leads", lead))
        await self._audit_logger.log_lead_created(lead.id, lead.name, lead.contact_channel.value)
        return lead

    async def submit_suggestion(
        self,
        name: str,
        location: str = "",
        notes: Optional[str] = None,
    ) -> Lead:
        """Public suggestion form: always lands as a NEW lead."""
        return await self.add_lead(
            name=name,
            contact_channel=ContactChannel.SUGGESTION_FORM,
            location=location,
            notes=notes,
        )

    async def update_lead_notes(self, lead_id: str, notes: Optional[str]) -> Lead:
        async with self._write_lock:
            lead = self._store.leads.get(lead_id)
            updated = Lead.model_validate({**lead.model_dump(), "notes": notes})
            await self._commit(ChangeSet().replace("leads", updated))
        await self._audit_logger.log_lead_updated(lead_id, ["notes"])
        return updated

    async def delete_lead(self, lead_id: str) -> Lead:
        async with self._write_lock:
            lead = self._store.leads.get(lead_id)
            await self._commit(ChangeSet().remove("leads", lead_id))
        await self._audit_logger.log_lead_deleted(lead_id)
        return lead

    async def move_lead(self, lead_id: str, new_status: LeadStatus) -> Lead:
        """
        Drag a lead to another column.

        Raises:
            ConversionRequiredError: Target is CONVERTED
            InvalidTransitionError: Lead is already CONVERTED or REJECTED
        """
        async with self._write_lock:
            lead = self._store.leads.get(lead_id)
            moved = kanban.move_lead(lead, new_status)
            if moved is lead:
                return lead
            await self._commit(ChangeSet().replace("leads", moved))
        await self._audit_logger.log_lead_status_changed(
            lead_id, lead.status.value, moved.status.value
        )
        return moved

    # =========================================================================
    # CONVERSION
    # =========================================================================

    def _portal_ids(self) -> set[str]:
        return {c.portal_access_id for c in self._store.clients}

    async def _run_conversion(
        self,
        lead_id: Optional[str],
        new_lead: Optional[Lead],
        form: ConversionForm,
        today: Optional[date],
        correlation_id: UUID,
    ) -> ConversionResult:
        """
        Convert a stored lead (lead_id) or a brand-new one (new_lead).

        Pricing, the promo-code cap and the balance bumps are computed
        from the store inside the write lock.
        """
        async with self._write_lock:
            if new_lead is not None:
                lead = new_lead
                prelude = ChangeSet().insert("leads", new_lead)
            else:
                lead = self._store.leads.get(lead_id)
                prelude = ChangeSet()

            try:
                result = self._converter.convert_lead(
                    lead,
                    form,
                    Catalog.from_store(self._store),
                    existing_portal_ids=self._portal_ids(),
                    today=today,
                )
            except (ValidationError, NotFoundError) as e:
                await self._audit_logger.log_conversion_rejected(
                    lead_id=lead.id,
                    reason=str(e),
                    field=getattr(e, "field", None),
                    correlation_id=correlation_id,
                )
                raise

            await self._commit(ChangeSet(prelude).extend(result.to_change_set()), correlation_id)

        await self._audit_logger.log_client_created(result.client.id, result.client.name)
        await self._audit_logger.log_project_created(
            result.project.id, result.project.project_name, len(result.project.team)
        )
        if result.transaction is not None:
            await self._log_transaction(result.transaction, correlation_id)
        if result.updated_promo_code is not None:
            await self._audit_logger.log_promo_code_redeemed(
                promo_code_id=result.updated_promo_code.id,
                code=result.updated_promo_code.code,
                usage_count=result.updated_promo_code.usage_count,
                correlation_id=correlation_id,
            )
        await self._audit_logger.log_lead_converted(
            lead_id=lead.id,
            client_id=result.client.id,
            project_id=result.project.id,
            total_cost=result.total_cost,
            down_payment=result.project.amount_paid,
            correlation_id=correlation_id,
        )
        return result

    async def convert_lead(
        self,
        lead_id: str,
        form: ConversionForm,
        today: Optional[date] = None,
    ) -> ConversionResult:
        """
        Convert an existing lead into a client and a confirmed project.

        Raises:
            ValidationError: The form is incomplete or the promo is unusable
            NotFoundError: The lead or something the form references is unknown
            StorageError: Persistence failed; nothing was applied
        """
        correlation_id = create_correlation_id()
        return await self._run_conversion(lead_id, None, form, today, correlation_id)

    async def submit_booking(
        self,
        name: str,
        location: str,
        form: ConversionForm,
        today: Optional[date] = None,
    ) -> ConversionResult:
        """
        Public booking form: a WEBSITE lead converted on the spot.

        Validation is identical to convert_lead(). If it fails, not even
        the lead is kept.
        """
        correlation_id = create_correlation_id()
        lead = Lead(
            name=name,
            contact_channel=ContactChannel.WEBSITE,
            location=location,
            created_on=today or date.today(),
        )
        result = await self._run_conversion(None, lead, form, today, correlation_id)
        await self._audit_logger.log_lead_created(
            lead.id, lead.name, lead.contact_channel.value, correlation_id
        )
        return result

    # =========================================================================
    # CLIENTS
    # =========================================================================

    async def add_client(
        self,
        name: str,
        email: str = "",
        phone: str = "",
        instagram: Optional[str] = None,
        since: Optional[date] = None,
    ) -> Client:
        """Manual client entry outside the conversion flow."""
        async with self._write_lock:
            taken = self._portal_ids()
            token = new_portal_token()
            while token in taken:
                token = new_portal_token()

            client = Client(
                name=name,
                email=email,
                phone=phone,
                instagram=instagram,
                since=since or date.today(),
                portal_access_id=token,
            )
            await self._commit(ChangeSet().insert("clients", client))
        await self._audit_logger.log_client_created(client.id, client.name)
        return client

    # =========================================================================
    # PROJECTS
    # =========================================================================

    def _check_team(self, team: Iterable[AssignedTeamMember]) -> None:
        for seat in team:
            self._store.team_members.get(seat.member_id)

    async def add_project(
        self,
        project_name: str,
        client_id: str,
        event_date: date,
        project_type: str = "",
        package_id: Optional[str] = None,
        add_on_ids: Iterable[str] = (),
        team: Iterable[AssignedTeamMember] = (),
        location: str = "",
        status: ProjectStatus = ProjectStatus.PREPARATION,
        total_cost: Optional[Decimal] = None,
        deadline_date: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> Project:
        """
        Manual project entry.

        total_cost defaults to the package plus add-on prices, each
        add-on counted once. Every team seat gets an UNPAID
        TeamProjectPayment row.

        Raises:
            NotFoundError: Unknown client, package, add-on or team member
        """
        team = list(team)
        async with self._write_lock:
            client = self._store.clients.get(client_id)
            package = self._store.packages.get(package_id) if package_id else None
            add_ons = [self._store.add_ons.get(add_on_id) for add_on_id in dict.fromkeys(add_on_ids)]
            self._check_team(team)

            if total_cost is None:
                total_cost = (package.price if package else Decimal("0")) + sum(
                    (a.price for a in add_ons), Decimal("0")
                )

            project = Project(
                project_name=project_name,
                client_id=client.id,
                client_name=client.name,
                project_type=project_type,
                package_id=package.id if package else None,
                package_name=package.name if package else None,
                add_ons=add_ons,
                event_date=event_date,
                deadline_date=deadline_date,
                location=location,
                team=team,
                status=status,
                progress=kanban.progress_for_status(status),
                total_cost=total_cost,
                payment_status=PaymentStatus.BELUM_BAYAR,
                notes=notes,
            )

            changes = ChangeSet().insert("projects", project)
            changes.extend(team_payment_changes(project, []))
            await self._commit(changes)
        await self._audit_logger.log_project_created(project.id, project.project_name, len(team))
        return project

    async def update_project(self, project_id: str, edit: ProjectEdit) -> Project:
        """
        Edit a project's operational fields.

        Pricing, payments and the board column stay as they are. When the
        team or the date changes, the project's TeamProjectPayment rows are
        brought in line in the same ChangeSet; members who stay keep their
        payment status.

        Raises:
            NotFoundError: Unknown project, client or team member
            ValidationError: A required field is cleared
        """
        correlation_id = create_correlation_id()
        async with self._write_lock:
            project = self._store.projects.get(project_id)
            client = self._store.clients.get(edit.client_id) if edit.client_id else None
            if edit.team is not None:
                self._check_team(edit.team)

            updated = apply_project_edit(project, edit, client)
            existing = self._store.team_project_payments.find(lambda p: p.project_id == project_id)
            payments = team_payment_changes(updated, existing)

            changes = ChangeSet().replace("projects", updated).extend(payments)
            await self._commit(changes, correlation_id)

        await self._audit_logger.log_project_updated(
            project_id=project_id,
            fields=sorted(edit.model_fields_set),
            team_payment_changes=len(payments),
            correlation_id=correlation_id,
        )
        return updated

    async def move_project(self, project_id: str, new_status: ProjectStatus) -> Project:
        """Drag a project to another column; progress follows the column."""
        async with self._write_lock:
            project = self._store.projects.get(project_id)
            moved = kanban.move_project(project, new_status)
            if moved is project:
                return project
            await self._commit(ChangeSet().replace("projects", moved))
        await self._audit_logger.log_project_status_changed(
            project_id, project.status.value, moved.status.value, moved.progress
        )
        return moved

    async def set_project_sub_status(self, project_id: str, sub_status: Optional[str]) -> Project:
        async with self._write_lock:
            project = self._store.projects.get(project_id)
            updated = kanban.set_sub_status(project, sub_status)
            await self._commit(ChangeSet().replace("projects", updated))
        return updated

    async def add_revision(
        self,
        project_id: str,
        freelancer_id: str,
        admin_notes: str,
        deadline: Optional[date],
    ) -> Revision:
        """
        Ask a freelancer on the project's team for a revision.

        Raises:
            ValidationError: Notes or deadline missing, or the freelancer is not on the team
        """
        async with self._write_lock:
            project = self._store.projects.get(project_id)
            updated, revision = add_revision(project, freelancer_id, admin_notes, deadline)
            await self._commit(ChangeSet().replace("projects", updated))
        await self._audit_logger.log_revision_added(project_id, revision.id, freelancer_id)
        return revision

    async def update_revision(
        self,
        project_id: str,
        revision_id: str,
        freelancer_notes: Optional[str],
        drive_link: Optional[str],
        status: RevisionStatus,
        now: Optional[datetime] = None,
    ) -> Revision:
        """
        The freelancer's answer to a revision request.

        Raises:
            NotFoundError: Unknown project or revision
        """
        async with self._write_lock:
            project = self._store.projects.get(project_id)
            updated, revision = update_revision(
                project, revision_id, freelancer_notes, drive_link, status, now
            )
            await self._commit(ChangeSet().replace("projects", updated))
        await self._audit_logger.log_revision_updated(project_id, revision_id, status.value)
        return revision

    async def delete_project(self, project_id: str) -> Project:
        """
        Delete a project together with its team payments and transactions.

        Card and pocket balances are recomputed without the removed rows.
        """
        correlation_id = create_correlation_id()
        async with self._write_lock:
            project = self._store.projects.get(project_id)
            payments = self._store.team_project_payments.find(lambda p: p.project_id == project_id)
            transactions = self._store.transactions.find(lambda t: t.project_id == project_id)

            changes = ChangeSet()
            for payment in payments:
                changes.remove("team_project_payments", payment.id)
            for transaction in transactions:
                changes.remove("transactions", transaction.id)
            changes.remove("projects", project_id)

            await self._commit(changes, correlation_id)
        await self._audit_logger.log_project_deleted(
            project_id=project_id,
            removed_transactions=len(transactions),
            removed_payments=len(payments),
            correlation_id=correlation_id,
        )
        return project

    # =========================================================================
    # MONEY
    # =========================================================================

    async def _insert_transaction(
        self,
        transaction: Transaction,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Check a transaction's references and commit it. Needs the write lock."""
        if transaction.project_id is not None:
            self._store.projects.get(transaction.project_id)
        if transaction.card_id is not None:
            self._store.cards.get(transaction.card_id)
        if transaction.pocket_id is not None:
            self._store.pockets.get(transaction.pocket_id)
        if transaction.counterparty_id is not None:
            self._store.team_members.get(transaction.counterparty_id)

        await self._commit(ChangeSet().insert("transactions", transaction), correlation_id)

    async def _log_transaction(
        self,
        transaction: Transaction,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self._audit_logger.log_transaction_recorded(
            transaction_id=transaction.id,
            amount=transaction.amount,
            transaction_type=transaction.type.value,
            category=transaction.category,
            correlation_id=correlation_id,
        )

    async def record_transaction(
        self,
        transaction: Transaction,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Append a transaction and recompute every balance it touches.

        Raises:
            NotFoundError: A referenced project, card, pocket or team member is unknown
        """
        async with self._write_lock:
            await self._insert_transaction(transaction, correlation_id)
        await self._log_transaction(transaction, correlation_id)
        return transaction

    async def settle_project(
        self,
        project_id: str,
        amount: Decimal,
        card_id: Optional[str] = None,
        posted_on: Optional[date] = None,
    ) -> Transaction:
        """
        Record a client payment towards a project.

        Lands in the client-income pocket. Without a card it is booked on
        the cash card.
        """
        async with self._write_lock:
            project = self._store.projects.get(project_id)
            pocket = self._store.pockets.get_or_none(self._settings.client_income_pocket_id)
            transaction = Transaction(
                posted_on=posted_on or date.today(),
                description=f"{self._settings.settlement_category} {project.project_name}",
                amount=to_money(amount),
                type=TransactionType.INCOME,
                category=self._settings.settlement_category,
                method="Transfer Bank" if card_id else "Tunai",
                project_id=project.id,
                card_id=card_id or self._settings.cash_card_id,
                pocket_id=pocket.id if pocket else None,
                flow_direction=FlowDirection.CREDIT,
            )
            await self._insert_transaction(transaction)
        await self._log_transaction(transaction)
        return transaction

    async def deposit_to_pocket(
        self,
        pocket_id: str,
        card_id: str,
        amount: Decimal,
        posted_on: Optional[date] = None,
    ) -> Transaction:
        """Move money from a card into a pocket."""
        async with self._write_lock:
            pocket = self._store.pockets.get(pocket_id)
            card = self._store.cards.get(card_id)
            transaction = Transaction(
                posted_on=posted_on or date.today(),
                description=f"Setor ke {pocket.name}",
                amount=to_money(amount),
                type=TransactionType.EXPENSE,
                category=self._settings.transfer_category,
                card_id=card.id,
                pocket_id=pocket.id,
                flow_direction=FlowDirection.CREDIT,
            )
            await self._insert_transaction(transaction)
        await self._log_transaction(transaction)
        return transaction

    async def grant_reward(
        self,
        member_id: str,
        amount: Decimal,
        project_id: Optional[str] = None,
        posted_on: Optional[date] = None,
    ) -> Transaction:
        """Credit a team member's reward balance."""
        async with self._write_lock:
            member = self._store.team_members.get(member_id)
            description = f"Hadiah untuk {member.name}"
            if project_id is not None:
                project = self._store.projects.get(project_id)
                description += f" (Proyek: {project.project_name})"

            transaction = Transaction(
                posted_on=posted_on or date.today(),
                description=description,
                amount=to_money(amount),
                type=TransactionType.EXPENSE,
                category=self._settings.reward_grant_category,
                project_id=project_id,
                counterparty_id=member.id,
            )
            await self._insert_transaction(transaction)
        await self._log_transaction(transaction)
        return transaction

    async def withdraw_reward(
        self,
        member_id: str,
        amount: Decimal,
        card_id: Optional[str] = None,
        posted_on: Optional[date] = None,
    ) -> Transaction:
        """
        Pay out part of a team member's reward balance.

        Raises:
            ValidationError: The amount exceeds the member's current balance
        """
        amount = to_money(amount)
        async with self._write_lock:
            member = self._store.team_members.get(member_id)
            balance = self.reward_balance(member_id)
            if amount > balance:
                raise ValidationError(
                    f"{member.name} has only {balance} in rewards, cannot withdraw {amount}",
                    field="amount",
                )

            transaction = Transaction(
                posted_on=posted_on or date.today(),
                description=f"Penarikan saldo hadiah oleh {member.name}",
                amount=amount,
                type=TransactionType.EXPENSE,
                category=self._settings.reward_withdrawal_category,
                method="Transfer Bank",
                card_id=card_id,
                counterparty_id=member.id,
            )
            await self._insert_transaction(transaction)
        await self._log_transaction(transaction)
        return transaction

    # =========================================================================
    # READ VIEWS (always re-derived, never read from the cache)
    # =========================================================================

    def project_payment_state(self, project_id: str) -> tuple[Decimal, PaymentStatus]:
        project = self._store.projects.get(project_id)
        return project_payment_state(project, self._store.transactions.list())

    def card_balance(self, card_id: str) -> Decimal:
        return card_balance(self._store.cards.get(card_id), self._store.transactions.list())

    def reward_ledger(self, member_id: Optional[str] = None) -> list[RewardLedgerEntry]:
        """Reward entries newest first, optionally for one member."""
        entries = reward_ledger_entries(
            self._store.transactions.list(),
            self._store.team_members.list(),
            grant_category=self._settings.reward_grant_category,
            withdrawal_category=self._settings.reward_withdrawal_category,
            strict=self._settings.strict_reward_matching,
        )
        if member_id is None:
            return entries
        return [e for e in entries if e.team_member_id == member_id]

    def reward_balance(self, member_id: str) -> Decimal:
        member = self._store.team_members.get(member_id)
        return team_member_reward_balance(member, self.reward_ledger(member_id))

    def pocket_amount(self, pocket_id: str) -> Decimal:
        pocket = self._store.pockets.get(pocket_id)
        entries = self.reward_ledger()
        members = [
            m.model_copy(update={"reward_balance": team_member_reward_balance(m, entries)})
            for m in self._store.team_members
        ]
        return pocket_amount(
            pocket,
            self._store.transactions.list(),
            members,
            self._settings.deposit_markers,
        )


def create_app_components(
    use_storage: bool = True,
) -> tuple[StudioOperations, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False for running without a backend.

    Returns:
        (operations, sheets_client)
    """
    settings = get_settings()
    level = "DEBUG" if settings.app.debug_mode else settings.app.log_level
    logging.basicConfig(level=level, format="%(message)s")

    sheets_client = None
    gateway = None
    audit_storage: Optional[AuditStorageInterface] = None

    if use_storage:
        status = validate_all_settings()
        if not status.get("google_sheets"):
            logger.warning(
                "storage_not_configured",
                error=status.get("google_sheets_error"),
            )
            use_storage = False

    if use_storage:
        sheets_client = GoogleSheetsClient()
        gateway = GoogleSheetsGateway(sheets_client)
        audit_storage = GoogleSheetsAuditStorage(sheets_client)

    operations = StudioOperations(
        store=EntityStore(),
        gateway=gateway,
        audit_logger=AuditLogger(audit_storage),
        settings=settings.ledger,
    )
    return operations, sheets_client
