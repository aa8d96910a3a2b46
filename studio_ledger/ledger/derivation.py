"""
Ledger Derivation

Pure functions that compute every balance in the system from the full
transaction list:
- project amount_paid / payment_status
- card balance
- pocket amount
- team member reward balance

DESIGN DECISION: Nothing here is cached or invalidated. Each call folds
the whole list again. At a studio's volume (hundreds to low thousands of
transactions) that is cheap, and it means a balance cannot drift because
some write path forgot to bump a counter.

refresh_projections() is the bridge back to the stored records: it
returns a ChangeSet that rewrites every cached projection that no longer
matches its derivation.
"""

import re
from decimal import Decimal
from typing import Callable, Iterable, Optional, Sequence

import structlog

from studio_ledger.config import LedgerSettings
from studio_ledger.errors import UnmatchedRewardEntryError
from studio_ledger.models.entities import (
    Card,
    FinancialPocket,
    FlowDirection,
    PaymentStatus,
    PocketType,
    Project,
    RewardLedgerEntry,
    TeamMember,
    Transaction,
    TransactionType,
)
from studio_ledger.store.entity_store import ChangeSet, EntityStore


logger = structlog.get_logger(__name__)

ZERO = Decimal("0")

DEPOSIT_MARKERS = ("Setor ke", "DP Proyek", "Pelunasan Proyek")
REWARD_GRANT_CATEGORY = "Hadiah Freelancer"
REWARD_WITHDRAWAL_CATEGORY = "Penarikan Hadiah Freelancer"

# "Hadiah untuk Siti Aminah (Proyek: Prewedding Budi)"
_GRANT_NAME = re.compile(r"untuk (.+?)\s*(?:\(|$)")
# "Penarikan saldo hadiah oleh Bambang Sudiro"
_WITHDRAWAL_NAME = re.compile(r"oleh (.+?)\s*$")


# =============================================================================
# PROJECTS
# =============================================================================

def compute_payment_status(amount_paid: Decimal, total_cost: Decimal) -> PaymentStatus:
    """
    Map a paid amount onto the three payment states.

    Nothing paid is always BELUM_BAYAR, even for a zero-cost project.
    """
    if amount_paid <= 0:
        return PaymentStatus.BELUM_BAYAR
    if amount_paid >= total_cost:
        return PaymentStatus.LUNAS
    return PaymentStatus.DP_TERBAYAR


def project_payment_state(
    project: Project,
    transactions: Iterable[Transaction],
) -> tuple[Decimal, PaymentStatus]:
    """
    Sum the project's INCOME transactions and classify the result.

    Order of the transaction list does not matter.
    """
    amount_paid = sum(
        (
            t.amount for t in transactions
            if t.project_id == project.id and t.type == TransactionType.INCOME
        ),
        ZERO,
    )
    return amount_paid, compute_payment_status(amount_paid, project.total_cost)


# =============================================================================
# CARDS
# =============================================================================

def card_balance(card: Card, transactions: Iterable[Transaction]) -> Decimal:
    """Signed sum of the card's transactions: +income, -expense."""
    return sum(
        (t.signed_amount for t in transactions if t.card_id == card.id),
        ZERO,
    )


# =============================================================================
# POCKETS
# =============================================================================

def pocket_flow(
    transaction: Transaction,
    markers: Sequence[str] = DEPOSIT_MARKERS,
) -> FlowDirection:
    """
    Direction of a transaction relative to its pocket.

    The explicit flow_direction wins. Older rows without one are read by
    their description: a deposit-marker prefix adds, anything else subtracts.
    """
    if transaction.flow_direction is not None:
        return transaction.flow_direction
    if transaction.description.startswith(tuple(markers)):
        return FlowDirection.CREDIT
    return FlowDirection.DEBIT


def _fold_pocket_transactions(
    pocket: FinancialPocket,
    transactions: Sequence[Transaction],
    team_members: Sequence[TeamMember],
    markers: Sequence[str],
) -> Decimal:
    total = ZERO
    for t in transactions:
        if t.pocket_id != pocket.id:
            continue
        if pocket_flow(t, markers) == FlowDirection.CREDIT:
            total += t.amount
        else:
            total -= t.amount
    return total


def _sum_reward_balances(
    pocket: FinancialPocket,
    transactions: Sequence[Transaction],
    team_members: Sequence[TeamMember],
    markers: Sequence[str],
) -> Decimal:
    return sum((m.reward_balance for m in team_members), ZERO)


PocketStrategy = Callable[
    [FinancialPocket, Sequence[Transaction], Sequence[TeamMember], Sequence[str]],
    Decimal,
]

# One derivation rule per pocket variant
POCKET_AMOUNT_STRATEGIES: dict[PocketType, PocketStrategy] = {
    PocketType.SAVING: _fold_pocket_transactions,
    PocketType.LOCKED: _fold_pocket_transactions,
    PocketType.EXPENSE: _fold_pocket_transactions,
    PocketType.REWARD_POOL: _sum_reward_balances,
}


def pocket_amount(
    pocket: FinancialPocket,
    transactions: Iterable[Transaction],
    team_members: Iterable[TeamMember] = (),
    markers: Sequence[str] = DEPOSIT_MARKERS,
) -> Decimal:
    """
    Derive a pocket's amount using the strategy registered for its type.

    team_members must carry up-to-date reward balances for REWARD_POOL
    pockets; refresh_projections() derives them first.
    """
    strategy = POCKET_AMOUNT_STRATEGIES[pocket.type]
    return strategy(pocket, list(transactions), list(team_members), markers)


# =============================================================================
# TEAM REWARDS
# =============================================================================

def _match_member(
    transaction: Transaction,
    members: Sequence[TeamMember],
    grant_category: str,
) -> Optional[TeamMember]:
    """Resolve the team member a reward transaction belongs to."""
    if transaction.counterparty_id is not None:
        return next((m for m in members if m.id == transaction.counterparty_id), None)

    pattern = _GRANT_NAME if transaction.category == grant_category else _WITHDRAWAL_NAME
    match = pattern.search(transaction.description)
    if not match:
        return None
    name = match.group(1)

    exact = [m for m in members if m.name == name]
    if exact:
        return exact[0]
    if transaction.category != grant_category:
        return None
    # Grants historically matched on a partial name, or on its first word
    # when free text follows; accept only an unambiguous one
    for candidate in dict.fromkeys([name, name.split()[0]]):
        partial = [m for m in members if candidate in m.name]
        if len(partial) == 1:
            return partial[0]
    return None


def reward_ledger_entries(
    transactions: Iterable[Transaction],
    team_members: Iterable[TeamMember],
    grant_category: str = REWARD_GRANT_CATEGORY,
    withdrawal_category: str = REWARD_WITHDRAWAL_CATEGORY,
    strict: bool = False,
) -> list[RewardLedgerEntry]:
    """
    Build reward ledger entries from grant and withdrawal transactions.

    Transactions tagged with counterparty_id are joined on it directly.
    Untagged rows fall back to parsing the member name out of the
    description. A row that matches nobody is dropped with a warning,
    or raises UnmatchedRewardEntryError when strict is set.

    Returns entries newest first.
    """
    members = list(team_members)
    entries = []

    for t in transactions:
        if t.category not in (grant_category, withdrawal_category):
            continue

        member = _match_member(t, members, grant_category)
        if member is None:
            if strict:
                raise UnmatchedRewardEntryError(t.id, t.description)
            logger.warning(
                "reward_entry_unmatched",
                transaction_id=t.id,
                description=t.description,
            )
            continue

        amount = -t.amount if t.category == withdrawal_category else t.amount
        entries.append(RewardLedgerEntry(
            id=f"RLE-{t.id}",
            team_member_id=member.id,
            posted_on=t.posted_on,
            description=t.description,
            amount=amount,
            source_transaction_id=t.id,
        ))

    entries.sort(key=lambda e: e.posted_on, reverse=True)
    return entries


def team_member_reward_balance(
    member: TeamMember,
    entries: Iterable[RewardLedgerEntry],
) -> Decimal:
    """Sum of the member's signed reward entries."""
    return sum((e.amount for e in entries if e.team_member_id == member.id), ZERO)


# =============================================================================
# EAGER RECOMPUTE
# =============================================================================

def refresh_projections(
    store: EntityStore,
    settings: Optional[LedgerSettings] = None,
) -> ChangeSet:
    """
    Recompute every cached projection against the current transaction list.

    Returns a ChangeSet replacing each project, card, team member and
    pocket whose stored value differs from its derivation. Applying it
    re-establishes the ledger invariants.
    """
    settings = settings or LedgerSettings()
    transactions = store.transactions.list()
    changes = ChangeSet()

    for project in store.projects:
        amount_paid, status = project_payment_state(project, transactions)
        if amount_paid != project.amount_paid or status != project.payment_status:
            changes.replace("projects", project.model_copy(
                update={"amount_paid": amount_paid, "payment_status": status}
            ))

    for card in store.cards:
        balance = card_balance(card, transactions)
        if balance != card.balance:
            changes.replace("cards", card.model_copy(update={"balance": balance}))

    entries = reward_ledger_entries(
        transactions,
        store.team_members.list(),
        grant_category=settings.reward_grant_category,
        withdrawal_category=settings.reward_withdrawal_category,
        strict=settings.strict_reward_matching,
    )
    members = []
    for member in store.team_members:
        balance = team_member_reward_balance(member, entries)
        if balance != member.reward_balance:
            member = member.model_copy(update={"reward_balance": balance})
            changes.replace("team_members", member)
        members.append(member)

    for pocket in store.pockets:
        amount = pocket_amount(pocket, transactions, members, settings.deposit_markers)
        if amount != pocket.amount:
            changes.replace("pockets", pocket.model_copy(update={"amount": amount}))

    return changes
