"""Ledger derivation package."""

from studio_ledger.ledger.derivation import (
    DEPOSIT_MARKERS,
    POCKET_AMOUNT_STRATEGIES,
    card_balance,
    compute_payment_status,
    pocket_amount,
    pocket_flow,
    project_payment_state,
    refresh_projections,
    reward_ledger_entries,
    team_member_reward_balance,
)

__all__ = [
    "DEPOSIT_MARKERS",
    "POCKET_AMOUNT_STRATEGIES",
    "card_balance",
    "compute_payment_status",
    "pocket_amount",
    "pocket_flow",
    "project_payment_state",
    "refresh_projections",
    "reward_ledger_entries",
    "team_member_reward_balance",
]
