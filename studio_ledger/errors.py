"""
Domain exceptions.

Storage problems (missing ids, duplicate ids, backend outages) live in
studio_ledger.store.interface. The exceptions here describe business rule
violations that the user can fix by changing their input.
"""

from typing import Optional


class StudioLedgerError(Exception):
    """Base exception for business rule violations."""
    pass


class ValidationError(StudioLedgerError):
    """
    A required selection is missing or inconsistent.

    Surfaced inline to the user. Nothing has been mutated when this is raised.
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class InvalidTransitionError(StudioLedgerError):
    """A status move that the kanban board does not allow."""
    pass


class ConversionRequiredError(InvalidTransitionError):
    """Moving a lead to CONVERTED needs the conversion pipeline, not a status write."""
    pass


class PromoCodeExhaustedError(ValidationError):
    """Redeeming the promo code would push it past its usage cap."""
    pass


class UnmatchedRewardEntryError(StudioLedgerError):
    """A reward transaction could not be attributed to any team member."""

    def __init__(self, transaction_id: str, description: str):
        super().__init__(
            f"Reward transaction {transaction_id} matches no team member: {description!r}"
        )
        self.transaction_id = transaction_id
        self.description = description
