"""
Shared fixtures for Studio Ledger tests.

No test touches Google Sheets. The gateway and audit storage are replaced
with in-memory fakes that record every call.
"""

import asyncio
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

import pytest

from studio_ledger.config import LedgerSettings
from studio_ledger.models.audit import AuditEvent
from studio_ledger.models.entities import (
    AddOn,
    Card,
    CardType,
    ContactChannel,
    DiscountType,
    FinancialPocket,
    Lead,
    LeadStatus,
    Package,
    PocketType,
    PromoCode,
    TeamMember,
)
from studio_ledger.store import (
    AuditStorageInterface,
    DuplicateError,
    EntityStore,
    NotFoundError,
    PersistenceGateway,
    StorageError,
)


class InMemoryGateway(PersistenceGateway):
    """Gateway fake keeping JSON payloads per collection."""

    def __init__(
        self,
        fail_on: Optional[tuple[str, str]] = None,
        yield_control: bool = False,
    ):
        self.records: dict[str, dict[str, dict]] = {}
        self.calls: list[tuple[str, str, str]] = []
        # (operation, collection) that should raise StorageError
        self.fail_on = fail_on
        # Suspend on every write, like a network round trip
        self.yield_control = yield_control

    async def _maybe_fail(self, operation: str, collection: str) -> None:
        if self.yield_control:
            await asyncio.sleep(0)
        if self.fail_on == (operation, collection):
            raise StorageError(f"simulated {operation} failure on {collection}")

    async def list_records(self, collection: str) -> list[dict]:
        return list(self.records.get(collection, {}).values())

    async def insert_record(self, collection: str, record) -> bool:
        await self._maybe_fail("insert", collection)
        rows = self.records.setdefault(collection, {})
        if record.id in rows:
            raise DuplicateError(collection, record.id)
        rows[record.id] = record.model_dump(mode="json")
        self.calls.append(("insert", collection, record.id))
        return True

    async def update_record(self, collection: str, record) -> bool:
        await self._maybe_fail("update", collection)
        rows = self.records.setdefault(collection, {})
        if record.id not in rows:
            raise NotFoundError(collection, record.id)
        rows[record.id] = record.model_dump(mode="json")
        self.calls.append(("update", collection, record.id))
        return True

    async def delete_record(self, collection: str, record_id: str) -> bool:
        await self._maybe_fail("delete", collection)
        rows = self.records.setdefault(collection, {})
        if record_id not in rows:
            raise NotFoundError(collection, record_id)
        del rows[record_id]
        self.calls.append(("delete", collection, record_id))
        return True

    def seed_from(self, store: EntityStore) -> None:
        """Mirror a store's current contents without recording calls."""
        for name in store.collection_names():
            self.records[name] = {
                record.id: record.model_dump(mode="json")
                for record in store.collection(name)
            }


class InMemoryAuditStorage(AuditStorageInterface):
    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        return [e for e in self.events if e.correlation_id == correlation_id]

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self.events))[:limit]


@pytest.fixture
def ledger_settings() -> LedgerSettings:
    return LedgerSettings(
        client_income_pocket_id="POC005",
        enforce_promo_usage_cap=True,
        strict_reward_matching=False,
    )


@pytest.fixture
def store() -> EntityStore:
    """A studio with a catalog, two cards, three pockets, two freelancers and one lead."""
    store = EntityStore()

    store.packages.insert(Package(id="PKG001", name="Paket Silver", price=Decimal("15000000")))
    store.add_ons.insert(AddOn(id="ADD001", name="Drone", price=Decimal("2000000")))
    store.add_ons.insert(AddOn(id="ADD002", name="Album Tambahan", price=Decimal("1500000")))

    store.promo_codes.insert(PromoCode(
        id="PROMO001",
        code="VENA10",
        discount_type=DiscountType.PERCENTAGE,
        discount_value=Decimal("10"),
        max_usage=5,
    ))
    store.promo_codes.insert(PromoCode(
        id="PROMO002",
        code="POTONG20JT",
        discount_type=DiscountType.FIXED,
        discount_value=Decimal("20000000"),
    ))

    store.cards.insert(Card(id="CARD001", card_holder_name="Vena", bank_name="BCA"))
    store.cards.insert(Card(id="CARD_CASH", bank_name="Tunai", card_type=CardType.DEBIT))

    store.pockets.insert(FinancialPocket(id="POC001", name="Dana Darurat", type=PocketType.SAVING))
    store.pockets.insert(FinancialPocket(id="POC005", name="Penerimaan Klien", type=PocketType.SAVING))
    store.pockets.insert(FinancialPocket(
        id="POC004",
        name="Hadiah Freelancer",
        type=PocketType.REWARD_POOL,
    ))

    store.team_members.insert(TeamMember(id="TM001", name="Bambang Sudiro", role="Fotografer"))
    store.team_members.insert(TeamMember(id="TM002", name="Siti Aminah", role="Fotografer"))

    store.leads.insert(Lead(
        id="LEAD001",
        name="Budi Santoso",
        contact_channel=ContactChannel.INSTAGRAM,
        location="Jakarta",
        status=LeadStatus.NEW,
        created_on=date(2024, 5, 1),
    ))
    return store


@pytest.fixture
def gateway(store) -> InMemoryGateway:
    gateway = InMemoryGateway()
    gateway.seed_from(store)
    return gateway


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def gateway_factory():
    """Build extra gateways, e.g. one that fails on a given write."""
    return InMemoryGateway
