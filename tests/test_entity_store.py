"""Tests for the in-memory entity store and ChangeSet application."""

import pytest
from datetime import date
from decimal import Decimal

from studio_ledger.models.entities import (
    Client,
    ContactChannel,
    Lead,
    LeadStatus,
    Project,
    Transaction,
    TransactionType,
)
from studio_ledger.store import ChangeSet, DuplicateError, EntityStore, NotFoundError


def make_client(client_id: str = "CLI001") -> Client:
    return Client(id=client_id, name="Andi & Siska")


def make_project(project_id: str = "PRJ001", client_id: str = "CLI001") -> Project:
    return Project(
        id=project_id,
        project_name="Pernikahan Andi & Siska",
        client_id=client_id,
        client_name="Andi & Siska",
        event_date=date(2024, 8, 17),
        total_cost=Decimal("27000000"),
    )


class TestCollection:
    """Tests for single-collection operations."""

    def test_insert_and_get(self):
        """Test that inserted records can be read back by id."""
        store = EntityStore()
        client = store.clients.insert(make_client())
        assert store.clients.get("CLI001") is client
        assert "CLI001" in store.clients
        assert len(store.clients) == 1

    def test_insert_duplicate_id_rejected(self):
        """Test that ids are unique within a collection."""
        store = EntityStore()
        store.clients.insert(make_client())
        with pytest.raises(DuplicateError):
            store.clients.insert(make_client())

    def test_get_missing_raises(self):
        """Test NotFoundError on unknown ids."""
        store = EntityStore()
        with pytest.raises(NotFoundError):
            store.projects.get("PRJ404")
        assert store.projects.get_or_none("PRJ404") is None

    def test_insert_wrong_type_rejected(self):
        """Test that a collection only holds its own model."""
        store = EntityStore()
        with pytest.raises(TypeError):
            store.leads.insert(make_client())

    def test_update_revalidates(self):
        """Test that patches go through model validation."""
        store = EntityStore()
        store.projects.insert(make_project())
        updated = store.projects.update("PRJ001", {"progress": 70})
        assert updated.progress == 70
        with pytest.raises(ValueError):
            store.projects.update("PRJ001", {"progress": 150})
        assert store.projects.get("PRJ001").progress == 70

    def test_update_cannot_change_id(self):
        """Test that ids are immutable."""
        store = EntityStore()
        store.projects.insert(make_project())
        with pytest.raises(ValueError):
            store.projects.update("PRJ001", {"id": "PRJ002"})

    def test_list_keeps_insertion_order(self):
        """Test insertion ordering and replace keeping position."""
        store = EntityStore()
        for idx in range(3):
            store.clients.insert(make_client(f"CLI00{idx}"))
        store.clients.replace(Client(id="CLI001", name="Renamed"))
        assert [c.id for c in store.clients.list()] == ["CLI000", "CLI001", "CLI002"]
        assert store.clients.get("CLI001").name == "Renamed"

    def test_find(self):
        """Test predicate search."""
        store = EntityStore()
        store.leads.insert(Lead(id="L1", name="A", contact_channel=ContactChannel.WEBSITE))
        store.leads.insert(Lead(id="L2", name="B", contact_channel=ContactChannel.INSTAGRAM))
        found = store.leads.find(lambda lead: lead.contact_channel == ContactChannel.WEBSITE)
        assert [lead.id for lead in found] == ["L1"]


class TestChangeSet:
    """Tests for all-or-nothing batch application."""

    def test_apply_multi_collection_batch(self):
        """Test a client, project and transaction landing together."""
        store = EntityStore()
        changes = (
            ChangeSet()
            .insert("clients", make_client())
            .insert("projects", make_project())
            .insert("transactions", Transaction(
                id="TRN001",
                description="DP Proyek Pernikahan",
                amount=Decimal("5000000"),
                type=TransactionType.INCOME,
                category="DP Proyek",
                project_id="PRJ001",
            ))
        )
        store.apply(changes)
        assert store.sizes()["clients"] == 1
        assert store.sizes()["projects"] == 1
        assert store.sizes()["transactions"] == 1

    def test_failing_step_leaves_store_untouched(self):
        """Test that a bad last step prevents every earlier step."""
        store = EntityStore()
        store.clients.insert(make_client())
        before = store.sizes()

        changes = (
            ChangeSet()
            .insert("projects", make_project())
            .replace("leads", Lead(id="LEAD404", name="Ghost", contact_channel=ContactChannel.OTHER))
        )
        with pytest.raises(NotFoundError):
            store.apply(changes)
        assert store.sizes() == before

    def test_duplicate_within_batch_rejected(self):
        """Test that two inserts of the same id in one batch fail."""
        store = EntityStore()
        changes = ChangeSet().insert("clients", make_client()).insert("clients", make_client())
        with pytest.raises(DuplicateError):
            store.apply(changes)
        assert len(store.clients) == 0

    def test_replace_after_insert_in_same_batch(self):
        """Test that later steps see records inserted by earlier ones."""
        store = EntityStore()
        lead = Lead(id="L1", name="Web", contact_channel=ContactChannel.WEBSITE)
        changes = (
            ChangeSet()
            .insert("leads", lead)
            .replace("leads", lead.model_copy(update={"status": LeadStatus.CONVERTED}))
        )
        store.apply(changes)
        assert store.leads.get("L1").status == LeadStatus.CONVERTED

    def test_touched(self):
        """Test filtering steps by collection."""
        changes = ChangeSet().insert("clients", make_client()).insert("projects", make_project())
        assert [s.record_id for s in changes.touched("projects")] == ["PRJ001"]
        assert len(changes) == 2
        assert not ChangeSet()


class TestEntityStore:
    """Tests for store-level helpers."""

    def test_load_replaces_collection(self):
        """Test hydrating a collection from payloads."""
        store = EntityStore()
        store.clients.insert(make_client("OLD"))
        count = store.load("clients", [make_client().model_dump(mode="json")])
        assert count == 1
        assert store.clients.ids() == {"CLI001"}

    def test_clone_is_independent(self):
        """Test that writes to a clone never reach the original."""
        store = EntityStore()
        store.clients.insert(make_client())
        copy = store.clone()
        copy.clients.remove("CLI001")
        assert "CLI001" in store.clients
        assert "CLI001" not in copy.clients

    def test_unknown_collection(self):
        """Test that unknown collection names are rejected."""
        with pytest.raises(KeyError):
            EntityStore().collection("invoices")
