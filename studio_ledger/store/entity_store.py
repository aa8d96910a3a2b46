"""
In-Memory Entity Store

The working copy of every record collection. Each collection is an
insertion-ordered mapping from id to a validated pydantic record.

DESIGN DECISION: Multi-record writes go through a ChangeSet.
EntityStore.apply() checks every step against the current state before
touching anything, so a batch either lands completely or not at all.
Nobody can observe a transaction whose project has not been inserted yet.

There are no foreign keys and no cascades. Deleting a project does not
delete its transactions; callers add those removals to the same ChangeSet.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, Iterable, Iterator, Optional, TypeVar

from pydantic import BaseModel

from studio_ledger.models.entities import (
    AddOn,
    Card,
    Client,
    FinancialPocket,
    Lead,
    Package,
    Project,
    PromoCode,
    TeamMember,
    TeamProjectPayment,
    Transaction,
)
from studio_ledger.store.interface import DuplicateError, NotFoundError


T = TypeVar("T", bound=BaseModel)


COLLECTION_MODELS: dict[str, type[BaseModel]] = {
    "leads": Lead,
    "clients": Client,
    "projects": Project,
    "transactions": Transaction,
    "cards": Card,
    "pockets": FinancialPocket,
    "team_members": TeamMember,
    "promo_codes": PromoCode,
    "packages": Package,
    "add_ons": AddOn,
    "team_project_payments": TeamProjectPayment,
}


class Collection(Generic[T]):
    """One named, insertion-ordered collection of records."""

    def __init__(self, name: str, model: type[T], records: Iterable[T] = ()):
        self.name = name
        self.model = model
        self._records: dict[str, T] = {}
        for record in records:
            self.insert(record)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._records.values()))

    def get(self, record_id: str) -> T:
        """
        Return the record with this id.

        Raises:
            NotFoundError: If the id is absent
        """
        try:
            return self._records[record_id]
        except KeyError:
            raise NotFoundError(self.name, record_id) from None

    def get_or_none(self, record_id: Optional[str]) -> Optional[T]:
        if record_id is None:
            return None
        return self._records.get(record_id)

    def insert(self, record: T) -> T:
        """
        Add a new record at the end of the collection.

        Raises:
            DuplicateError: If the id is already present
        """
        self._check_type(record)
        if record.id in self._records:
            raise DuplicateError(self.name, record.id)
        self._records[record.id] = record
        return record

    def update(self, record_id: str, patch: dict) -> T:
        """
        Apply a partial update, re-validating the whole record.

        Raises:
            NotFoundError: If the id is absent
            ValueError: If the patch tries to change the id
        """
        current = self.get(record_id)
        if "id" in patch and patch["id"] != record_id:
            raise ValueError(f"{self.name}: record ids are immutable")
        data = current.model_dump()
        data.update(patch)
        updated = self.model.model_validate(data)
        self._records[record_id] = updated
        return updated

    def replace(self, record: T) -> T:
        """Swap in a whole new version of an existing record, keeping its position."""
        self._check_type(record)
        if record.id not in self._records:
            raise NotFoundError(self.name, record.id)
        self._records[record.id] = record
        return record

    def remove(self, record_id: str) -> T:
        """
        Delete a record.

        Raises:
            NotFoundError: If the id is absent
        """
        if record_id not in self._records:
            raise NotFoundError(self.name, record_id)
        return self._records.pop(record_id)

    def find(self, predicate: Callable[[T], bool]) -> list[T]:
        return [record for record in self._records.values() if predicate(record)]

    def ids(self) -> set[str]:
        return set(self._records)

    def _check_type(self, record: BaseModel) -> None:
        if not isinstance(record, self.model):
            raise TypeError(
                f"{self.name} holds {self.model.__name__}, got {type(record).__name__}"
            )

    # Defined last so the builtin stays usable in the annotations above
    def list(self) -> list[T]:
        """All records in insertion order."""
        return list(self._records.values())


class ChangeOperation(str, Enum):
    INSERT = "insert"
    REPLACE = "replace"
    REMOVE = "remove"


@dataclass(frozen=True)
class ChangeStep:
    operation: ChangeOperation
    collection: str
    record_id: str
    record: Optional[BaseModel] = None


class ChangeSet:
    """
    An ordered batch of writes across collections.

    Build it up front, then hand it to EntityStore.apply() (and to the
    persistence gateway) as one logical unit.
    """

    def __init__(self, steps: Iterable[ChangeStep] = ()):
        self._steps: list[ChangeStep] = list(steps)

    def insert(self, collection: str, record: BaseModel) -> "ChangeSet":
        self._steps.append(ChangeStep(ChangeOperation.INSERT, collection, record.id, record))
        return self

    def replace(self, collection: str, record: BaseModel) -> "ChangeSet":
        self._steps.append(ChangeStep(ChangeOperation.REPLACE, collection, record.id, record))
        return self

    def remove(self, collection: str, record_id: str) -> "ChangeSet":
        self._steps.append(ChangeStep(ChangeOperation.REMOVE, collection, record_id))
        return self

    def extend(self, other: "ChangeSet") -> "ChangeSet":
        self._steps.extend(other)
        return self

    def __iter__(self) -> Iterator[ChangeStep]:
        return iter(self._steps)

    def __len__(self) -> int:
        return len(self._steps)

    def __bool__(self) -> bool:
        return bool(self._steps)

    def touched(self, collection: str) -> list[ChangeStep]:
        return [step for step in self._steps if step.collection == collection]


class EntityStore:
    """
    Holds every record collection the studio works with.

    Usage:
        store = EntityStore()
        store.leads.insert(lead)
        store.apply(conversion.to_change_set())
    """

    def __init__(self):
        self._collections: dict[str, Collection] = {
            name: Collection(name, model)
            for name, model in COLLECTION_MODELS.items()
        }

    # Named accessors for the collections callers touch most

    @property
    def leads(self) -> Collection[Lead]:
        return self._collections["leads"]

    @property
    def clients(self) -> Collection[Client]:
        return self._collections["clients"]

    @property
    def projects(self) -> Collection[Project]:
        return self._collections["projects"]

    @property
    def transactions(self) -> Collection[Transaction]:
        return self._collections["transactions"]

    @property
    def cards(self) -> Collection[Card]:
        return self._collections["cards"]

    @property
    def pockets(self) -> Collection[FinancialPocket]:
        return self._collections["pockets"]

    @property
    def team_members(self) -> Collection[TeamMember]:
        return self._collections["team_members"]

    @property
    def promo_codes(self) -> Collection[PromoCode]:
        return self._collections["promo_codes"]

    @property
    def packages(self) -> Collection[Package]:
        return self._collections["packages"]

    @property
    def add_ons(self) -> Collection[AddOn]:
        return self._collections["add_ons"]

    @property
    def team_project_payments(self) -> Collection[TeamProjectPayment]:
        return self._collections["team_project_payments"]

    def collection(self, name: str) -> Collection:
        try:
            return self._collections[name]
        except KeyError:
            raise KeyError(f"Unknown collection: {name}") from None

    def collection_names(self) -> list[str]:
        return list(self._collections)

    def clone(self) -> "EntityStore":
        """
        Independent copy of every collection.

        Records are shared, not copied: they are only ever swapped out
        whole, never mutated in place.
        """
        copy = EntityStore()
        for name, col in self._collections.items():
            copy._collections[name] = Collection(name, col.model, col.list())
        return copy

    def sizes(self) -> dict[str, int]:
        return {name: len(col) for name, col in self._collections.items()}

    def load(self, name: str, payloads: Iterable[dict]) -> int:
        """
        Replace a collection's contents with validated payloads.

        Used when hydrating from the persistence gateway.
        """
        col = self.collection(name)
        fresh = Collection(name, col.model, (col.model.model_validate(p) for p in payloads))
        self._collections[name] = fresh
        return len(fresh)

    def check(self, change_set: ChangeSet) -> None:
        """
        Dry-run a ChangeSet against the current state.

        Raises:
            DuplicateError: An insert reuses an existing or earlier-inserted id
            NotFoundError: A replace/remove targets a missing id
            TypeError: A record does not belong in its collection
        """
        present: dict[str, set[str]] = {}
        for step in change_set:
            col = self.collection(step.collection)
            ids = present.setdefault(step.collection, col.ids())

            if step.operation == ChangeOperation.INSERT:
                col._check_type(step.record)
                if step.record_id in ids:
                    raise DuplicateError(step.collection, step.record_id)
                ids.add(step.record_id)
            elif step.operation == ChangeOperation.REPLACE:
                col._check_type(step.record)
                if step.record_id not in ids:
                    raise NotFoundError(step.collection, step.record_id)
            else:
                if step.record_id not in ids:
                    raise NotFoundError(step.collection, step.record_id)
                ids.discard(step.record_id)

    def apply(self, change_set: ChangeSet) -> None:
        """Apply every step of a ChangeSet, or none of them."""
        self.check(change_set)
        for step in change_set:
            col = self.collection(step.collection)
            if step.operation == ChangeOperation.INSERT:
                col.insert(step.record)
            elif step.operation == ChangeOperation.REPLACE:
                col.replace(step.record)
            else:
                col.remove(step.record_id)
