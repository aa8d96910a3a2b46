"""
Google Sheets Persistence Implementation

DESIGN DECISION: Google Sheets is used as the remote backend because:
1. The studio owner can inspect and export records directly
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (hundreds to low thousands of rows is fine)
- No transactions (the in-memory ChangeSet gives us batch validation instead)
- Limited query capabilities (we load whole collections and filter in Python)

Every collection lives in its own worksheet with three columns:
id, updated_at, payload_json. Payloads are pydantic JSON dumps so that
Decimal amounts round-trip without float conversion.
"""

import json
from datetime import datetime
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from pydantic import BaseModel
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from studio_ledger.config import get_settings
from studio_ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from studio_ledger.store.interface import (
    AuditStorageInterface,
    BackendUnavailableError,
    DuplicateError,
    NotFoundError,
    PersistenceGateway,
    StorageError,
)


RECORD_COLUMNS = ["id", "updated_at", "payload_json"]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets
        self._worksheets: dict[str, gspread.Worksheet] = {}

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise BackendUnavailableError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise BackendUnavailableError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise BackendUnavailableError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, headers: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get or create a worksheet with the given header row."""
        if title in self._worksheets:
            return self._worksheets[title]

        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(headers),
            )
            sheet.append_row(headers)
        self._worksheets[title] = sheet
        return sheet

    def get_collection_sheet(self, collection: str) -> gspread.Worksheet:
        return self.get_worksheet(
            f"{self._settings.worksheet_prefix}{collection}",
            RECORD_COLUMNS,
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self.get_worksheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


class GoogleSheetsGateway(PersistenceGateway):
    """
    Google Sheets implementation of the persistence gateway.

    One row per record. Lookups scan column A; the data volumes this
    studio produces keep that cheap.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _record_to_row(record: BaseModel) -> list:
        return [
            record.id,
            datetime.utcnow().isoformat(),
            record.model_dump_json(),
        ]

    @staticmethod
    def _find_row(all_rows: list[list], record_id: str) -> Optional[int]:
        """1-based sheet row index of a record, skipping the header."""
        for idx, row in enumerate(all_rows[1:], start=2):
            if row and row[0] == record_id:
                return idx
        return None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _fetch_rows(self, collection: str) -> list[list]:
        try:
            sheet = self._client.get_collection_sheet(collection)
            return sheet.get_all_values()[1:]  # Skip header
        except Exception as e:
            raise StorageError(f"Failed to list {collection}: {e}")

    async def list_records(self, collection: str) -> list[dict]:
        """List every record payload in a collection worksheet."""
        all_rows = await self._fetch_rows(collection)

        payloads = []
        for row in all_rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            if len(row) < 3 or not row[2]:
                raise StorageError(f"{collection}: row for {row[0]} has no payload")
            payloads.append(json.loads(row[2]))
        return payloads

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type((DuplicateError, NotFoundError)),
        reraise=True,
    )
    async def insert_record(self, collection: str, record: BaseModel) -> bool:
        """Append a new record row."""
        try:
            sheet = self._client.get_collection_sheet(collection)
            if self._find_row(sheet.get_all_values(), record.id) is not None:
                raise DuplicateError(collection, record.id)
            sheet.append_row(self._record_to_row(record), value_input_option="RAW")
            return True
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to insert into {collection}: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type((DuplicateError, NotFoundError)),
        reraise=True,
    )
    async def update_record(self, collection: str, record: BaseModel) -> bool:
        """Rewrite the row holding this record."""
        try:
            sheet = self._client.get_collection_sheet(collection)
            idx = self._find_row(sheet.get_all_values(), record.id)
            if idx is None:
                raise NotFoundError(collection, record.id)
            sheet.update(
                range_name=f"A{idx}:C{idx}",
                values=[self._record_to_row(record)],
                value_input_option="RAW",
            )
            return True
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update {collection}: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(NotFoundError),
        reraise=True,
    )
    async def delete_record(self, collection: str, record_id: str) -> bool:
        """Delete the row holding this record."""
        try:
            sheet = self._client.get_collection_sheet(collection)
            idx = self._find_row(sheet.get_all_values(), record_id)
            if idx is None:
                raise NotFoundError(collection, record_id)
            sheet.delete_rows(idx)
            return True
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete from {collection}: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def _all_events(self) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        return [self._row_to_event(row) for row in all_rows if row and row[0]]

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        events = [
            e for e in await self._all_events()
            if e.correlation_id == correlation_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        events = await self._all_events()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
