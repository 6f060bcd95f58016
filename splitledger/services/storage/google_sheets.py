"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the initial storage backend because:
1. Group members can inspect the raw rows directly in Sheets
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (fine for a handful of groups)
- No transactions (rows are append-only except group membership)
- Limited query capabilities (we filter in Python)

One worksheet per record type. Nested values (group members, expense
splits) are stored as JSON; amounts are stored as decimal strings.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from splitledger.config import get_settings
from splitledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from splitledger.models.ledger import (
    Expense,
    Group,
    Membership,
    Settlement,
    Split,
    User,
)
from splitledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)

USER_COLUMNS = ["id", "name", "email", "image_url"]

GROUP_COLUMNS = [
    "id",
    "name",
    "description",
    "invite_token",
    "created_by",
    "members_json",
]

EXPENSE_COLUMNS = [
    "id",
    "group_id",
    "paid_by_user_id",
    "date",
    "amount",
    "description",
    "category",
    "created_by",
    "splits_json",
]

SETTLEMENT_COLUMNS = [
    "id",
    "group_id",
    "paid_by_user_id",
    "received_by_user_id",
    "amount",
    "date",
    "note",
    "created_by",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "actor_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
]

sheets_retry = retry(
    retry=retry_if_not_exception_type(DuplicateError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


def _cell(row: list, index: int, default: str = "") -> str:
    """Read a cell, tolerating short rows."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @sheets_retry
    def connect(self) -> gspread.Client:
        """Establish connection using service account credentials."""
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
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

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
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_sheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get a worksheet, creating it with a header row if missing."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_users_sheet(self) -> gspread.Worksheet:
        return self.get_sheet(self._settings.users_sheet_name, USER_COLUMNS)

    def get_groups_sheet(self) -> gspread.Worksheet:
        return self.get_sheet(self._settings.groups_sheet_name, GROUP_COLUMNS)

    def get_expenses_sheet(self) -> gspread.Worksheet:
        return self.get_sheet(self._settings.expenses_sheet_name, EXPENSE_COLUMNS, rows=5000)

    def get_settlements_sheet(self) -> gspread.Worksheet:
        return self.get_sheet(self._settings.settlements_sheet_name, SETTLEMENT_COLUMNS)

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self.get_sheet(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    Each read loads the whole worksheet once, which gives every query a
    consistent snapshot of that record type.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    # -------------------------------------------------------------------------
    # Row mapping
    # -------------------------------------------------------------------------

    def _row_to_user(self, row: list) -> User:
        return User(
            id=_cell(row, 0),
            name=_cell(row, 1),
            email=_cell(row, 2),
            image_url=_cell(row, 3) or None,
        )

    def _group_to_row(self, group: Group) -> list:
        return [
            group.id,
            group.name,
            group.description or "",
            group.invite_token or "",
            group.created_by or "",
            json.dumps([m.model_dump(mode="json") for m in group.members]),
        ]

    def _row_to_group(self, row: list) -> Group:
        members_json = _cell(row, 5)
        members = [Membership(**m) for m in json.loads(members_json)] if members_json else []
        return Group(
            id=_cell(row, 0),
            name=_cell(row, 1),
            description=_cell(row, 2) or None,
            invite_token=_cell(row, 3) or None,
            created_by=_cell(row, 4) or None,
            members=members,
        )

    def _expense_to_row(self, expense: Expense) -> list:
        return [
            expense.id,
            expense.group_id or "",
            expense.paid_by_user_id,
            expense.date.isoformat(),
            str(expense.amount),
            expense.description,
            expense.category or "",
            expense.created_by or "",
            json.dumps([s.model_dump(mode="json") for s in expense.splits]),
        ]

    def _row_to_expense(self, row: list) -> Expense:
        splits_json = _cell(row, 8)
        splits = [Split(**s) for s in json.loads(splits_json)] if splits_json else []
        return Expense(
            id=_cell(row, 0),
            group_id=_cell(row, 1) or None,
            paid_by_user_id=_cell(row, 2),
            date=datetime.fromisoformat(_cell(row, 3)),
            amount=Decimal(_cell(row, 4, "0")),
            description=_cell(row, 5),
            category=_cell(row, 6) or None,
            created_by=_cell(row, 7) or None,
            splits=splits,
        )

    def _settlement_to_row(self, settlement: Settlement) -> list:
        return [
            settlement.id,
            settlement.group_id or "",
            settlement.paid_by_user_id,
            settlement.received_by_user_id,
            str(settlement.amount),
            settlement.date.isoformat(),
            settlement.note or "",
            settlement.created_by or "",
        ]

    def _row_to_settlement(self, row: list) -> Settlement:
        return Settlement(
            id=_cell(row, 0),
            group_id=_cell(row, 1) or None,
            paid_by_user_id=_cell(row, 2),
            received_by_user_id=_cell(row, 3),
            amount=Decimal(_cell(row, 4, "0")),
            date=datetime.fromisoformat(_cell(row, 5)),
            note=_cell(row, 6) or None,
            created_by=_cell(row, 7) or None,
        )

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    @sheets_retry
    async def _load(self, get_sheet, parse) -> list:
        try:
            all_rows = get_sheet().get_all_values()[1:]  # Skip header
        except Exception as e:
            raise StorageError(f"Failed to read sheet: {e}")

        records = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                records.append(parse(row))
            except Exception as e:
                # Skip, but never silently
                logger.warning("malformed_row_skipped", row_id=row[0], error=str(e))
        return records

    async def _users(self) -> list[User]:
        return await self._load(self._client.get_users_sheet, self._row_to_user)

    async def _groups(self) -> list[Group]:
        return await self._load(self._client.get_groups_sheet, self._row_to_group)

    async def _expenses(self) -> list[Expense]:
        return await self._load(self._client.get_expenses_sheet, self._row_to_expense)

    async def _settlements(self) -> list[Settlement]:
        return await self._load(self._client.get_settlements_sheet, self._row_to_settlement)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_user(self, user_id: str) -> Optional[User]:
        for user in await self._users():
            if user.id == user_id:
                return user
        return None

    async def get_group(self, group_id: str) -> Optional[Group]:
        for group in await self._groups():
            if group.id == group_id:
                return group
        return None

    async def get_group_by_invite_token(self, token: str) -> Optional[Group]:
        for group in await self._groups():
            if group.invite_token and group.invite_token == token:
                return group
        return None

    async def list_users(self) -> list[User]:
        return await self._users()

    async def list_groups(self) -> list[Group]:
        return await self._groups()

    async def list_groups_for_user(self, user_id: str) -> list[Group]:
        return [g for g in await self._groups() if g.is_member(user_id)]

    async def list_group_expenses(self, group_id: str) -> list[Expense]:
        return [e for e in await self._expenses() if e.group_id == group_id]

    async def list_group_settlements(self, group_id: str) -> list[Settlement]:
        return [s for s in await self._settlements() if s.group_id == group_id]

    async def list_direct_expenses_for_user(self, user_id: str) -> list[Expense]:
        return [e for e in await self._expenses() if e.is_direct and e.involves(user_id)]

    async def list_direct_settlements_for_user(self, user_id: str) -> list[Settlement]:
        return [s for s in await self._settlements() if s.is_direct and s.involves(user_id)]

    async def list_user_expenses_since(self, user_id: str, since: datetime) -> list[Expense]:
        return [
            e for e in await self._expenses()
            if e.date >= since and e.involves(user_id)
        ]

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    @sheets_retry
    async def save_expense(self, expense: Expense) -> bool:
        """Append an expense row."""
        try:
            sheet = self._client.get_expenses_sheet()
            if sheet.find(expense.id, in_column=1):
                raise DuplicateError(f"Expense already exists: {expense.id}")
            sheet.append_row(self._expense_to_row(expense), value_input_option="RAW")
            return True
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save expense: {e}")

    @sheets_retry
    async def save_settlement(self, settlement: Settlement) -> bool:
        """Append a settlement row."""
        try:
            sheet = self._client.get_settlements_sheet()
            if sheet.find(settlement.id, in_column=1):
                raise DuplicateError(f"Settlement already exists: {settlement.id}")
            sheet.append_row(self._settlement_to_row(settlement), value_input_option="RAW")
            return True
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save settlement: {e}")

    @sheets_retry
    async def save_group(self, group: Group) -> bool:
        """Insert a group row, or rewrite it in place if it exists."""
        try:
            sheet = self._client.get_groups_sheet()
            row = self._group_to_row(group)
            cell = sheet.find(group.id, in_column=1)
            if cell is None:
                sheet.append_row(row, value_input_option="RAW")
            else:
                sheet.update(
                    range_name=f"A{cell.row}",
                    values=[row],
                    value_input_option="RAW",
                )
            return True
        except Exception as e:
            raise StorageError(f"Failed to save group: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        return AuditEvent(
            event_id=UUID(_cell(row, 0)),
            timestamp=datetime.fromisoformat(_cell(row, 1)),
            event_type=AuditEventType(_cell(row, 2)),
            severity=AuditSeverity(_cell(row, 3)),
            entity_type=_cell(row, 4) or None,
            entity_id=_cell(row, 5) or None,
            actor_id=_cell(row, 6) or None,
            correlation_id=UUID(_cell(row, 7)) if _cell(row, 7) else None,
            description=_cell(row, 8),
            details=json.loads(_cell(row, 9)) if _cell(row, 9) else {},
            error_message=_cell(row, 10) or None,
        )

    @sheets_retry
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def _events(self) -> list[AuditEvent]:
        try:
            all_rows = self._client.get_audit_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except Exception as e:
                logger.warning("malformed_audit_row_skipped", row_id=row[0], error=str(e))
        return events

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in await self._events() if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in await self._events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events
