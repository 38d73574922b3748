import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

import gspread
import requests
from google.oauth2.service_account import Credentials

from exceptions import PermanentServiceError
from logging_config import setup_logger
from state import OfferRecord, OfferState, OnboardingRecord

SCOPES = ['https://www.googleapis.com/auth/spreadsheets']

COLUMNS = [
    "Timestamp",          # A
    "Offer ID",           # B
    "Hiring Manager",     # C
    "Role",               # D
    "Salary",             # E
    "Equity",             # F
    "Shares",             # G
    "Start Date",         # H
    "Slack Handle",       # I
    "State",              # J
    "Full Legal Name",    # K
    "Address",            # L
    "Personal Email",     # M
    "Phone Number",       # N
    "Current Title",      # O
    "Deel Profile ID",    # P
    "Provisioning Note",  # Q
]
OFFER_ID_COL = COLUMNS.index("Offer ID") + 1
HANDLE_COL = COLUMNS.index("Slack Handle") + 1
STATE_COL = COLUMNS.index("State") + 1
LAST_COL = chr(ord("A") + len(COLUMNS) - 1)


def open_worksheet(credentials_info: Dict, spreadsheet_id: str, worksheet_name: str = "Sheet1",
                   timeout: float = None):
    """Authenticate with a service account and return the hires worksheet."""
    creds = Credentials.from_service_account_info(credentials_info, scopes=SCOPES)
    client = gspread.authorize(creds)
    if timeout:
        client.set_timeout(timeout)
    sheet = client.open_by_key(spreadsheet_id)
    return sheet.worksheet(worksheet_name)


def record_to_row(record: OfferRecord, onboarding: OnboardingRecord = None, timestamp: str = None) -> List[str]:
    onboarding_values = ["", "", "", "", "", "", ""]
    if onboarding:
        onboarding_values = [
            onboarding.full_name,
            onboarding.address,
            onboarding.personal_email,
            onboarding.phone_number,
            onboarding.current_title or "",
            onboarding.provisioning_profile_id or "",
            onboarding.provisioning_error or "",
        ]
    return [
        timestamp or datetime.now(timezone.utc).isoformat(),
        record.offer_id,
        record.hiring_manager or "N/A",
        record.role,
        record.salary,
        record.equity_percent,
        record.equity_shares_display,
        record.start_date_display,
        record.candidate_handle or "N/A",
        record.state.value,
    ] + onboarding_values


class HireSheet:
    """
    Hire records in a Google Sheet, one row per offer.

    Store errors propagate as PermanentServiceError; nothing here retries.
    """

    def __init__(self, worksheet, logger=None):
        self.worksheet = worksheet
        self.logger = logger or setup_logger("Sheets")
        # find-then-append runs under this lock so duplicate confirms in one process cannot interleave
        self._append_lock = threading.Lock()

    def _call(self, action: str, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except (gspread.exceptions.GSpreadException, requests.RequestException) as e:
            self.logger.error(f"Google Sheets failed to {action}: {e}")
            raise PermanentServiceError(f"Google Sheets failed to {action}: {e}") from e

    def ensure_header(self):
        header = self._call("read header", self.worksheet.row_values, 1)
        if not header:
            self._call("write header", self.worksheet.append_row, COLUMNS, value_input_option="RAW")
            self.logger.info("Wrote header row to hires sheet")

    # --------------------------------------------------
    def _find_last(self, column: int, value: str) -> Optional[int]:
        values = self._call("read column", self.worksheet.col_values, column)
        # Search from bottom to top so the most recent row wins
        for index in range(len(values) - 1, 0, -1):
            if values[index] == value:
                return index + 1
        return None

    def find_by_offer_id(self, offer_id: str) -> Optional[int]:
        return self._find_last(OFFER_ID_COL, offer_id)

    def find_by_handle(self, handle: str) -> Optional[int]:
        """Returns the 1-based row of the most recent record for a handle."""
        return self._find_last(HANDLE_COL, handle)

    def get_row(self, row: int) -> Dict[str, str]:
        values = self._call("read row", self.worksheet.row_values, row)
        values = values + [""] * (len(COLUMNS) - len(values))
        return dict(zip(COLUMNS, values))

    def get_state(self, row: int) -> Optional[OfferState]:
        value = self.get_row(row).get("State")
        try:
            return OfferState(value)
        except ValueError:
            return None

    # --------------------------------------------------
    def append(self, record: OfferRecord, onboarding: OnboardingRecord = None) -> int:
        self._call("append row", self.worksheet.append_row, record_to_row(record, onboarding),
                   value_input_option="RAW")
        row = self.find_by_offer_id(record.offer_id)
        self.logger.info(f"Appended offer {record.offer_id} ({record.state.value}) at row {row}")
        return row

    def append_if_absent(self, record: OfferRecord) -> Tuple[int, bool]:
        """
        Appends the record unless a row for its offer already exists.
        Returns (row, created).
        """
        with self._append_lock:
            existing = self.find_by_offer_id(record.offer_id)
            if existing:
                self.logger.info(f"Offer {record.offer_id} already recorded at row {existing}")
                return existing, False
            return self.append(record), True

    def update(self, row: int, record: OfferRecord, onboarding: OnboardingRecord = None):
        timestamp = self.get_row(row).get("Timestamp") or None
        values = record_to_row(record, onboarding, timestamp=timestamp)
        self._call("update row", self.worksheet.update, range_name=f"A{row}:{LAST_COL}{row}",
                   values=[values], value_input_option="RAW")
        self.logger.info(f"Updated offer {record.offer_id} at row {row} to {record.state.value}")

    def update_state(self, row: int, state: OfferState):
        self._call("update state", self.worksheet.update_cell, row, STATE_COL, state.value)
        self.logger.info(f"Row {row} moved to {state.value}")
