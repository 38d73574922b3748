from datetime import date
from typing import Dict, List

import pytest

from exceptions import NotFoundError
from state import OfferRecord, OfferState
from tools.deel_tool import ProvisioningResult, profile_id_for
from tools.sheets_tool import COLUMNS, HireSheet
from workflow import OfferWorkflow


class FakeWorksheet:
    """In-memory stand-in for a gspread Worksheet."""

    def __init__(self, with_header=True):
        self.rows: List[List[str]] = [list(COLUMNS)] if with_header else []
        self.append_calls = 0
        self.input_options = []

    def row_values(self, row):
        if row > len(self.rows):
            return []
        return list(self.rows[row - 1])

    def col_values(self, col):
        return [r[col - 1] if len(r) >= col else "" for r in self.rows]

    def append_row(self, values, value_input_option=None):
        self.append_calls += 1
        self.input_options.append(value_input_option)
        self.rows.append([str(v) for v in values])

    def update(self, range_name=None, values=None, value_input_option=None):
        self.input_options.append(value_input_option)
        row = int(range_name.split(":")[0][1:])
        self.rows[row - 1] = [str(v) for v in values[0]]

    def update_cell(self, row, col, value):
        self.rows[row - 1][col - 1] = str(value)


class FakeMessenger:
    def __init__(self, members: Dict[str, str] = None, fail_dm: Exception = None):
        self.members = members or {}
        self.fail_dm = fail_dm
        self.posts = []
        self.updates = []
        self.opened = []

    def post_message(self, channel, text, blocks=None, thread_ts=None):
        self.posts.append({"channel": channel, "text": text, "blocks": blocks, "thread_ts": thread_ts})
        return f"ts-{len(self.posts)}"

    def update_message(self, channel, ts, text, blocks=None):
        self.updates.append({"channel": channel, "ts": ts, "text": text, "blocks": blocks})

    def require_user(self, handle):
        from tools.slack_tool import bare_name, extract_user_id
        user_id = extract_user_id(handle) or self.members.get(bare_name(handle))
        if not user_id:
            raise NotFoundError(f"Could not find a Slack user for {handle}")
        return user_id

    def open_direct_channel(self, user_id):
        if self.fail_dm:
            raise self.fail_dm
        self.opened.append(user_id)
        return f"D-{user_id}"

    def dm_forms(self):
        return [p for p in self.posts if p["channel"].startswith("D-") and p["blocks"]]


class FakeProvisioner:
    def __init__(self, result: ProvisioningResult = None):
        self.result = result or ProvisioningResult(success=True, profile_id="hire_x", status="offer-accepted")
        self.calls = []
        self.status_checks = []
        self.existing = set()

    def get_candidate_status(self, profile_id):
        self.status_checks.append(profile_id)
        if profile_id in self.existing:
            return ProvisioningResult(success=True, profile_id=profile_id, status="offer-accepted")
        return ProvisioningResult(success=False, profile_id=profile_id, error="Candidate not found")

    def create_candidate(self, **kwargs):
        self.calls.append(kwargs)
        if self.result.success:
            self.existing.add(profile_id_for(kwargs["offer_id"]))
        return self.result


class FakeParser:
    def __init__(self, fields=None):
        self.fields = fields or {
            "role": "Software Engineer",
            "salary": "$130,000",
            "equity_percent": "0.66%",
            "start_date": date(2026, 5, 1),
            "candidate_handle": "<@U123>",
        }

    def parse(self, text):
        return dict(self.fields)


@pytest.fixture
def worksheet():
    return FakeWorksheet()


@pytest.fixture
def store(worksheet):
    return HireSheet(worksheet)


@pytest.fixture
def messenger():
    return FakeMessenger(members={"dan": "U999"})


@pytest.fixture
def provisioner():
    return FakeProvisioner()


@pytest.fixture
def workflow(store, messenger, provisioner):
    return OfferWorkflow(FakeParser(), store, messenger, provisioner)


@pytest.fixture
def offer():
    return OfferRecord(
        offer_id="offer-20261019120000-abc123",
        hiring_manager="<@UMGR>",
        role="Software Engineer",
        salary="$130,000",
        equity_percent="0.66%",
        start_date=date(2026, 5, 1),
        candidate_handle="<@U123>",
        state=OfferState.AWAITING_CONFIRMATION,
    )


@pytest.fixture
def form_values():
    return {
        "full_name": "Dan Smith",
        "address": "1 Main St, Springfield",
        "personal_email": "dan@example.com",
        "phone_number": "+1 555-0100",
        "current_title": None,
    }
