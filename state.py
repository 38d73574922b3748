import json
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, ValidationError, computed_field, field_validator

from exceptions import ValidationException, WorkflowStateError
from validators import validate_equity_percent

TOTAL_SHARES = 10_000_000


class OfferState(str, Enum):
    """Lifecycle of a hire, in the order it moves forward."""
    PARSED = "PARSED"
    AWAITING_CONFIRMATION = "AWAITING_CONFIRMATION"
    CONFIRMED = "CONFIRMED"
    AWAITING_ONBOARDING = "AWAITING_ONBOARDING"
    ONBOARDED = "ONBOARDED"
    CANCELLED = "CANCELLED"

    @property
    def rank(self) -> int:
        return _FORWARD_ORDER.index(self) if self in _FORWARD_ORDER else -1

    def is_confirmed_or_later(self) -> bool:
        return self.rank >= OfferState.CONFIRMED.rank


_FORWARD_ORDER = [
    OfferState.PARSED,
    OfferState.AWAITING_CONFIRMATION,
    OfferState.CONFIRMED,
    OfferState.AWAITING_ONBOARDING,
    OfferState.ONBOARDED,
]

ALLOWED_TRANSITIONS = {
    OfferState.PARSED: {OfferState.AWAITING_CONFIRMATION},
    OfferState.AWAITING_CONFIRMATION: {OfferState.CONFIRMED, OfferState.CANCELLED},
    OfferState.CONFIRMED: {OfferState.AWAITING_ONBOARDING, OfferState.ONBOARDED},
    OfferState.AWAITING_ONBOARDING: {OfferState.ONBOARDED},
    OfferState.ONBOARDED: set(),
    OfferState.CANCELLED: set(),
}


def new_offer_id(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"offer-{now.strftime('%Y%m%d%H%M%S')}-{uuid.uuid4().hex[:6]}"


def compute_equity_shares(equity_percent: str, total_shares: int = TOTAL_SHARES) -> int:
    """round(percent / 100 * total_shares), half up, on the exact decimal."""
    validate_equity_percent(equity_percent)
    percent = Decimal(equity_percent.rstrip("%"))
    shares = percent / Decimal(100) * Decimal(total_shares)
    return int(shares.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def format_start_date(value: date) -> str:
    return f"{value.strftime('%B')} {value.day}, {value.year}"


class OfferRecord(BaseModel):
    """One hire attempt. Travels inside button payloads between callbacks."""

    offer_id: str = Field(default_factory=new_offer_id)
    hiring_manager: str
    role: str
    salary: str
    equity_percent: str
    start_date: date
    candidate_handle: Optional[str] = None
    state: OfferState = OfferState.PARSED

    # Where the confirmation prompt lives, so later steps can reply in its thread
    origin_channel: Optional[str] = None
    origin_ts: Optional[str] = None

    @field_validator("equity_percent")
    @classmethod
    def _check_equity(cls, value: str) -> str:
        try:
            validate_equity_percent(value)
        except ValidationException as e:
            raise ValueError(str(e)) from e
        return value

    @computed_field
    @property
    def equity_shares(self) -> int:
        return compute_equity_shares(self.equity_percent)

    @property
    def equity_shares_display(self) -> str:
        return f"{self.equity_shares:,}"

    @property
    def start_date_display(self) -> str:
        return format_start_date(self.start_date)

    def advance(self, new_state: OfferState, **changes) -> "OfferRecord":
        """Returns a copy in new_state; raises WorkflowStateError on a backward or skipped move."""
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise WorkflowStateError(
                f"Offer {self.offer_id} cannot move from {self.state.value} to {new_state.value}"
            )
        return self.model_copy(update={"state": new_state, **changes})

    def to_action_value(self) -> str:
        return self.model_dump_json(exclude={"equity_shares"})

    @classmethod
    def from_action_value(cls, value: str) -> "OfferRecord":
        try:
            data = json.loads(value)
            data.pop("equity_shares", None)
            return cls.model_validate(data)
        except (TypeError, ValueError, ValidationError) as e:
            raise WorkflowStateError(f"Malformed offer payload: {e}") from e


class OnboardingRecord(BaseModel):
    """Details the new hire submits through the onboarding form."""

    full_name: str
    address: str
    personal_email: str
    phone_number: str
    current_title: Optional[str] = None
    provisioning_profile_id: Optional[str] = None
    provisioning_error: Optional[str] = None
