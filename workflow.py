"""
The /hire workflow.

PARSED -> AWAITING_CONFIRMATION -> CONFIRMED -> AWAITING_ONBOARDING -> ONBOARDED,
with CANCELLED reachable from AWAITING_CONFIRMATION.

No state is kept in memory between callbacks. Every button carries the
full OfferRecord, and the hires sheet is the durable record. Once a row
has been written, later failures (DMs, Deel) are reported as partial
success and never undo the row.
"""
from typing import Dict, Optional

from pydantic import BaseModel

import blocks
from exceptions import NotFoundError, ServiceError, ValidationException, WorkflowStateError
from logging_config import setup_logger
from state import OfferRecord, OfferState, OnboardingRecord
from tools.deel_tool import ProvisioningResult, profile_id_for
from validators import split_full_name, validate_email, validate_phone_number

DM_BLOCKED_ERRORS = ("cannot_dm_bot", "not_in_channel", "user_not_found", "user_disabled")


class WorkflowOutcome(BaseModel):
    status: str  # ok | degraded | duplicate | cancelled | rejected | failed
    message: str
    record: Optional[OfferRecord] = None
    row: Optional[int] = None


def could_not_notify_message(handle: Optional[str], error: Exception = None) -> str:
    if not handle:
        return "✅ Hire logged, but I could not notify the new hire because no Slack handle was given."
    message = f"✅ Hire logged, but I could not notify {handle}. "
    if isinstance(error, NotFoundError):
        return message + "I couldn't find them in this workspace."
    if error and any(code in str(error) for code in DM_BLOCKED_ERRORS):
        return message + "Please make sure they are in the workspace and can receive DMs from apps."
    return message + f"Error: {error}"


class OfferWorkflow:
    def __init__(self, parser, store, messenger, provisioner, default_country: str = "US", logger=None):
        self.parser = parser
        self.store = store
        self.messenger = messenger
        self.provisioner = provisioner
        self.default_country = default_country
        self.logger = logger or setup_logger("Workflow")

    def _notify(self, channel: Optional[str], text: str, thread_ts: str = None):
        if not channel:
            return
        try:
            self.messenger.post_message(channel, text, thread_ts=thread_ts)
        except Exception as e:
            self.logger.error(f"Failed to post notice to {channel}: {e}", exc_info=True)

    def _replace(self, channel: str, ts: str, text: str, new_blocks):
        if not channel or not ts:
            return
        try:
            self.messenger.update_message(channel, ts, text, blocks=new_blocks)
        except Exception as e:
            self.logger.error(f"Failed to update message {ts} in {channel}: {e}", exc_info=True)

    # --------------------------------------------------
    def start_offer(self, text: str, manager_id: str) -> OfferRecord:
        """Parses the command and returns an offer awaiting confirmation. Raises ParseError."""
        fields = self.parser.parse(text)
        record = OfferRecord(hiring_manager=f"<@{manager_id}>", **fields)
        record = record.advance(OfferState.AWAITING_CONFIRMATION)
        self.logger.info(f"Offer {record.offer_id} awaiting confirmation from {record.hiring_manager}")
        return record

    def cancel(self, payload: str, channel: str, message_ts: str) -> WorkflowOutcome:
        record = OfferRecord.from_action_value(payload)
        cancelled = record.advance(OfferState.CANCELLED)

        row, created = self.store.append_if_absent(cancelled)
        existing = None if created else self.store.get_state(row)
        if not created and (existing is None or existing.is_confirmed_or_later()):
            self.logger.warning(f"Ignoring cancel for offer {record.offer_id}: already confirmed")
            return WorkflowOutcome(status="duplicate", message="Offer already confirmed", record=record, row=row)

        self._replace(channel, message_ts, "Hire cancelled", blocks.cancelled_blocks())
        self.logger.info(f"Offer {record.offer_id} cancelled")
        return WorkflowOutcome(status="cancelled", message="Hire cancelled", record=cancelled, row=row)

    def confirm(self, payload: str, channel: str, message_ts: str, thread_ts: str = None) -> WorkflowOutcome:
        record = OfferRecord.from_action_value(payload)
        thread = thread_ts or message_ts
        confirmed = record.advance(OfferState.CONFIRMED, origin_channel=channel, origin_ts=thread)

        try:
            row, created = self.store.append_if_absent(confirmed)
        except ServiceError as e:
            self.logger.error(f"Could not log offer {record.offer_id}: {e}", exc_info=True)
            self._notify(channel, "❌ Sorry, something went wrong while logging the hire. Please try again.", thread)
            return WorkflowOutcome(status="failed", message=str(e), record=record)

        if not created:
            existing = self.store.get_state(row)
            self.logger.info(f"Duplicate confirm for offer {record.offer_id} (row {row} is {existing})")
            if existing is not None and existing.is_confirmed_or_later():
                message = "Offer already confirmed"
            elif existing == OfferState.CANCELLED:
                message = "Offer was cancelled"
            else:
                message = "Offer already recorded"
            return WorkflowOutcome(status="duplicate", message=message, record=confirmed, row=row)

        # The row is written; nothing below may turn this into a failure.
        self._replace(channel, message_ts, "Hire confirmed", blocks.confirmed_blocks(confirmed))

        handle = confirmed.candidate_handle
        if not handle:
            message = could_not_notify_message(None)
            self._notify(channel, message, thread)
            return WorkflowOutcome(status="degraded", message=message, record=confirmed, row=row)

        awaiting = confirmed.advance(OfferState.AWAITING_ONBOARDING)
        try:
            user_id = self.messenger.require_user(handle)
            dm_channel = self.messenger.open_direct_channel(user_id)
            self.messenger.post_message(
                dm_channel,
                "Welcome to the team! Please fill out your onboarding information.",
                blocks=blocks.onboarding_form_blocks(awaiting),
            )
        except Exception as e:
            self.logger.error(f"Could not send onboarding form for offer {record.offer_id}: {e}", exc_info=True)
            message = could_not_notify_message(handle, e)
            self._notify(channel, message, thread)
            return WorkflowOutcome(status="degraded", message=message, record=confirmed, row=row)

        try:
            self.store.update_state(row, OfferState.AWAITING_ONBOARDING)
        except ServiceError as e:
            self.logger.warning(f"Row {row} state not updated to AWAITING_ONBOARDING: {e}")

        message = (
            f"✅ Hire logged successfully and I've sent the onboarding form to {handle}. "
            "I'll create their Deel profile once they submit their information."
        )
        self._notify(channel, message, thread)
        return WorkflowOutcome(status="ok", message=message, record=awaiting, row=row)

    def submit_onboarding(self, payload: str, form_values: Dict, channel: str, message_ts: str) -> WorkflowOutcome:
        record = OfferRecord.from_action_value(payload)
        if record.state not in (OfferState.CONFIRMED, OfferState.AWAITING_ONBOARDING):
            raise WorkflowStateError(f"Offer {record.offer_id} is {record.state.value}, not awaiting onboarding")

        try:
            first_name, last_name = split_full_name(form_values.get("full_name"))
            if not form_values.get("address"):
                raise ValidationException("Please provide your address.")
            validate_email(form_values.get("personal_email"))
            if not form_values.get("phone_number"):
                raise ValidationException("Please provide your phone number.")
            validate_phone_number(form_values.get("phone_number"))
        except ValidationException as e:
            self.logger.info(f"Onboarding form for offer {record.offer_id} rejected: {e}")
            self._notify(channel, f"⚠️ {e} Please correct it and click *Submit Information* again.")
            return WorkflowOutcome(status="rejected", message=str(e), record=record)

        try:
            row = self.store.find_by_offer_id(record.offer_id)
            existing = self.store.get_row(row) if row else {}
        except ServiceError as e:
            return self._onboarding_failed(record, channel, e)

        existing_profile = existing.get("Deel Profile ID") or None
        if existing_profile and existing.get("State") == OfferState.ONBOARDED.value:
            self.logger.info(f"Duplicate onboarding submission for offer {record.offer_id}")
            self._replace(channel, message_ts, "Information submitted", blocks.onboarding_complete_blocks(existing_profile))
            return WorkflowOutcome(status="duplicate", message="Onboarding already recorded", record=record, row=row)

        if existing_profile:
            result = ProvisioningResult(success=True, profile_id=existing_profile)
        else:
            result = self._provision(record, first_name, last_name, form_values["personal_email"])

        onboarding = OnboardingRecord(
            full_name=form_values["full_name"],
            address=form_values["address"],
            personal_email=form_values["personal_email"],
            phone_number=form_values["phone_number"],
            current_title=form_values.get("current_title") or None,
            provisioning_profile_id=result.profile_id if result.success else None,
            provisioning_error=None if result.success else f"Deel profile not created: {result.error}",
        )
        onboarded = record.advance(OfferState.ONBOARDED)

        try:
            if row:
                self.store.update(row, onboarded, onboarding)
            else:
                self.logger.warning(f"No row found for offer {record.offer_id}; appending a new one")
                row = self.store.append(onboarded, onboarding)
        except ServiceError as e:
            return self._onboarding_failed(record, channel, e)

        # Onboarding data is written; report anything after this as partial success.
        profile_id = onboarding.provisioning_profile_id
        note = None if profile_id else "Your payroll profile will be created by the team."
        self._replace(channel, message_ts, "Information submitted successfully",
                      blocks.onboarding_complete_blocks(profile_id, note))

        if profile_id:
            status = "ok"
            message = f"✅ {record.candidate_handle} has submitted their information and their Deel profile has been created (ID: {profile_id})"
        else:
            status = "degraded"
            message = (
                f"⚠️ {record.candidate_handle} has submitted their information and it has been recorded, "
                f"but I could not create their Deel profile: {result.error}. Please create it manually."
            )
        self._notify(record.origin_channel, message, record.origin_ts)
        return WorkflowOutcome(status=status, message=message, record=onboarded, row=row)

    def _provision(self, record: OfferRecord, first_name: str, last_name: str, email: str) -> ProvisioningResult:
        """
        Creates the Deel candidate for an offer, reusing one that already exists.

        A profile can exist without being on the sheet when an earlier
        submission reached Deel but the row update failed. Never raises.
        """
        profile_id = profile_id_for(record.offer_id)
        try:
            existing = self.provisioner.get_candidate_status(profile_id)
            if existing.success:
                self.logger.info(f"Deel profile {profile_id} already exists; reusing it")
                return ProvisioningResult(success=True, profile_id=profile_id, status=existing.status)

            return self.provisioner.create_candidate(
                first_name=first_name,
                last_name=last_name,
                email=email,
                role=record.role,
                start_date=record.start_date,
                country=self.default_country,
                offer_id=record.offer_id,
            )
        except Exception as e:
            self.logger.error(f"Unexpected error provisioning offer {record.offer_id}: {e}", exc_info=True)
            return ProvisioningResult(success=False, error=str(e))

    def _onboarding_failed(self, record: OfferRecord, channel: str, error: Exception) -> WorkflowOutcome:
        self.logger.error(f"Could not record onboarding for offer {record.offer_id}: {error}", exc_info=True)
        self._notify(channel, "Sorry, there was an error saving your information. "
                              "Please try submitting again or contact HR for assistance.")
        return WorkflowOutcome(status="failed", message=str(error), record=record)

    # --------------------------------------------------
    def status(self, offer_id: str) -> Dict[str, str]:
        row = self.store.find_by_offer_id(offer_id)
        if not row:
            raise NotFoundError(f"No record for offer {offer_id}")
        return self.store.get_row(row)
