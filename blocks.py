"""Slack Block Kit payloads for the hire prompts."""
from typing import Dict, List, Optional

from state import OfferRecord

CONFIRM_ACTION = "confirm_hire"
CANCEL_ACTION = "reject_hire"
SUBMIT_ACTION = "submit_hire_info"

FORM_FIELDS = {
    # block_id: (action_id, label, placeholder, multiline, optional)
    "full_name": ("full_name_input", "Full Legal Name", "Enter your full legal name", False, False),
    "address": ("address_input", "Address", "Enter your full address", True, False),
    "personal_email": ("personal_email_input", "Personal Email", "Enter your personal email address", False, False),
    "phone_number": ("phone_number_input", "Phone Number", "Enter your phone number", False, False),
    "current_title": ("current_title_input", "Current Job Title", "Enter your current job title", False, True),
}


def _section(text: str) -> Dict:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def _button(text: str, action_id: str, value: str = None, style: str = None) -> Dict:
    button = {
        "type": "button",
        "text": {"type": "plain_text", "text": text, "emoji": True},
        "action_id": action_id,
    }
    if value is not None:
        button["value"] = value
    if style:
        button["style"] = style
    return button


def offer_summary(record: OfferRecord) -> str:
    return (
        f"*Role:* {record.role}\n*Salary:* {record.salary}\n"
        f"*Equity:* {record.equity_percent} ({record.equity_shares_display} shares)\n"
        f"*Start Date:* {record.start_date_display}"
    )


def confirmation_blocks(record: OfferRecord) -> List[Dict]:
    payload = record.to_action_value()
    blocks = [
        {"type": "header", "text": {"type": "plain_text", "text": "🎉 New Hire Details", "emoji": True}},
        _section(f"Hey {record.hiring_manager}! I've parsed your hiring request. Here's what I understood:"),
        {
            "type": "section",
            "fields": [
                {"type": "mrkdwn", "text": f"*Role:*\n{record.role}"},
                {"type": "mrkdwn", "text": f"*Salary:*\n{record.salary}"},
                {"type": "mrkdwn", "text": f"*Equity:*\n{record.equity_percent}\n({record.equity_shares_display} shares)"},
                {"type": "mrkdwn", "text": f"*Start Date:*\n{record.start_date_display}"},
            ],
        },
    ]
    if record.candidate_handle:
        blocks.append(_section(f"*New Hire:* {record.candidate_handle}"))
    blocks.append(_section(
        "If everything looks correct, click *Confirm* to:\n"
        "• Log the hire in our tracking sheet\n"
        "• Send an onboarding form to the new hire"
    ))
    blocks.append({
        "type": "actions",
        "elements": [
            _button("✅ Confirm", CONFIRM_ACTION, value=payload, style="primary"),
            _button("❌ Cancel", CANCEL_ACTION, value=payload, style="danger"),
        ],
    })
    return blocks


def confirmed_blocks(record: OfferRecord) -> List[Dict]:
    return [_section(f"✅ Hire confirmed!\n\n{offer_summary(record)}")]


def cancelled_blocks() -> List[Dict]:
    return [_section("❌ Hire cancelled. Please submit a new `/hire` command with the correct details.")]


def onboarding_form_blocks(record: OfferRecord) -> List[Dict]:
    blocks = [_section(
        f"Hey {record.candidate_handle}! Welcome to the team! 🎉\n\n"
        f"I'm excited to let you know that {record.hiring_manager} has confirmed your hire:\n"
        f"• Role: {record.role}\n• Start Date: {record.start_date_display}\n\n"
        "To complete your onboarding, please fill out the following information:"
    )]
    for block_id, (action_id, label, placeholder, multiline, optional) in FORM_FIELDS.items():
        element = {
            "type": "plain_text_input",
            "action_id": action_id,
            "placeholder": {"type": "plain_text", "text": placeholder},
        }
        if multiline:
            element["multiline"] = True
        blocks.append({
            "type": "input",
            "block_id": block_id,
            "optional": optional,
            "label": {"type": "plain_text", "text": label, "emoji": True},
            "element": element,
        })
    blocks.append({
        "type": "actions",
        "elements": [_button("Submit Information", SUBMIT_ACTION, value=record.to_action_value(), style="primary")],
    })
    return blocks


def read_form_values(state_values: Dict) -> Dict[str, Optional[str]]:
    """Pulls the onboarding answers out of an interactive payload's state.values."""
    answers = {}
    for block_id, (action_id, _, _, _, _) in FORM_FIELDS.items():
        value = ((state_values or {}).get(block_id) or {}).get(action_id) or {}
        text = value.get("value")
        answers[block_id] = text.strip() if isinstance(text, str) else None
    return answers


def onboarding_complete_blocks(profile_id: Optional[str], note: Optional[str] = None) -> List[Dict]:
    if profile_id:
        text = (
            "Thanks for submitting your information! 🎉\n\n"
            "I've created your Deel profile and recorded your details. Someone from the team will be in "
            "touch with next steps. We're looking forward to working with you! 🚀\n\n"
            f"*Deel Profile ID:* `{profile_id}`"
        )
    else:
        text = (
            "Thanks for submitting your information! 🎉\n\n"
            "I've recorded your details. Someone from the team will finish setting up your profile "
            "and be in touch with next steps. 🚀"
        )
        if note:
            text += f"\n\n_Note: {note}_"
    return [_section(text)]
