import re
from typing import Dict, List, Optional

from slack_sdk.errors import SlackApiError

from exceptions import NotFoundError, PermanentServiceError, TransientServiceError
from logging_config import setup_logger
from tools.retry import RetryPolicy

EMBEDDED_ID_PATTERN = re.compile(r"<@([UW][A-Z0-9]+)(?:\|[^>]*)?>")
DEFAULT_RETRY_AFTER_SECONDS = 1


def extract_user_id(handle: str) -> Optional[str]:
    """Returns the internal id embedded in '<@U123>' or '<@U123|name>' notation."""
    match = EMBEDDED_ID_PATTERN.search(handle or "")
    return match.group(1) if match else None


def bare_name(handle: str) -> str:
    """'<@dan.smith>' / '@dan.smith' / '<@U123|dan>' -> the name without notation."""
    name = (handle or "").strip()
    if "|" in name:
        name = name.split("|", 1)[1]
    name = re.sub(r"^<?@", "", name)
    return name.rstrip(">").strip()


def _member_fields(member: Dict) -> List[Optional[str]]:
    profile = member.get("profile") or {}
    return [
        member.get("id"),
        member.get("name"),
        profile.get("display_name"),
        member.get("real_name") or profile.get("real_name"),
        profile.get("email"),
    ]


class SlackMessenger:
    """Posts and edits messages, opens DMs and resolves handles through the Slack Web API."""

    def __init__(self, client, retry_policy: RetryPolicy = None, logger=None):
        self.client = client
        self.retry_policy = retry_policy or RetryPolicy()
        self.logger = logger or setup_logger("Slack")

    def _call(self, method: str, **kwargs):
        def invoke():
            try:
                return getattr(self.client, method)(**kwargs)
            except SlackApiError as e:
                error = e.response.get("error") if e.response is not None else str(e)
                if error == "ratelimited" or getattr(e.response, "status_code", None) == 429:
                    headers = getattr(e.response, "headers", None) or {}
                    retry_after = float(headers.get("Retry-After", DEFAULT_RETRY_AFTER_SECONDS))
                    raise TransientServiceError(f"Slack {method} rate limited", retry_after=retry_after) from e
                raise PermanentServiceError(f"Slack {method} failed: {error}") from e

        return self.retry_policy.call(invoke)

    # --------------------------------------------------
    def post_message(self, channel: str, text: str, blocks: List[Dict] = None, thread_ts: str = None) -> str:
        kwargs = {"channel": channel, "text": text}
        if blocks:
            kwargs["blocks"] = blocks
        if thread_ts:
            kwargs["thread_ts"] = thread_ts
        response = self._call("chat_postMessage", **kwargs)
        return response.get("ts")

    def update_message(self, channel: str, ts: str, text: str, blocks: List[Dict] = None):
        self._call("chat_update", channel=channel, ts=ts, text=text, blocks=blocks or [])

    def open_direct_channel(self, user_id: str) -> str:
        response = self._call("conversations_open", users=user_id, return_im=True)
        return response["channel"]["id"]

    def list_members(self) -> List[Dict]:
        members = []
        cursor = None
        while True:
            kwargs = {"limit": 200}
            if cursor:
                kwargs["cursor"] = cursor
            response = self._call("users_list", **kwargs)
            members.extend(response.get("members", []))
            cursor = (response.get("response_metadata") or {}).get("next_cursor")
            if not cursor:
                return members

    def resolve_handle(self, handle: str) -> Optional[str]:
        """
        Turns a handle into a user id.

        An embedded id is used as is. Otherwise the bare name is matched
        case-insensitively against member id, username, display name,
        real name and email, in that order; the first match wins.
        """
        user_id = extract_user_id(handle)
        if user_id:
            return user_id

        name = bare_name(handle).lower()
        if not name:
            return None

        self.logger.info(f"Looking up Slack user by name: {name}")
        members = [m for m in self.list_members() if not m.get("deleted")]
        for field_index in range(5):
            for member in members:
                value = _member_fields(member)[field_index]
                if value and value.lower() == name:
                    self.logger.info(f"Resolved {handle} to {member['id']}")
                    return member["id"]
        return None

    def require_user(self, handle: str) -> str:
        user_id = self.resolve_handle(handle)
        if not user_id:
            raise NotFoundError(f"Could not find a Slack user for {handle}")
        return user_id
