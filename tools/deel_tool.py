import threading
import time
from datetime import date, datetime
from typing import Optional

import requests
from pydantic import BaseModel

from exceptions import PermanentServiceError, TransientServiceError, ValidationException
from logging_config import setup_logger
from tools.retry import RetryPolicy

TOKEN_SAFETY_MARGIN_SECONDS = 60
DEFAULT_TOKEN_LIFETIME_SECONDS = 3600
DEFAULT_RETRY_AFTER_SECONDS = 5
DATE_INPUT_FORMATS = ["%Y-%m-%d", "%B %d, %Y", "%B %d %Y", "%b %d, %Y", "%b %d %Y", "%m/%d/%Y"]

STATUS_REASONS = {
    400: "Invalid request",
    401: "Invalid API credentials",
    403: "Insufficient permissions",
    404: "Not found",
}


class ProvisioningResult(BaseModel):
    success: bool
    profile_id: Optional[str] = None
    status: Optional[str] = None
    error: Optional[str] = None
    retryable: bool = False


def format_deel_date(value) -> str:
    """Normalizes a start date to YYYY-MM-DD. Raises ValidationException when unreadable."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value or "").strip()
    for fmt in DATE_INPUT_FORMATS:
        try:
            return datetime.strptime(text, fmt).date().isoformat()
        except ValueError:
            continue
    raise ValidationException(f"Invalid date format: {value}")


def profile_id_for(offer_id: str) -> str:
    return f"hire_{offer_id}"


class DeelClient:
    """Creates candidate profiles in Deel using client-credential OAuth."""

    def __init__(self, client_id: str, client_secret: str,
                 api_base: str = "https://api.letsdeel.com/rest/v2",
                 auth_base: str = "https://app.deel.com/oauth2",
                 candidate_link_base: str = "https://hirebot.internal/candidates",
                 timeout: float = 10.0, retry_policy: RetryPolicy = None,
                 session: requests.Session = None, clock=time.monotonic, logger=None):
        if not client_id or not client_secret:
            raise ValidationException("Deel client ID and secret are required")
        self.client_id = client_id
        self.client_secret = client_secret
        self.api_base = api_base.rstrip("/")
        self.auth_base = auth_base.rstrip("/")
        self.candidate_link_base = candidate_link_base.rstrip("/")
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self.session = session or requests.Session()
        self.clock = clock
        self.logger = logger or setup_logger("Deel")

        self._access_token = None
        self._token_expiry = 0.0
        self._token_lock = threading.Lock()

    # --------------------------------------------------
    def get_access_token(self) -> str:
        """Returns a cached token, refreshing it when it is within the safety margin of expiry."""
        with self._token_lock:
            if self._access_token and self.clock() < self._token_expiry:
                return self._access_token

            try:
                response = self.session.post(
                    f"{self.auth_base}/tokens",
                    data={"grant_type": "client_credentials"},
                    auth=(self.client_id, self.client_secret),
                    timeout=self.timeout,
                )
            except requests.RequestException as e:
                raise TransientServiceError(f"Deel auth request failed: {e}") from e

            self._raise_for_status(response, "authenticate with Deel")
            try:
                data = response.json()
            except ValueError as e:
                raise PermanentServiceError("Failed to authenticate with Deel API: unreadable token response") from e
            if not isinstance(data, dict) or not data.get("access_token"):
                raise PermanentServiceError("Failed to authenticate with Deel API: no access token returned")
            self._access_token = data["access_token"]
            try:
                expires_in = float(data.get("expires_in", DEFAULT_TOKEN_LIFETIME_SECONDS))
            except (TypeError, ValueError):
                self.logger.warning(f"Unreadable expires_in from Deel: {data.get('expires_in')!r}")
                expires_in = DEFAULT_TOKEN_LIFETIME_SECONDS
            self._token_expiry = self.clock() + expires_in - TOKEN_SAFETY_MARGIN_SECONDS
            self.logger.info("Deel access token refreshed")
            return self._access_token

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        token = self.get_access_token()
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "x-client-id": self.client_id,
        }
        try:
            response = self.session.request(
                method, f"{self.api_base}{path}", headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            raise TransientServiceError(f"Deel request {method} {path} failed: {e}") from e
        return response

    def _raise_for_status(self, response: requests.Response, action: str):
        status = response.status_code
        if status < 400:
            return
        if status == 429:
            retry_after = response.headers.get("Retry-After", DEFAULT_RETRY_AFTER_SECONDS)
            try:
                retry_after = float(retry_after)
            except (TypeError, ValueError):
                retry_after = DEFAULT_RETRY_AFTER_SECONDS
            raise TransientServiceError("Rate limit exceeded", retry_after=retry_after)
        if status >= 500:
            raise TransientServiceError(f"Deel server error {status} while trying to {action}")
        reason = STATUS_REASONS.get(status, "Deel API error")
        raise PermanentServiceError(f"{reason} while trying to {action}: {response.text}", status_code=status)

    # --------------------------------------------------
    def create_candidate(self, first_name: str, last_name: str, email: str, role: str, start_date,
                         country: str = "US", state: str = None, offer_id: str = None) -> ProvisioningResult:
        """
        Creates an offer-accepted candidate. Never raises: failures come back
        as ProvisioningResult(success=False) so the caller can record them.
        """
        try:
            formatted_date = format_deel_date(start_date)
        except ValidationException as e:
            self.logger.error(f"Not creating Deel candidate: {e}")
            return ProvisioningResult(success=False, error=str(e))

        candidate_id = profile_id_for(offer_id or str(int(time.time() * 1000)))
        payload = {
            "id": candidate_id,
            "first_name": first_name,
            "last_name": last_name,
            "status": "offer-accepted",
            "email": email,
            "job_title": role,
            "start_date": formatted_date,
            "country": country,
            "state": state,
            "link": f"{self.candidate_link_base}/{candidate_id}",
        }
        self.logger.info(f"Creating Deel candidate {candidate_id} for {role} starting {formatted_date}")

        def create():
            response = self._request("POST", "/candidates", json=payload)
            self._raise_for_status(response, "create candidate")
            try:
                body = response.json() if response.content else None
            except ValueError:
                body = None
            if not isinstance(body, dict) or body.get("message") != "Ok":
                raise PermanentServiceError(f"Invalid response from Deel API: {body}")
            return body

        try:
            self.retry_policy.call(create)
        except (TransientServiceError, PermanentServiceError) as e:
            self.logger.error(f"Error creating Deel candidate {candidate_id}: {e}")
            return ProvisioningResult(success=False, error=str(e),
                                      retryable=isinstance(e, TransientServiceError))

        self.logger.info(f"Deel candidate created: {candidate_id}")
        return ProvisioningResult(success=True, profile_id=candidate_id, status="offer-accepted")

    def get_candidate_status(self, profile_id: str) -> ProvisioningResult:
        def fetch():
            response = self._request("GET", f"/candidates/{profile_id}")
            if response.status_code == 404:
                return None
            self._raise_for_status(response, "get candidate status")
            try:
                return response.json()
            except ValueError as e:
                raise PermanentServiceError("Invalid response from Deel API") from e

        try:
            body = self.retry_policy.call(fetch)
        except (TransientServiceError, PermanentServiceError) as e:
            self.logger.error(f"Error getting Deel candidate status for {profile_id}: {e}")
            return ProvisioningResult(success=False, profile_id=profile_id, error=str(e))

        if body is None:
            return ProvisioningResult(success=False, profile_id=profile_id, error="Candidate not found")
        data = body.get("data", body) if isinstance(body, dict) else None
        status = data.get("status") if isinstance(data, dict) else None
        return ProvisioningResult(success=True, profile_id=profile_id, status=status)
