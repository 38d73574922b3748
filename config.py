import json
import os
import socket
from typing import Dict, List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

from exceptions import ConfigurationError

load_dotenv()

REQUIRED_ENV_VARS = [
    "SLACK_BOT_TOKEN",
    "SLACK_SIGNING_SECRET",
    "GOOGLE_SHEETS_ID",
    "GOOGLE_SHEETS_CREDENTIALS",
    "GROQ_API_KEY",
    "DEEL_CLIENT_ID",
    "DEEL_CLIENT_SECRET",
]

TRUTHY = {"1", "true", "yes", "on"}


def get_local_ip():
    """
    Get the local IP address of the machine.
    Used as the default bind address so Slack tunnels on the LAN can reach the API.
    """
    try:
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        s.connect(("8.8.8.8", 80))
        local_ip = s.getsockname()[0]
        s.close()
        return local_ip
    except OSError:
        return "localhost"


class Settings(BaseModel):
    """Runtime configuration for the hiring bot."""

    slack_bot_token: str
    slack_signing_secret: str
    slack_app_token: Optional[str] = None

    google_sheets_id: str
    google_sheets_credentials: Dict
    google_sheets_worksheet: str = "Sheet1"

    groq_api_key: str
    groq_model: str = "llama-3.3-70b-versatile"

    deel_client_id: str
    deel_client_secret: str
    deel_api_base: str = "https://api.letsdeel.com/rest/v2"
    deel_auth_base: str = "https://app.deel.com/oauth2"
    deel_candidate_link_base: str = "https://hirebot.internal/candidates"
    default_country: str = "US"

    allow_future_years: bool = False
    http_timeout_seconds: float = 10.0
    retry_max_attempts: int = 3
    retry_base_delay_seconds: float = 1.0

    api_host: str = "localhost"
    api_port: int = 3000
    log_level: str = "INFO"
    log_file: str = os.path.join("logs", "app.log")

    @property
    def api_base_url(self) -> str:
        return f"http://{self.api_host}:{self.api_port}"


def missing_env_vars(environ=None) -> List[str]:
    environ = os.environ if environ is None else environ
    return [name for name in REQUIRED_ENV_VARS if not environ.get(name)]


def load_settings(environ=None) -> Settings:
    """
    Builds Settings from the environment.
    Raises ConfigurationError naming every missing or malformed variable.
    """
    environ = os.environ if environ is None else environ

    missing = missing_env_vars(environ)
    if missing:
        raise ConfigurationError(f"Missing required environment variables: {', '.join(missing)}")

    try:
        credentials = json.loads(environ["GOOGLE_SHEETS_CREDENTIALS"])
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"GOOGLE_SHEETS_CREDENTIALS is not valid JSON: {e}") from e
    if not credentials.get("client_email") or not credentials.get("private_key"):
        raise ConfigurationError("GOOGLE_SHEETS_CREDENTIALS must contain client_email and private_key")

    values = {
        "slack_bot_token": environ["SLACK_BOT_TOKEN"],
        "slack_signing_secret": environ["SLACK_SIGNING_SECRET"],
        "slack_app_token": environ.get("SLACK_APP_TOKEN") or None,
        "google_sheets_id": environ["GOOGLE_SHEETS_ID"],
        "google_sheets_credentials": credentials,
        "groq_api_key": environ["GROQ_API_KEY"],
        "deel_client_id": environ["DEEL_CLIENT_ID"],
        "deel_client_secret": environ["DEEL_CLIENT_SECRET"],
        "allow_future_years": environ.get("ALLOW_FUTURE_YEARS", "").lower() in TRUTHY,
        "api_host": environ.get("API_HOST") or get_local_ip(),
    }

    optional = {
        "GROQ_MODEL": "groq_model",
        "GOOGLE_SHEETS_WORKSHEET": "google_sheets_worksheet",
        "DEEL_API_BASE": "deel_api_base",
        "DEEL_AUTH_BASE": "deel_auth_base",
        "DEEL_CANDIDATE_LINK_BASE": "deel_candidate_link_base",
        "DEFAULT_COUNTRY": "default_country",
        "HTTP_TIMEOUT_SECONDS": "http_timeout_seconds",
        "RETRY_MAX_ATTEMPTS": "retry_max_attempts",
        "RETRY_BASE_DELAY_SECONDS": "retry_base_delay_seconds",
        "API_PORT": "api_port",
        "LOG_LEVEL": "log_level",
        "LOG_FILE": "log_file",
    }
    for env_name, field in optional.items():
        if environ.get(env_name):
            values[field] = environ[env_name]

    try:
        return Settings(**values)
    except ValueError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
