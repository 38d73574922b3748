import json

import pytest

from config import REQUIRED_ENV_VARS, load_settings, missing_env_vars
from exceptions import ConfigurationError

CREDENTIALS = json.dumps({"client_email": "bot@example.iam.gserviceaccount.com", "private_key": "---key---"})


def full_env(**overrides):
    env = {
        "SLACK_BOT_TOKEN": "xoxb-test",
        "SLACK_SIGNING_SECRET": "secret",
        "GOOGLE_SHEETS_ID": "sheet-1",
        "GOOGLE_SHEETS_CREDENTIALS": CREDENTIALS,
        "GROQ_API_KEY": "gsk-test",
        "DEEL_CLIENT_ID": "deel-id",
        "DEEL_CLIENT_SECRET": "deel-secret",
        "API_HOST": "127.0.0.1",
    }
    env.update(overrides)
    return env


def test_load_settings_with_defaults():
    settings = load_settings(full_env())
    assert settings.slack_app_token is None
    assert settings.google_sheets_worksheet == "Sheet1"
    assert settings.default_country == "US"
    assert settings.allow_future_years is False
    assert settings.api_base_url == "http://127.0.0.1:3000"


def test_optional_overrides():
    settings = load_settings(full_env(RETRY_MAX_ATTEMPTS="5", ALLOW_FUTURE_YEARS="true", API_PORT="8080"))
    assert settings.retry_max_attempts == 5
    assert settings.allow_future_years is True
    assert settings.api_port == 8080


@pytest.mark.parametrize("name", REQUIRED_ENV_VARS)
def test_each_required_variable_is_fatal(name):
    env = full_env()
    del env[name]
    assert missing_env_vars(env) == [name]
    with pytest.raises(ConfigurationError, match=name):
        load_settings(env)


def test_bad_credentials_json():
    with pytest.raises(ConfigurationError):
        load_settings(full_env(GOOGLE_SHEETS_CREDENTIALS="{not json"))
    with pytest.raises(ConfigurationError):
        load_settings(full_env(GOOGLE_SHEETS_CREDENTIALS=json.dumps({"client_email": "x"})))


def test_bad_number():
    with pytest.raises(ConfigurationError):
        load_settings(full_env(API_PORT="eighty"))
