import json
from datetime import date

import pytest
import requests

from exceptions import ValidationException
from tools.deel_tool import DeelClient, format_deel_date, profile_id_for
from tools.retry import RetryPolicy


class DummyResp:
    def __init__(self, data, status_code=200, headers=None):
        self._data = data
        self.status_code = status_code
        self.headers = headers or {}
        self.text = json.dumps(data) if data is not None else ""
        self.content = self.text.encode()

    def json(self):
        return self._data


class FakeSession:
    def __init__(self, responses, token_expires_in=3600):
        self.responses = list(responses)
        self.token_expires_in = token_expires_in
        self.token_requests = 0
        self.requests = []

    def post(self, url, data=None, auth=None, timeout=None):
        self.token_requests += 1
        return DummyResp({"access_token": f"token-{self.token_requests}", "expires_in": self.token_expires_in})

    def request(self, method, url, headers=None, timeout=None, json=None):
        self.requests.append({"method": method, "url": url, "headers": headers, "json": json})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def make_client(session, clock=None, max_attempts=3, slept=None):
    sleep = slept.append if slept is not None else (lambda s: None)
    return DeelClient(
        "client-id", "client-secret",
        session=session,
        clock=clock or Clock(),
        retry_policy=RetryPolicy(max_attempts=max_attempts, base_delay=1.0, sleep=sleep),
    )


def create(client, **overrides):
    kwargs = dict(first_name="Dan", last_name="Smith", email="dan@example.com", role="Software Engineer",
                  start_date="May 1, 2026", offer_id="offer-1")
    kwargs.update(overrides)
    return client.create_candidate(**kwargs)


def test_create_candidate_payload():
    session = FakeSession([DummyResp({"message": "Ok"})])
    result = create(make_client(session))

    assert result.success
    assert result.profile_id == "hire_offer-1"
    sent = session.requests[0]
    assert sent["url"].endswith("/candidates")
    assert sent["headers"]["Authorization"] == "Bearer token-1"
    assert sent["json"]["start_date"] == "2026-05-01"
    assert sent["json"]["status"] == "offer-accepted"
    assert sent["json"]["first_name"] == "Dan"
    assert sent["json"]["link"].endswith("/hire_offer-1")


def test_token_is_cached_until_safety_margin():
    clock = Clock()
    session = FakeSession([DummyResp({"message": "Ok"})] * 3, token_expires_in=120)
    client = make_client(session, clock=clock)

    create(client)
    clock.now += 30
    create(client)
    assert session.token_requests == 1

    clock.now += 31  # inside the last 60 seconds
    create(client)
    assert session.token_requests == 2


def test_rate_limit_honors_retry_after():
    slept = []
    session = FakeSession([
        DummyResp({"error": "slow down"}, status_code=429, headers={"Retry-After": "7"}),
        DummyResp({"message": "Ok"}),
    ])
    result = create(make_client(session, slept=slept))

    assert result.success
    assert slept == [7.0]


def test_transient_errors_back_off_exponentially_then_fail():
    slept = []
    session = FakeSession([
        DummyResp({"error": "boom"}, status_code=503),
        requests.Timeout("timed out"),
        DummyResp({"error": "boom"}, status_code=502),
    ])
    result = create(make_client(session, slept=slept))

    assert not result.success
    assert result.retryable
    assert result.profile_id is None
    assert slept == [1.0, 2.0]
    assert len(session.requests) == 3


def test_permanent_errors_are_not_retried():
    session = FakeSession([DummyResp({"error": "bad"}, status_code=401)])
    result = create(make_client(session))

    assert not result.success
    assert not result.retryable
    assert "Invalid API credentials" in result.error
    assert len(session.requests) == 1


def test_unexpected_body_is_a_failure():
    session = FakeSession([DummyResp({"message": "Maybe"})])
    result = create(make_client(session))
    assert not result.success
    assert "Invalid response" in result.error


def test_unparseable_date_is_not_sent():
    session = FakeSession([])
    result = create(make_client(session), start_date="someday soon")
    assert not result.success
    assert "Invalid date format" in result.error
    assert session.requests == []
    assert session.token_requests == 0


def test_candidate_status():
    session = FakeSession([DummyResp({"data": {"status": "offer-accepted"}}), DummyResp(None, status_code=404)])
    client = make_client(session)

    found = client.get_candidate_status("hire_offer-1")
    missing = client.get_candidate_status("hire_other")

    assert found.success and found.status == "offer-accepted"
    assert not missing.success and missing.error == "Candidate not found"


@pytest.mark.parametrize("value", [date(2026, 5, 1), "2026-05-01", "May 1, 2026", "May 1 2026", "05/01/2026"])
def test_format_deel_date(value):
    assert format_deel_date(value) == "2026-05-01"


def test_format_deel_date_rejects_garbage():
    with pytest.raises(ValidationException):
        format_deel_date("the first of may")


def test_profile_id_is_stable_per_offer():
    assert profile_id_for("offer-1") == profile_id_for("offer-1") == "hire_offer-1"


def test_missing_credentials():
    with pytest.raises(ValidationException):
        DeelClient("", "secret")


@pytest.mark.parametrize("error", [
    requests.exceptions.ChunkedEncodingError("connection broken"),
    requests.exceptions.TooManyRedirects("redirect loop"),
    requests.exceptions.InvalidURL("bad url"),
])
def test_any_request_failure_comes_back_as_a_result(error):
    slept = []
    session = FakeSession([error] * 3)
    result = create(make_client(session, slept=slept))

    assert not result.success
    assert result.retryable
    assert len(session.requests) == 3


def test_unreadable_token_lifetime_uses_default():
    clock = Clock()
    session = FakeSession([DummyResp({"message": "Ok"})] * 2, token_expires_in="soon")
    client = make_client(session, clock=clock)

    assert create(client).success
    clock.now += 600
    assert create(client).success
    assert session.token_requests == 1


def test_non_object_body_is_a_failure():
    session = FakeSession([DummyResp(["Ok"])])
    result = create(make_client(session))
    assert not result.success
    assert "Invalid response" in result.error
