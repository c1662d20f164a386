import pytest
import requests

from event_checkin.models import EventDay, OutcomeKind, RegistrationRecord
from event_checkin.services import CheckinClient, RegistrationClient, RegistrationRejected, TransportError

DAY1 = EventDay("day1")


class FakeResponse:
    def __init__(self, status_code, body=None, *, invalid_json=False):
        self.status_code = status_code
        self._body = body
        self._invalid_json = invalid_json

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._invalid_json:
            raise ValueError("No JSON object could be decoded")
        return self._body


@pytest.fixture
def captured(monkeypatch):
    calls = {"post": [], "get": [], "responses": []}

    def fake_post(_self, url, json=None, timeout=None, **_kwargs):
        calls["post"].append((url, json, timeout))
        return _next(calls)

    def fake_get(_self, url, timeout=None, **_kwargs):
        calls["get"].append((url, timeout))
        return _next(calls)

    monkeypatch.setattr(requests.Session, "post", fake_post)
    monkeypatch.setattr(requests.Session, "get", fake_get)
    return calls


def _next(calls):
    response = calls["responses"].pop(0)
    if isinstance(response, Exception):
        raise response
    return response


def test_mark_present_accepted(captured):
    captured["responses"].append(FakeResponse(200, {"message": "Welcome Ada"}))
    client = CheckinClient("https://api.example.com/", timeout=3.0)

    outcome = client.mark_present(DAY1, "REG-001")

    assert captured["post"] == [("https://api.example.com/api/registers/day1", {"regNum": "REG-001"}, 3.0)]
    assert outcome.kind is OutcomeKind.ACCEPTED
    assert outcome.message == "Welcome Ada"
    assert outcome.token == "REG-001"
    assert outcome.day == DAY1


def test_mark_present_uses_configured_path_and_field(captured):
    captured["responses"].append(FakeResponse(201, {}))
    client = CheckinClient("http://localhost:8000", path_template="/checkins/{day}", token_field="token")

    outcome = client.mark_present(DAY1, "REG-001")

    assert captured["post"][0][:2] == ("http://localhost:8000/checkins/day1", {"token": "REG-001"})
    assert outcome.message == "Checked in"


def test_mark_present_client_error_is_rejected(captured):
    captured["responses"].append(FakeResponse(409, {"message": "Already checked in"}))
    client = CheckinClient("http://localhost:3000")

    outcome = client.mark_present(DAY1, "REG-001")

    assert outcome.kind is OutcomeKind.REJECTED
    assert outcome.message == "Already checked in"
    assert outcome.status_code == 409


def test_mark_present_rejection_without_message_falls_back(captured):
    captured["responses"].append(FakeResponse(404, {"error": "nope"}))
    outcome = CheckinClient("http://localhost:3000").mark_present(DAY1, "REG-404")
    assert outcome.message == "Scan failed"


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse(502, {"message": "Bad gateway"}),
        FakeResponse(500, invalid_json=True),
        FakeResponse(200, invalid_json=True),
        FakeResponse(200, ["not", "an", "object"]),
        requests.ConnectionError("connection refused"),
        requests.Timeout("timed out"),
    ],
)
def test_mark_present_transport_failures_raise(captured, response):
    captured["responses"].append(response)
    with pytest.raises(TransportError):
        CheckinClient("http://localhost:3000").mark_present(DAY1, "REG-001")


def test_server_error_keeps_status_code(captured):
    captured["responses"].append(FakeResponse(503, {"message": "Maintenance"}))
    with pytest.raises(TransportError) as excinfo:
        CheckinClient("http://localhost:3000").mark_present(DAY1, "REG-001")
    assert excinfo.value.status_code == 503
    assert str(excinfo.value) == "Maintenance"


def test_fetch_count(captured):
    captured["responses"].append(FakeResponse(200, {"count": 12}))
    client = CheckinClient("http://localhost:3000", timeout=2.0)

    assert client.fetch_count(DAY1) == 12
    assert captured["get"] == [("http://localhost:3000/api/registers/day1", 2.0)]


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse(200, {"count": "12"}),
        FakeResponse(200, {"count": -1}),
        FakeResponse(200, {"count": True}),
        FakeResponse(200, {}),
        FakeResponse(500, {"count": 3}),
        requests.ConnectionError("offline"),
    ],
)
def test_fetch_count_invalid_responses_raise(captured, response):
    captured["responses"].append(response)
    with pytest.raises(TransportError):
        CheckinClient("http://localhost:3000").fetch_count(DAY1)


def test_registration_submit_returns_token(captured):
    captured["responses"].append(FakeResponse(201, {"registrationToken": "REG-777"}))
    client = RegistrationClient("http://localhost:3000")
    record = RegistrationRecord(name="Ada", email="ada@example.com", coupon_code="IICF24", mobile="0123")

    token = client.submit(record)

    assert token == "REG-777"
    url, payload, _timeout = captured["post"][0]
    assert url == "http://localhost:3000/api/registers"
    assert payload == {"name": "Ada", "email": "ada@example.com", "couponCode": "IICF24", "mobile": "0123"}


def test_registration_rejected(captured):
    captured["responses"].append(FakeResponse(400, {"message": "Invalid coupon code"}))
    client = RegistrationClient("http://localhost:3000")
    record = RegistrationRecord(name="Ada", email="ada@example.com", coupon_code="WRONG")

    with pytest.raises(RegistrationRejected, match="Invalid coupon code"):
        client.submit(record)


def test_registration_without_token_is_transport_error(captured):
    captured["responses"].append(FakeResponse(200, {"message": "ok"}))
    record = RegistrationRecord(name="Ada", email="ada@example.com", coupon_code="IICF24")
    with pytest.raises(TransportError):
        RegistrationClient("http://localhost:3000").submit(record)
