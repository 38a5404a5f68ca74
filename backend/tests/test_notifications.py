import asyncio

import pytest

from bloodconnect.utils.notifications import (
    NotificationService,
    SmsNotification,
    blood_request_body,
    normalize_phone_number,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("+91 98765-43210", "+919876543210"),
        ("98765 43210", "+919876543210"),
        ("+1 (555) 123-4567", "+15551234567"),
        ("0044 20 7946 0000", "+00442079460000"),
        ("n/a", ""),
        ("", ""),
    ],
)
def test_normalize_phone_number(raw, expected):
    assert normalize_phone_number(raw, country_code="91") == expected


def test_local_numbers_left_alone_without_country_code():
    assert normalize_phone_number("98765 43210", country_code="") == "+9876543210"


def test_blood_request_body():
    assert blood_request_body("City General", "O-", 2) == (
        "City General needs 2 unit(s) of O- blood. Open BloodConnect to accept or decline the request."
    )


class RecordingMessages:
    def __init__(self, fail=False):
        self.fail = fail
        self.created = []

    def create(self, **kwargs):
        if self.fail:
            raise RuntimeError("twilio down")
        self.created.append(kwargs)


class FakeTwilio:
    def __init__(self, fail=False):
        self.messages = RecordingMessages(fail)


def test_sms_is_mocked_without_client(monkeypatch):
    service = NotificationService()
    monkeypatch.setattr(service, "client", None)
    assert asyncio.run(service.send_sms(SmsNotification(to="+91 98765 43210", body="hello"))) is True


def test_sms_goes_through_twilio(monkeypatch):
    service = NotificationService()
    fake = FakeTwilio()
    monkeypatch.setattr(service, "client", fake)
    sent = asyncio.run(service.alert_donor({"phone": "+91 98765 43210"}, "City General", "A+", 1))
    assert sent is True
    assert fake.messages.created[0]["to"] == "+919876543210"
    assert fake.messages.created[0]["from_"] == service.sender_phone


def test_sms_failure_is_reported_not_raised(monkeypatch):
    service = NotificationService()
    monkeypatch.setattr(service, "client", FakeTwilio(fail=True))
    assert asyncio.run(service.send_sms(SmsNotification(to="+15551234567", body="hello"))) is False


def test_donor_without_phone_gets_no_sms():
    service = NotificationService()
    assert asyncio.run(service.alert_donor({"name": "No Phone"}, "City General", "A+", 1)) is False
