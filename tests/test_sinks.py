from __future__ import annotations

import asyncio

import pytest

from casewatch.config import TwilioConfig
from casewatch.models import Notification
from casewatch.sinks import ConsoleSink, TwilioSmsSink, build_sinks
from casewatch.twilio_notifier import MAX_SMS_LENGTH, format_notification_sms, send_sms


class FakeMessages:
    def __init__(self, fail: bool = False) -> None:
        self.sent = []
        self.fail = fail

    def create(self, body, from_, to):
        if self.fail:
            raise RuntimeError("HTTP 401 error: Authenticate")
        self.sent.append((body, from_, to))

        class Result:
            sid = f"SM{len(self.sent)}"

        return Result()


class FakeTwilioClient:
    def __init__(self, fail: bool = False) -> None:
        self.messages = FakeMessages(fail)


TWILIO = TwilioConfig(
    enabled=True,
    account_sid="AC123",
    auth_token="tok",
    from_number="+10000000000",
    to_numbers=["+911111111111", "+912222222222"],
)


def _notification(message: str = "Ravi booked with Dr. Rao") -> Notification:
    return Notification(
        id="n1", type="appointment", title="New Appointment", message=message, timestamp=0.0
    )


def test_format_truncates_long_messages() -> None:
    body = format_notification_sms(_notification("x" * 400))
    assert len(body) == MAX_SMS_LENGTH
    assert body.endswith("...")


def test_send_sms_to_every_recipient() -> None:
    client = FakeTwilioClient()
    assert send_sms("hello", TWILIO, client=client) == 2
    assert [to for _, _, to in client.messages.sent] == TWILIO.to_numbers


def test_send_sms_skips_empty_message() -> None:
    client = FakeTwilioClient()
    assert send_sms("  ", TWILIO, client=client) == 0
    assert client.messages.sent == []


def test_send_sms_propagates_failures() -> None:
    with pytest.raises(RuntimeError):
        send_sms("hello", TWILIO, client=FakeTwilioClient(fail=True))


def test_twilio_sink_sends_synchronously_outside_loop() -> None:
    client = FakeTwilioClient()
    TwilioSmsSink(TWILIO, client=client).publish(_notification())
    assert client.messages.sent[0][0] == "New Appointment: Ravi booked with Dr. Rao"


def test_twilio_sink_uses_executor_inside_loop() -> None:
    client = FakeTwilioClient()
    sink = TwilioSmsSink(TWILIO, client=client)

    async def scenario() -> None:
        sink.publish(_notification())
        await asyncio.sleep(0.05)

    asyncio.run(scenario())
    assert len(client.messages.sent) == 2


def test_build_sinks() -> None:
    assert [type(s) for s in build_sinks(None)] == [ConsoleSink]
    assert [type(s) for s in build_sinks(TWILIO)] == [ConsoleSink, TwilioSmsSink]
