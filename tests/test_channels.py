import smtplib

import pytest

from wikinotif import channels
from wikinotif.config import SmtpSettings
from wikinotif.models import EXTERNAL, INTERNAL, NotificationMessage, Recipient

MESSAGE = NotificationMessage(subject="New user account created on TestWiki", body_text="Hello", category="new-user")
SMTP = SmtpSettings(host="smtp.example.org", port=2525, username="bot", password="secret", use_tls=True)


class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.calls = []
        self.sent = []
        FakeSMTP.instances.append(self)

    def starttls(self):
        self.calls.append("starttls")

    def login(self, username, password):
        self.calls.append(("login", username, password))

    def send_message(self, message):
        self.sent.append(message)

    def quit(self):
        self.calls.append("quit")

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.quit()
        return False


@pytest.fixture(autouse=True)
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    return FakeSMTP


def test_internal_mail_uses_display_name(fake_smtp):
    recipient = Recipient(name="Liz", email="liz@example.org", channel=INTERNAL)

    assert channels.send_email(recipient, MESSAGE, "wiki@example.org", SMTP) is True

    server = fake_smtp.instances[0]
    assert (server.host, server.port) == ("smtp.example.org", 2525)
    assert server.calls[:2] == ["starttls", ("login", "bot", "secret")]
    email = server.sent[0]
    assert email["To"] == "Liz <liz@example.org>"
    assert email["From"] == "wiki@example.org"
    assert email["Subject"] == MESSAGE.subject
    assert email["X-WikiNotif-Category"] == "new-user"
    assert email.get_content().strip() == "Hello"


def test_external_mail_uses_bare_address(fake_smtp):
    recipient = Recipient(name="list@example.org", email="list@example.org", channel=EXTERNAL)

    channels.send_email(recipient, MESSAGE, "wiki@example.org", SMTP)

    assert fake_smtp.instances[0].sent[0]["To"] == "list@example.org"


@pytest.mark.parametrize(
    "recipient, sender, smtp",
    [
        (Recipient(name="Liz", email=None), "wiki@example.org", SMTP),
        (Recipient(name="Liz", email="liz@example.org"), None, SMTP),
        (Recipient(name="Liz", email="liz@example.org"), "wiki@example.org", SmtpSettings(host=None)),
    ],
)
def test_send_email_skips_when_not_configured(fake_smtp, recipient, sender, smtp):
    assert channels.send_email(recipient, MESSAGE, sender, smtp) is False
    assert all(not server.sent for server in fake_smtp.instances)


def test_send_failures_are_swallowed(monkeypatch):
    def _refuse(*args, **kwargs):
        raise smtplib.SMTPConnectError(421, "busy")

    monkeypatch.setattr(smtplib, "SMTP", _refuse)
    recipient = Recipient(name="Liz", email="liz@example.org")

    assert channels.send_email(recipient, MESSAGE, "wiki@example.org", SMTP) is False


def test_dispatch_sends_every_message(fake_smtp):
    recipient = Recipient(name="Liz", email="liz@example.org")
    second = NotificationMessage(subject="Page created or edited on TestWiki", body_text="Hi", category="new-rev")

    channels.dispatch(recipient, [MESSAGE, second], "wiki@example.org", SmtpSettings(host="localhost", use_tls=False))

    subjects = [server.sent[0]["Subject"] for server in fake_smtp.instances]
    assert subjects == [MESSAGE.subject, second.subject]
    assert all("starttls" not in server.calls for server in fake_smtp.instances)


def test_dispatch_reports_whether_anything_went_out(fake_smtp):
    recipient = Recipient(name="Liz", email="liz@example.org")

    assert channels.dispatch(recipient, [MESSAGE], "wiki@example.org", SMTP) is True
    assert channels.dispatch(recipient, [MESSAGE], "wiki@example.org", SmtpSettings(host=None)) is False
    assert channels.dispatch(Recipient(name="Ghost"), [MESSAGE], "wiki@example.org", SMTP) is False
