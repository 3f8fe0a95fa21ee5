from datetime import datetime, timezone

import pytest

from wikinotif.config import WikiNotifSettings, reset_settings
from wikinotif.directory import InMemoryUserDirectory, reset_directory
from wikinotif.models import WikiUser
from wikinotif.service import WikiNotifier

FIXED_NOW = datetime(2026, 10, 19, 14, 5, tzinfo=timezone.utc)
AUTHENTICATED = datetime(2024, 1, 1, tzinfo=timezone.utc)

USERS_FIXTURE = [
    WikiUser(name="Admin", id=1, groups=["sysop", "bureaucrat"], email="admin@example.org", email_authenticated=AUTHENTICATED),
    WikiUser(name="Liz", id=2, groups=["editor"], email="liz@example.org", email_authenticated=AUTHENTICATED),
    WikiUser(name="Nick", id=3, groups=["user"], email="nick@example.org", email_authenticated=AUTHENTICATED),
    WikiUser(name="Pending", id=4, groups=["sysop"], email="pending@example.org", email_authenticated=None),
    WikiUser(name="Both", id=5, groups=["editor", "sysop"], email="both@example.org", email_authenticated=AUTHENTICATED),
]


@pytest.fixture(autouse=True)
def _fresh_settings():
    reset_directory()
    reset_settings()
    yield
    reset_directory()
    reset_settings()


@pytest.fixture
def directory():
    return InMemoryUserDirectory(USERS_FIXTURE)


@pytest.fixture
def settings():
    return WikiNotifSettings(
        sitename="TestWiki",
        server="https://wiki.example.org",
        targets=["Admin", 2, "Nick", "Pending", "Ghost", "Both"],
        sender="wiki@example.org",
    )


@pytest.fixture
def sent():
    return []


@pytest.fixture
def notifier(settings, directory, sent):
    def _record(recipient, messages):
        for message in messages:
            sent.append((recipient, message))

    return WikiNotifier(settings=settings, directory=directory, dispatcher=_record, now=lambda: FIXED_NOW)
