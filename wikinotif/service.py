from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from .channels import dispatch
from .collectors import collect_external_jobs, collect_internal_jobs, get_groups, select_targets
from .config import WikiNotifSettings, get_settings
from .directory import UserDirectory, build_directory, get_directory
from .messages import ContentLanguage
from .models import EVENT_TYPES, NEW_REV, NEW_USER, NotificationJob, NotificationMessage, Recipient, WikiPage, WikiUser

LOGGER = logging.getLogger(__name__)

Dispatcher = Callable[[Recipient, List[NotificationMessage]], Optional[bool]]


def create_message(subject: str, body_lines: Iterable[str], *, category: str = NEW_USER) -> NotificationMessage:
    body_text = "\n".join(body_lines)
    return NotificationMessage(subject=subject, body_text=body_text, category=category)


def deliver_jobs(jobs: Iterable[NotificationJob], dispatcher: Dispatcher) -> int:
    """Count the jobs delivered; a dispatcher returning False reports that nothing went out."""
    delivered = 0
    for job in jobs:
        if not job.messages:
            continue
        try:
            if dispatcher(job.recipient, job.messages) is not False:
                delivered += 1
        except Exception:
            LOGGER.exception("Failed to dispatch notifications for %s", job.recipient.name)
    return delivered


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WikiNotifier:
    """Composes and sends the notifications for one wiki event."""

    def __init__(
        self,
        settings: Optional[WikiNotifSettings] = None,
        directory: Optional[UserDirectory] = None,
        dispatcher: Optional[Dispatcher] = None,
        now: Callable[[], datetime] = _utcnow,
    ):
        if directory is None:
            directory = build_directory(settings) if settings else get_directory()
        self.settings = settings or get_settings()
        self.directory = directory
        self.sender = self.settings.sender or self.settings.password_sender
        self.dispatcher = dispatcher or self._smtp_dispatcher
        self.language = ContentLanguage(self.settings.content_language)
        self.now = now
        self.user: Optional[WikiUser] = None
        self.page: Optional[WikiPage] = None

    def _smtp_dispatcher(self, recipient: Recipient, messages: List[NotificationMessage]) -> bool:
        return dispatch(recipient, messages, self.sender, self.settings.smtp)

    def execute(self, user: WikiUser, event_type: str, page: Optional[WikiPage] = None) -> int:
        """Send all notifications for ``user`` creating an account or saving ``page``."""
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown notification type: {event_type!r}")
        self.user = user
        self.page = page

        groups = get_groups(self.settings.targets, self.directory, self.settings.configured_groups())
        targets = select_targets(event_type, groups, self.settings)

        delivered = self.send_external_mails(self.settings.external_addresses)
        delivered += self.send_internal_mails(targets)
        LOGGER.info("Dispatched %d %s notifications for %s", delivered, event_type, user.name)
        return delivered

    def _build(self, recipient: str) -> NotificationMessage:
        return NotificationMessage(
            subject=self.make_subject(recipient, self.user, self.page),
            body_text=self.make_message(recipient, self.user, self.page),
            category=NEW_REV if self.page else NEW_USER,
        )

    def send_external_mails(self, addresses: Iterable[str]) -> int:
        jobs = collect_external_jobs(addresses, self._build)
        return deliver_jobs(jobs, self.dispatcher)

    def send_internal_mails(self, targets) -> int:
        jobs = collect_internal_jobs(targets, self.directory, self._build, self.settings.email_authentication)
        return deliver_jobs(jobs, self.dispatcher)

    def make_subject(self, recipient: str, user: Optional[WikiUser], page: Optional[WikiPage]) -> str:
        if page:
            return self.language.message("wikinotif-newedit-subj", self.settings.sitename)
        return self.language.message("wikinotif-newuser-subj", self.settings.sitename)

    def make_message(self, recipient: str, user: Optional[WikiUser], page: Optional[WikiPage]) -> str:
        ts = self.now()
        user_name = user.name if user else ""
        stamps = (self.language.time_and_date(ts), self.language.date(ts), self.language.time(ts))
        if page:
            return self.language.message(
                "wikinotif-newedit-body",
                recipient,
                page.full_url,
                user_name,
                self.settings.sitename,
                *stamps,
            )
        return self.language.message(
            "wikinotif-newuser-body",
            recipient,
            user_name,
            self.settings.sitename,
            *stamps,
        )
