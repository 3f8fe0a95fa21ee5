from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

NEW_USER = "new-user"
NEW_REV = "new-rev"
EVENT_TYPES = (NEW_USER, NEW_REV)

EXTERNAL = "external"
INTERNAL = "internal"


@dataclass(slots=True)
class WikiUser:
    """A wiki account as read from the user store."""

    name: str
    id: int = 0
    groups: List[str] = field(default_factory=list)
    email: Optional[str] = None
    email_authenticated: Optional[datetime] = None
    real_name: Optional[str] = None

    @property
    def exists(self) -> bool:
        return self.id > 0

    def in_group(self, group: str) -> bool:
        return group in self.groups


@dataclass(slots=True)
class WikiPage:
    """The page that was edited or created."""

    title: str
    full_url: str


@dataclass(slots=True)
class Recipient:
    """Represents a user or address receiving a notification."""

    name: str
    email: Optional[str] = None
    channel: str = INTERNAL


@dataclass(slots=True)
class NotificationMessage:
    """Structured payload passed to concrete notification senders."""

    subject: str
    body_text: str
    category: str = NEW_USER
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class NotificationJob:
    """Batch of messages to deliver for a given recipient."""

    recipient: Recipient
    messages: List[NotificationMessage] = field(default_factory=list)
