"""Shared configuration for the wiki notification system."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, List, Optional, Union
from urllib.parse import quote, urlsplit

SYSOP_GROUP = "sysop"
EDITOR_GROUP = "editor"

DEFAULT_NOTIFY_GROUPS = {
    "new-user": [SYSOP_GROUP],
    "new-rev": [SYSOP_GROUP, EDITOR_GROUP],
}

DEFAULT_ARTICLE_PATH = "/wiki/$1"
DEFAULT_CONTENT_LANGUAGE = "en"
DEFAULT_SITENAME = "MediaWiki"
DEFAULT_SERVER = "http://localhost"

TRUTHY = {"1", "true", "yes", "on"}
FALSY = {"0", "false", "no", "off"}

Target = Union[str, int]


class ConfigurationError(ValueError):
    """Raised when an environment setting cannot be used."""


def _split(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def _flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in TRUTHY:
        return True
    if value in FALSY:
        return False
    raise ConfigurationError(f"{name} must be a boolean flag, got {raw!r}")


def parse_targets(raw: Optional[str]) -> List[Target]:
    """Numeric entries are user ids, everything else is a user name."""
    targets: List[Target] = []
    for part in _split(raw):
        targets.append(int(part) if part.isdigit() else part)
    return targets


def parse_addresses(raw: Optional[str]) -> List[str]:
    addresses = _split(raw)
    for address in addresses:
        local, _, domain = address.rpartition("@")
        if not local or not domain or " " in address:
            raise ConfigurationError(f"Invalid external address: {address!r}")
    return addresses


def default_password_sender(server: str) -> str:
    host = urlsplit(server).hostname or "localhost"
    return f"apache@{host}"


@dataclass(slots=True)
class SmtpSettings:
    host: Optional[str] = None
    port: int = 587
    username: Optional[str] = None
    password: Optional[str] = None
    use_tls: bool = True


@dataclass(slots=True)
class WikiNotifSettings:
    """Everything the notifier needs to know about the wiki and its mail relay."""

    sitename: str = DEFAULT_SITENAME
    server: str = DEFAULT_SERVER
    article_path: str = DEFAULT_ARTICLE_PATH
    content_language: str = DEFAULT_CONTENT_LANGUAGE
    targets: List[Target] = field(default_factory=list)
    external_addresses: List[str] = field(default_factory=list)
    notify_groups: Dict[str, List[str]] = field(
        default_factory=lambda: {key: list(value) for key, value in DEFAULT_NOTIFY_GROUPS.items()}
    )
    sender: Optional[str] = None
    password_sender: Optional[str] = None
    email_authentication: bool = True
    smtp: SmtpSettings = field(default_factory=SmtpSettings)
    database_url: Optional[str] = None
    db_prefix: str = ""
    users_file: Optional[str] = None
    hook_token: Optional[str] = None

    def groups_for(self, event_type: str) -> List[str]:
        try:
            return list(self.notify_groups[event_type])
        except KeyError:
            raise ValueError(f"Unknown notification type: {event_type!r}") from None

    def configured_groups(self) -> List[str]:
        """All groups any event notifies, sysop and editor first."""
        wanted: List[str] = []
        for groups in self.notify_groups.values():
            for group in groups:
                if group not in wanted:
                    wanted.append(group)
        leading = [group for group in (SYSOP_GROUP, EDITOR_GROUP) if group in wanted]
        return leading + [group for group in wanted if group not in leading]

    def page_url(self, title: str) -> str:
        encoded = quote(title.strip().replace(" ", "_"), safe="/:()!,;@$*'")
        return self.server.rstrip("/") + self.article_path.replace("$1", encoded)


def load_settings() -> WikiNotifSettings:
    server = os.getenv("WIKI_SERVER", DEFAULT_SERVER)
    port_raw = os.getenv("SMTP_PORT", "587")
    try:
        port = int(port_raw)
    except ValueError:
        raise ConfigurationError(f"SMTP_PORT must be an integer, got {port_raw!r}") from None

    notify_groups = {
        "new-user": _split(os.getenv("WIKINOTIF_NEW_USER_GROUPS")) or list(DEFAULT_NOTIFY_GROUPS["new-user"]),
        "new-rev": _split(os.getenv("WIKINOTIF_NEW_REV_GROUPS")) or list(DEFAULT_NOTIFY_GROUPS["new-rev"]),
    }

    data_dir = os.getenv("DATA_DIR", os.getcwd())
    users_file = os.getenv("USERS_FILE") or os.path.join(data_dir, "users.json")

    return WikiNotifSettings(
        sitename=os.getenv("WIKI_SITENAME", DEFAULT_SITENAME),
        server=server,
        article_path=os.getenv("WIKI_ARTICLE_PATH", DEFAULT_ARTICLE_PATH),
        content_language=os.getenv("WIKI_CONTENT_LANGUAGE", DEFAULT_CONTENT_LANGUAGE).lower(),
        targets=parse_targets(os.getenv("WIKINOTIF_TARGETS")),
        external_addresses=parse_addresses(os.getenv("WIKINOTIF_EXTERNAL_ADDRESSES")),
        notify_groups=notify_groups,
        sender=os.getenv("WIKINOTIF_SENDER") or None,
        password_sender=os.getenv("PASSWORD_SENDER") or default_password_sender(server),
        email_authentication=_flag("WIKI_EMAIL_AUTHENTICATION", True),
        smtp=SmtpSettings(
            host=os.getenv("SMTP_HOST") or None,
            port=port,
            username=os.getenv("SMTP_USERNAME") or None,
            password=os.getenv("SMTP_PASSWORD") or None,
            use_tls=_flag("SMTP_USE_TLS", True),
        ),
        database_url=os.getenv("DATABASE_URL") or None,
        db_prefix=os.getenv("WIKI_DB_PREFIX", ""),
        users_file=users_file,
        hook_token=os.getenv("WIKINOTIF_HOOK_TOKEN") or None,
    )


@lru_cache()
def get_settings() -> WikiNotifSettings:
    """Return the cached settings for this process."""
    return load_settings()


def reset_settings() -> None:
    get_settings.cache_clear()
