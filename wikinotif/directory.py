"""Read-only access to the wiki's user store.

Two backends are provided: the wiki database itself (the ``user`` and
``user_groups`` tables, optionally prefixed) and a JSON export of user
records for installs where the notifier cannot reach the database.
"""
from __future__ import annotations

import ipaddress
import json
import logging
import os
import re
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import Column, Integer, String, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import Target, WikiNotifSettings, get_settings
from .models import WikiUser

LOGGER = logging.getLogger(__name__)

# characters the wiki refuses in page titles or user names
# title-illegal characters, "/" and the wiki's default invalid username characters
INVALID_NAME_CHARS = set("#<>[]|{}/@:=")
EMAIL_RE = re.compile(r"^[a-z0-9!#$%&'*+/=?^_`{|}~.-]+@[a-z0-9]+([-.][a-z0-9]+)*$", re.IGNORECASE)
MW_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


def canonical_name(name: Any) -> Optional[str]:
    """Normalize a user name, or return None if the wiki would reject it."""
    if not isinstance(name, str):
        return None
    cleaned = " ".join(name.replace("_", " ").split())
    if not cleaned or len(cleaned) > MAX_NAME_LENGTH:
        return None
    if any(ch in INVALID_NAME_CHARS for ch in cleaned):
        return None
    try:
        ipaddress.ip_address(cleaned)
    except ValueError:
        pass
    else:
        return None
    return cleaned[0].upper() + cleaned[1:]


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Accept wiki ``YYYYMMDDHHMMSS`` timestamps and ISO 8601 strings."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, bytes):
        value = value.decode("ascii", "ignore")
    text = str(value).strip()
    try:
        if len(text) == 14 and text.isdigit():
            return datetime.strptime(text, MW_TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
        parsed = datetime.fromisoformat(text)
    except ValueError:
        LOGGER.debug("Unparseable timestamp %r", value)
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def is_valid_email(address: Optional[str]) -> bool:
    if not isinstance(address, str) or not address:
        return False
    return bool(EMAIL_RE.match(address.strip()))


def is_email_confirmed(user: WikiUser, email_authentication: bool = True) -> bool:
    """A user may be mailed once their address is valid and, if required, authenticated."""
    if not is_valid_email(user.email):
        return False
    if email_authentication:
        return user.email_authenticated is not None
    return True


class UserDirectory:
    """Lookup interface over the wiki's accounts."""

    def find_by_name(self, name: str) -> Optional[WikiUser]:
        raise NotImplementedError

    def name_for_id(self, user_id: int) -> Optional[str]:
        raise NotImplementedError


class InMemoryUserDirectory(UserDirectory):
    def __init__(self, users: Iterable[WikiUser] = ()):
        self._users: List[WikiUser] = list(users)

    def add(self, user: WikiUser) -> None:
        self._users.append(user)

    def find_by_name(self, name: str) -> Optional[WikiUser]:
        for user in self._users:
            if user.name == name:
                return user
        return None

    def name_for_id(self, user_id: int) -> Optional[str]:
        for user in self._users:
            if user.id == user_id:
                return user.name
        return None


def _record_to_user(record: Dict[str, Any]) -> Optional[WikiUser]:
    name = canonical_name(record.get("name") or record.get("username"))
    if not name:
        return None
    try:
        user_id = int(record.get("id") or 0)
    except (TypeError, ValueError):
        user_id = 0
    groups = record.get("groups") or []
    if isinstance(groups, str):
        groups = [g.strip() for g in groups.split(",") if g.strip()]
    if not isinstance(groups, list) or not all(isinstance(g, str) for g in groups):
        raise ValueError(f"groups must be a list of names, got {groups!r}")
    email = record.get("email") or None
    if email is not None and not isinstance(email, str):
        raise ValueError(f"email must be a string, got {email!r}")
    return WikiUser(
        name=name,
        id=user_id,
        groups=list(groups),
        email=email,
        email_authenticated=parse_timestamp(record.get("email_authenticated")),
        real_name=record.get("real_name") or None,
    )


class JsonUserDirectory(UserDirectory):
    """Users exported to a JSON list of records.

    The file is parsed once and re-read only when its modification time changes.
    """

    def __init__(self, path: str):
        self.path = path
        self._users: List[WikiUser] = []
        self._mtime: Optional[float] = None

    def _read(self) -> List[WikiUser]:
        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except FileNotFoundError:
            LOGGER.info("User file %s not found; no users available", self.path)
            return []
        except (OSError, ValueError):
            LOGGER.exception("Failed to read user file %s", self.path)
            return []
        if not isinstance(raw, list):
            LOGGER.warning("User file %s does not contain a list", self.path)
            return []
        users = []
        for index, record in enumerate(raw):
            if not isinstance(record, dict):
                continue
            try:
                user = _record_to_user(record)
            except (TypeError, ValueError) as exc:
                LOGGER.warning("Skipping malformed user record %d in %s: %s", index, self.path, exc)
                continue
            if user is not None:
                users.append(user)
        return users

    def _load(self) -> List[WikiUser]:
        try:
            mtime = os.stat(self.path).st_mtime
        except OSError:
            mtime = None
        if mtime is None or mtime != self._mtime:
            self._users = self._read()
            self._mtime = mtime
        return self._users

    def find_by_name(self, name: str) -> Optional[WikiUser]:
        for user in self._load():
            if user.name == name:
                return user
        return None

    def name_for_id(self, user_id: int) -> Optional[str]:
        for user in self._load():
            if user.id == user_id:
                return user.name
        return None


def build_wiki_models(prefix: str = ""):
    """Declare the subset of the wiki schema we read, honouring the table prefix."""
    Base = declarative_base()

    class UserModel(Base):
        __tablename__ = f"{prefix}user"
        user_id = Column(Integer, primary_key=True)
        user_name = Column(String(255), unique=True, nullable=False)
        user_real_name = Column(String(255), default="")
        user_email = Column(String(255), default="")
        user_email_authenticated = Column(String(14))

    class UserGroupModel(Base):
        __tablename__ = f"{prefix}user_groups"
        ug_user = Column(Integer, primary_key=True)
        ug_group = Column(String(255), primary_key=True)
        ug_expiry = Column(String(14))

    return Base, UserModel, UserGroupModel


def _as_text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    return value or ""


class DatabaseUserDirectory(UserDirectory):
    """Reads accounts straight from the wiki database."""

    def __init__(self, database_url: str, prefix: str = "", engine=None):
        engine_kwargs: dict[str, Any] = {"future": True}
        if str(database_url).startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            pool_pre_ping = False
        else:
            pool_pre_ping = True
        self.engine = engine or create_engine(database_url, pool_pre_ping=pool_pre_ping, **engine_kwargs)
        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False, future=True)
        self.Base, self.UserModel, self.UserGroupModel = build_wiki_models(prefix)

    def close(self) -> None:
        self.engine.dispose()

    def _groups(self, session, user_id: int) -> List[str]:
        now = datetime.now(timezone.utc)
        rows = (
            session.query(self.UserGroupModel)
            .filter(self.UserGroupModel.ug_user == user_id)
            .order_by(self.UserGroupModel.ug_group)
            .all()
        )
        groups = []
        for row in rows:
            expiry = parse_timestamp(_as_text(row.ug_expiry))
            if expiry is not None and expiry <= now:
                continue
            groups.append(_as_text(row.ug_group))
        return groups

    def find_by_name(self, name: str) -> Optional[WikiUser]:
        try:
            with self.SessionLocal() as session:
                row = session.query(self.UserModel).filter(self.UserModel.user_name == name).one_or_none()
                if row is None:
                    return None
                return WikiUser(
                    name=_as_text(row.user_name),
                    id=row.user_id,
                    groups=self._groups(session, row.user_id),
                    email=_as_text(row.user_email) or None,
                    email_authenticated=parse_timestamp(_as_text(row.user_email_authenticated)),
                    real_name=_as_text(row.user_real_name) or None,
                )
        except SQLAlchemyError:
            LOGGER.exception("User lookup failed for %s", name)
            return None

    def name_for_id(self, user_id: int) -> Optional[str]:
        try:
            with self.SessionLocal() as session:
                row = session.get(self.UserModel, user_id)
                return _as_text(row.user_name) if row else None
        except SQLAlchemyError:
            LOGGER.exception("User lookup failed for id %s", user_id)
            return None


def build_directory(settings: WikiNotifSettings) -> UserDirectory:
    if settings.database_url:
        return DatabaseUserDirectory(settings.database_url, settings.db_prefix)
    return JsonUserDirectory(settings.users_file or "users.json")


@lru_cache()
def get_directory() -> UserDirectory:
    """Directory for the cached settings; one engine and pool per process."""
    return build_directory(get_settings())


def reset_directory() -> None:
    if get_directory.cache_info().currsize:
        directory = get_directory()
        if isinstance(directory, DatabaseUserDirectory):
            directory.close()
    get_directory.cache_clear()


def make_user(target: Target, directory: UserDirectory) -> Optional[WikiUser]:
    """Resolve a user id or name to an existing account, or None."""
    try:
        if isinstance(target, int) and not isinstance(target, bool):
            name = directory.name_for_id(target)
        else:
            name = target
        name = canonical_name(name)
        if not name:
            return None
        user = directory.find_by_name(name)
    except Exception:
        LOGGER.exception("User lookup failed for %r", target)
        return None
    if user is not None and user.exists:
        return user
    return None


__all__ = [
    "UserDirectory",
    "InMemoryUserDirectory",
    "JsonUserDirectory",
    "DatabaseUserDirectory",
    "build_directory",
    "get_directory",
    "reset_directory",
    "build_wiki_models",
    "canonical_name",
    "is_email_confirmed",
    "make_user",
]
