"""Entry points the wiki calls when an account is created or a revision is saved."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Union

from .config import WikiNotifSettings, get_settings
from .directory import canonical_name
from .models import NEW_REV, NEW_USER, WikiPage, WikiUser
from .service import WikiNotifier

LOGGER = logging.getLogger(__name__)

notifier_factory: Callable[[], WikiNotifier] = WikiNotifier


def on_registration(settings: Optional[WikiNotifSettings] = None) -> str:
    """Default the notification sender to the wiki's password sender."""
    settings = settings or get_settings()
    if not settings.sender:
        settings.sender = settings.password_sender
    LOGGER.debug("WikiNotif sender is %s", settings.sender)
    return settings.sender


def _as_user(user: Union[WikiUser, str, Dict[str, Any]]) -> WikiUser:
    if isinstance(user, WikiUser):
        return user
    if isinstance(user, dict):
        name = str(user.get("name") or "")
        return WikiUser(name=canonical_name(name) or name, id=int(user.get("id") or 0))
    name = str(user)
    return WikiUser(name=canonical_name(name) or name)


def _as_page(page: Union[WikiPage, str, Dict[str, Any]], settings: WikiNotifSettings) -> WikiPage:
    if isinstance(page, WikiPage):
        return page
    if isinstance(page, dict):
        title = str(page.get("title") or "")
        return WikiPage(title=title, full_url=page.get("url") or settings.page_url(title))
    title = str(page)
    return WikiPage(title=title, full_url=settings.page_url(title))


def on_local_user_created(user, autocreated: bool = False) -> int:
    """Notify about a newly created account."""
    if autocreated:
        LOGGER.debug("Account %s was created automatically", user)
    notifier = notifier_factory()
    return notifier.execute(_as_user(user), NEW_USER)


def on_revision_from_edit_complete(
    wiki_page,
    rev: Any,
    original_rev_id: Union[int, bool, None],
    user,
    tags: Optional[List[str]] = None,
) -> bool:
    """Notify about a page creation or edit; never aborts the save."""
    notifier = notifier_factory()
    notifier.execute(_as_user(user), NEW_REV, _as_page(wiki_page, notifier.settings))
    return True


HOOKS: Dict[str, Callable[..., Any]] = {
    "LocalUserCreated": on_local_user_created,
    "RevisionFromEditComplete": on_revision_from_edit_complete,
}


def run_hook(name: str, *args, **kwargs):
    try:
        handler = HOOKS[name]
    except KeyError:
        raise KeyError(f"Unknown hook: {name}") from None
    return handler(*args, **kwargs)


__all__ = [
    "HOOKS",
    "on_registration",
    "on_local_user_created",
    "on_revision_from_edit_complete",
    "run_hook",
]
