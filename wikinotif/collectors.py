from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, Dict, Iterable, List

from .config import Target, WikiNotifSettings
from .directory import UserDirectory, is_email_confirmed, make_user
from .models import EXTERNAL, INTERNAL, NotificationJob, NotificationMessage, Recipient

LOGGER = logging.getLogger(__name__)

MessageBuilder = Callable[[str], NotificationMessage]


def get_groups(
    targets: Iterable[Target],
    directory: UserDirectory,
    groups_in_order: List[str],
) -> Dict[str, List[Target]]:
    """Bucket configured targets by the first notified group each user belongs to.

    Targets that do not resolve to an existing account, or whose account is in
    none of ``groups_in_order``, are dropped.
    """
    groups: Dict[str, List[Target]] = defaultdict(list)
    for target in targets:
        user = make_user(target, directory)
        if user is None:
            LOGGER.info("Ignoring notification target %r: no such user", target)
            continue
        for group in groups_in_order:
            if user.in_group(group):
                groups[group].append(target)
                break
    LOGGER.debug("groups are %r", dict(groups))
    return groups


def select_targets(event_type: str, groups: Dict[str, List[Target]], settings: WikiNotifSettings) -> List[Target]:
    """Members of the groups notified for ``event_type``, without duplicates."""
    selected: List[Target] = []
    for group in settings.groups_for(event_type):
        for target in groups.get(group, []):
            if target not in selected:
                selected.append(target)
    return selected


def collect_external_jobs(addresses: Iterable[str], build: MessageBuilder) -> List[NotificationJob]:
    jobs: List[NotificationJob] = []
    for address in addresses:
        recipient = Recipient(name=address, email=address, channel=EXTERNAL)
        jobs.append(NotificationJob(recipient=recipient, messages=[build(address)]))
    return jobs


def collect_internal_jobs(
    targets: Iterable[Target],
    directory: UserDirectory,
    build: MessageBuilder,
    email_authentication: bool = True,
) -> List[NotificationJob]:
    jobs: List[NotificationJob] = []
    for target in targets:
        user = make_user(target, directory)
        if user is None:
            continue
        if not is_email_confirmed(user, email_authentication):
            LOGGER.info("Skipping %s: email address not confirmed", user.name)
            continue
        recipient = Recipient(name=user.real_name or user.name, email=user.email, channel=INTERNAL)
        jobs.append(NotificationJob(recipient=recipient, messages=[build(user.name)]))
    return jobs


__all__ = [
    "get_groups",
    "select_targets",
    "collect_external_jobs",
    "collect_internal_jobs",
]
