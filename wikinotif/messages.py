"""Localized notification texts and content-language timestamp formatting.

Messages use the wiki's ``$1``..``$n`` positional parameters so the same
catalog entries can be shared with the wiki's own interface messages.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Tuple

LOGGER = logging.getLogger(__name__)

FALLBACK_LANGUAGE = "en"

MESSAGES: Dict[str, Dict[str, str]] = {
    "en": {
        "wikinotif-newuser-subj": "New user account created on $1",
        "wikinotif-newuser-body": (
            "Hello $1,\n\n"
            "A new user account, $2, has been created on $3 at $4.\n\n"
            "This notification was sent on $5 at $6."
        ),
        "wikinotif-newedit-subj": "Page created or edited on $1",
        "wikinotif-newedit-body": (
            "Hello $1,\n\n"
            "The page $2 has been created or edited by $3 on $4 at $5.\n\n"
            "This notification was sent on $6 at $7."
        ),
    },
    "fr": {
        "wikinotif-newuser-subj": "Nouveau compte utilisateur créé sur $1",
        "wikinotif-newuser-body": (
            "Bonjour $1,\n\n"
            "Un nouveau compte utilisateur, $2, a été créé sur $3 le $4.\n\n"
            "Cette notification a été envoyée le $5 à $6."
        ),
        "wikinotif-newedit-subj": "Page créée ou modifiée sur $1",
        "wikinotif-newedit-body": (
            "Bonjour $1,\n\n"
            "La page $2 a été créée ou modifiée par $3 sur $4 le $5.\n\n"
            "Cette notification a été envoyée le $6 à $7."
        ),
    },
    "de": {
        "wikinotif-newuser-subj": "Neues Benutzerkonto auf $1",
        "wikinotif-newuser-body": (
            "Hallo $1,\n\n"
            "Das Benutzerkonto $2 wurde auf $3 am $4 angelegt.\n\n"
            "Diese Benachrichtigung wurde am $5 um $6 versandt."
        ),
        "wikinotif-newedit-subj": "Seite auf $1 erstellt oder bearbeitet",
        "wikinotif-newedit-body": (
            "Hallo $1,\n\n"
            "Die Seite $2 wurde von $3 auf $4 am $5 erstellt oder bearbeitet.\n\n"
            "Diese Benachrichtigung wurde am $6 um $7 versandt."
        ),
    },
}

MONTH_NAMES: Dict[str, List[str]] = {
    "en": [
        "January", "February", "March", "April", "May", "June",
        "July", "August", "September", "October", "November", "December",
    ],
    "fr": [
        "janvier", "février", "mars", "avril", "mai", "juin",
        "juillet", "août", "septembre", "octobre", "novembre", "décembre",
    ],
    "de": [
        "Januar", "Februar", "März", "April", "Mai", "Juni",
        "Juli", "August", "September", "Oktober", "November", "Dezember",
    ],
}

# (time, date, both) using {H} {i} {j} {F} {Y} fields
DATE_FORMATS: Dict[str, Tuple[str, str, str]] = {
    "en": ("{H}:{i}", "{j} {F} {Y}", "{H}:{i}, {j} {F} {Y}"),
    "fr": ("{H}:{i}", "{j} {F} {Y}", "{j} {F} {Y} à {H}:{i}"),
    "de": ("{H}:{i}", "{j}. {F} {Y}", "{j}. {F} {Y}, {H}:{i}"),
}

_PARAM_RE = re.compile(r"\$(\d+)")


def supported_language(code: str) -> str:
    code = (code or "").lower()
    return code if code in MESSAGES else FALLBACK_LANGUAGE


def message_text(key: str, *params, language: str = FALLBACK_LANGUAGE) -> str:
    """Render a catalog message, replacing ``$n`` with the n-th parameter."""
    lang = supported_language(language)
    template = MESSAGES[lang].get(key) or MESSAGES[FALLBACK_LANGUAGE].get(key)
    if template is None:
        LOGGER.warning("Missing message %s", key)
        return f"⧼{key}⧽"

    def _replace(match: re.Match) -> str:
        index = int(match.group(1)) - 1
        if 0 <= index < len(params):
            return str(params[index])
        return match.group(0)

    return _PARAM_RE.sub(_replace, template)


@dataclass(slots=True)
class ContentLanguage:
    """Formats timestamps the way the wiki's content language does."""

    code: str = FALLBACK_LANGUAGE

    def __post_init__(self) -> None:
        self.code = supported_language(self.code)

    def _fields(self, ts: datetime) -> Dict[str, str]:
        return {
            "H": f"{ts.hour:02d}",
            "i": f"{ts.minute:02d}",
            "j": str(ts.day),
            "F": MONTH_NAMES[self.code][ts.month - 1],
            "Y": str(ts.year),
        }

    def time(self, ts: datetime) -> str:
        return DATE_FORMATS[self.code][0].format(**self._fields(ts))

    def date(self, ts: datetime) -> str:
        return DATE_FORMATS[self.code][1].format(**self._fields(ts))

    def time_and_date(self, ts: datetime) -> str:
        return DATE_FORMATS[self.code][2].format(**self._fields(ts))

    def message(self, key: str, *params) -> str:
        return message_text(key, *params, language=self.code)


__all__ = ["ContentLanguage", "message_text", "supported_language", "MESSAGES"]
