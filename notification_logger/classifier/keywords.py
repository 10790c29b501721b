"""Keyword-Hervorhebung für die Anzeige.

Prüft, welche nutzerdefinierten Keywords in einer Benachrichtigung
vorkommen.  Reine Anzeige-Hilfe – es wird nichts pro Datensatz
gespeichert; ändern sich die Keywords, ändert sich nur die Darstellung.
"""

from __future__ import annotations

from typing import Iterable

from notification_logger.db.database import NotificationRecord


def keyword_hits(record: NotificationRecord, keywords: Iterable[str]) -> list[str]:
    """Keywords (in übergebener Reihenfolge), die in Titel, Text oder Langtext vorkommen.

    Groß-/Kleinschreibung wird ignoriert.  Leere Keywords treffen nie.
    """
    fields = [
        value.casefold()
        for value in (record.title, record.text, record.big_text)
        if value
    ]
    hits: list[str] = []
    for keyword in keywords:
        needle = keyword.casefold()
        if needle and any(needle in field for field in fields):
            hits.append(keyword)
    return hits


def has_keyword(record: NotificationRecord, keywords: Iterable[str]) -> bool:
    """True wenn mindestens ein Keyword vorkommt."""
    return bool(keyword_hits(record, keywords))
