"""Query – reaktive, gefilterte Sicht auf gespeicherte Benachrichtigungen.

Öffentliche API:
- QueryCoordinator: Suchtext + blockierte Apps → sortiertes Ergebnis
- FeedStats: Kennzahlen (gesamt, letzte 24h)
"""

from notification_logger.query.coordinator import (
    FeedStats,
    QueryCoordinator,
    filter_blocked,
)

__all__ = [
    "QueryCoordinator",
    "FeedStats",
    "filter_blocked",
]
