"""Regeln – blockierte Apps, Keywords, Aufbewahrung.

Öffentliche API:
- RuleEngine: Verwaltung und Persistierung der Regeln
- RuleSet: Unveränderlicher Regel-Schnappschuss
- ConfigStore: Typisierter, persistenter Key-Value-Speicher
"""

from notification_logger.rules.config_store import ConfigStore
from notification_logger.rules.engine import (
    MS_PER_DAY,
    RETENTION_DEFAULT_DAYS,
    RETENTION_MAX_DAYS,
    RETENTION_MIN_DAYS,
    RuleEngine,
    RuleSet,
    clamp_retention_days,
)

__all__ = [
    "ConfigStore",
    "RuleEngine",
    "RuleSet",
    "clamp_retention_days",
    "MS_PER_DAY",
    "RETENTION_MIN_DAYS",
    "RETENTION_MAX_DAYS",
    "RETENTION_DEFAULT_DAYS",
]
