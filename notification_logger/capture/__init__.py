"""Capture – Entgegennahme von OS-Benachrichtigungen.

Öffentliche API:
- CapturePipeline: Block-Prüfung, OTP-Erkennung, Speichern
- CaptureResult / CaptureStatus / CaptureStats: Ergebnis und Zähler
- NotificationEvent: Eingehendes Event (pydantic)
- AppNameResolver / MappingAppNameResolver: App-Namen-Auflösung
"""

from notification_logger.capture.app_names import (
    AppNameResolver,
    MappingAppNameResolver,
    resolve_app_name,
)
from notification_logger.capture.models import (
    FLAG_NO_CLEAR,
    FLAG_ONGOING_EVENT,
    NotificationEvent,
)
from notification_logger.capture.pipeline import (
    CapturePipeline,
    CaptureResult,
    CaptureStats,
    CaptureStatus,
    build_classification_text,
    flatten_extras,
)

__all__ = [
    # Pipeline
    "CapturePipeline",
    "CaptureResult",
    "CaptureStats",
    "CaptureStatus",
    "build_classification_text",
    "flatten_extras",
    # Event
    "NotificationEvent",
    "FLAG_ONGOING_EVENT",
    "FLAG_NO_CLEAR",
    # App-Namen
    "AppNameResolver",
    "MappingAppNameResolver",
    "resolve_app_name",
]
