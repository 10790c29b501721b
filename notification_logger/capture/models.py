"""Pydantic-Modell für eingehende Benachrichtigungs-Events.

Bildet ein "Benachrichtigung gepostet/entfernt"-Signal des Host-OS ab.
Feldnamen und Konstanten folgen der Android-Notification-API, weil
die Events von dort stammen (Bridge-App oder Test-Feed).

Unbekannte Felder werden ignoriert (Vorwärtskompatibilität).
Die Extras bleiben untypisiert – das OS liefert beliebige
Werte, die Pipeline liest sie fehlertolerant.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

# Notification.flags (Bitmaske)
FLAG_ONGOING_EVENT = 0x00000002
FLAG_NO_CLEAR = 0x00000020

# Notification.extras Schlüssel
EXTRA_TITLE = "android.title"
EXTRA_TEXT = "android.text"
EXTRA_SUB_TEXT = "android.subText"
EXTRA_BIG_TEXT = "android.bigText"

# Notification.priority
PRIORITY_MIN = -2
PRIORITY_MAX = 2


class NotificationEvent(BaseModel):
    """Eine vom OS gemeldete Benachrichtigung."""
    model_config = ConfigDict(extra="ignore")

    package_name: str = Field(..., min_length=1)
    notification_id: int
    channel_id: Optional[str] = None
    extras: dict[str, Any] = Field(default_factory=dict)
    priority: int = Field(default=0, ge=PRIORITY_MIN, le=PRIORITY_MAX)
    flags: int = 0
    category: Optional[str] = None

    @property
    def is_ongoing(self) -> bool:
        """Laufende Benachrichtigung (z.B. Musik, Download)."""
        return bool(self.flags & FLAG_ONGOING_EVENT)

    @property
    def is_dismissible(self) -> bool:
        """Vom Nutzer wegwischbar (FLAG_NO_CLEAR nicht gesetzt)."""
        return not self.flags & FLAG_NO_CLEAR
