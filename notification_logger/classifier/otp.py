"""OTP-Erkennung für Benachrichtigungstexte.

Heuristik mit fester Reihenfolge – das erste Muster, das einen
akzeptierten Code liefert, gewinnt (nicht der längste, nicht der
"sicherste" Treffer):

1. Exakt 4 Ziffern als eigenes Wort
2. Exakt 6 Ziffern
3. Exakt 8 Ziffern
4. Schlüsselwort (OTP/code) gefolgt von 4–8 Ziffern
5. 4–8 Ziffern gefolgt von Schlüsselwort

Pro Muster wird nur der ERSTE Treffer geprüft.  Wird er verworfen,
geht es mit dem nächsten Muster weiter.

Die Reihenfolge muss stabil bleiben,
damit gespeicherte Ergebnisse reproduzierbar sind.
"""

from __future__ import annotations

import re
from typing import NamedTuple, Optional

from notification_logger.logging_config import get_logger

logger = get_logger("classifier")


# Gültige Code-Länge (inklusiv)
MIN_CODE_LENGTH = 4
MAX_CODE_LENGTH = 8

# Wörter, die auf Telefonnummern statt Codes hindeuten
FALSE_POSITIVE_WORDS = ("phone", "call")

OTP_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\b\d{4}\b", re.ASCII),
    re.compile(r"\b\d{6}\b", re.ASCII),
    re.compile(r"\b\d{8}\b", re.ASCII),
    re.compile(r"(?:OTP|otp|code|Code).*?(\d{4,8})", re.ASCII),
    re.compile(r"(\d{4,8}).*?(?:OTP|otp|code|Code)", re.ASCII),
)


class OtpResult(NamedTuple):
    """Ergebnis der OTP-Erkennung.

    NamedTuple, damit Vergleiche wie ``detect_otp("") == (False, None)``
    direkt funktionieren.
    """
    is_otp: bool
    code: Optional[str]


NO_OTP = OtpResult(False, None)


def is_false_positive(code: str, text: str) -> bool:
    """True wenn der Code vermutlich kein OTP ist.

    Verworfen wird, wenn der Text nach Telefonnummer aussieht
    ("phone"/"call") oder alle Ziffern gleich sind (z.B. "0000").
    """
    lower_text = text.lower()
    if any(word in lower_text for word in FALSE_POSITIVE_WORDS):
        return True
    return len(set(code)) == 1


class OtpDetector:
    """Regelbasierte OTP-Erkennung mit geordneter Musterliste.

    Verwendung:
        detector = OtpDetector()
        is_otp, code = detector.detect("Your OTP is 1234")
    """

    def __init__(self, patterns: tuple[re.Pattern[str], ...] = OTP_PATTERNS) -> None:
        self._patterns = patterns

    def detect(self, text: Optional[str]) -> OtpResult:
        """Sucht einen OTP-Code im Text.

        Args:
            text: Zu prüfender Text (None oder leer → kein OTP).

        Returns:
            OtpResult(is_otp, code) – code ist genau dann gesetzt, wenn is_otp True ist.
        """
        if not text:
            return NO_OTP

        for index, pattern in enumerate(self._patterns, start=1):
            match = pattern.search(text)
            if match is None:
                continue

            # Capture-Gruppe bevorzugen, sonst gesamter Treffer
            code = match.group(1) if pattern.groups else match.group(0)

            if not MIN_CODE_LENGTH <= len(code) <= MAX_CODE_LENGTH:
                continue
            if is_false_positive(code, text):
                logger.debug("OTP-Kandidat verworfen (Muster %d): %s", index, code)
                continue

            logger.debug("OTP erkannt (Muster %d)", index)
            return OtpResult(True, code)

        return NO_OTP


_default_detector = OtpDetector()


def detect_otp(text: Optional[str]) -> OtpResult:
    """Erkennt einen OTP-Code mit der Standard-Musterliste."""
    return _default_detector.detect(text)
