"""Classifier – Textauswertung erfasster Benachrichtigungen.

Öffentliche API:
- detect_otp / OtpDetector / OtpResult: OTP-Erkennung
- keyword_hits / has_keyword: Keyword-Hervorhebung
"""

from notification_logger.classifier.keywords import has_keyword, keyword_hits
from notification_logger.classifier.otp import (
    NO_OTP,
    OtpDetector,
    OtpResult,
    detect_otp,
)

__all__ = [
    # OTP
    "OtpDetector",
    "OtpResult",
    "NO_OTP",
    "detect_otp",
    # Keywords
    "keyword_hits",
    "has_keyword",
]
