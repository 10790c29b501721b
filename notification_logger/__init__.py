"""Notification Logger – Erfassung und Auswertung von System-Benachrichtigungen.

Pipeline: Erfassen → OTP-Erkennung → Speichern → Filtern → Abfragen.
"""

__version__ = "0.1.0"
