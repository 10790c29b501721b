"""Globaler Laufzeit-Zustand des Notification Loggers.

Dieses Modul enthält ausschließlich die Referenzen auf Laufzeit-Objekte.
Es hat KEINE Seiteneffekte beim Import: kein Logging, kein NiceGUI,
keine Registrierungen.

Die Komponenten selbst bekommen ihre Abhängigkeiten per Konstruktor
übergeben; nur main.py greift hierauf zu.
"""

from __future__ import annotations

from typing import Any

# ---------------------------------------------------------------------------
# Laufzeit-Objekte (werden von main.async_startup() gesetzt)
# ---------------------------------------------------------------------------

database: Any = None       # Database | None
rules: Any = None          # RuleEngine | None
pipeline: Any = None       # CapturePipeline | None
coordinator: Any = None    # QueryCoordinator | None
exporter: Any = None       # Exporter | None

