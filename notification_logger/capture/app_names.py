"""Auflösung von Package-Namen zu lesbaren App-Namen.

Die eigentliche Quelle (Paketmanager des OS) ist extern.  Hier gibt es
nur die Schnittstelle, eine Mapping-basierte Implementierung und die
Fallback-Regel: Schlägt die Auflösung fehl, wird der Package-Name
selbst verwendet.
"""

from __future__ import annotations

from typing import Mapping, Protocol

from notification_logger.logging_config import get_logger

logger = get_logger("capture")


class AppNameResolver(Protocol):
    """Liefert den Anzeigenamen zu einem Package-Namen.

    Darf bei unbekannten Paketen eine beliebige Exception werfen.
    """

    def resolve(self, package_name: str) -> str: ...


class MappingAppNameResolver:
    """Resolver auf Basis eines festen Package→Label-Mappings.

    Unbekannte Pakete lösen KeyError aus, wie ein Paketmanager bei
    deinstallierten Apps.
    """

    def __init__(self, labels: Mapping[str, str] | None = None) -> None:
        self._labels = dict(labels or {})

    def register(self, package_name: str, label: str) -> None:
        """Label für ein Paket hinterlegen oder überschreiben."""
        self._labels[package_name] = label

    def resolve(self, package_name: str) -> str:
        return self._labels[package_name]


def resolve_app_name(resolver: AppNameResolver | None, package_name: str) -> str:
    """Löst den App-Namen auf, fällt bei jedem Fehler auf den Package-Namen zurück."""
    if resolver is None:
        return package_name
    try:
        label = resolver.resolve(package_name)
    except Exception as exc:
        logger.debug("App-Name für %s nicht auflösbar: %s", package_name, exc)
        return package_name
    return label or package_name
