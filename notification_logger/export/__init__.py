"""Export – CSV/JSON-Ausgabe des gesamten Datenbestands.

Öffentliche API:
- Exporter: Export mit Statusverfolgung
- ExportStatus: ExportIdle | ExportLoading | ExportSuccess | ExportError
- encode_csv / encode_json: reine Kodierung
"""

from notification_logger.export.serializer import (
    CSV_HEADER,
    ExportError,
    Exporter,
    ExportFormat,
    ExportIdle,
    ExportLoading,
    ExportStatus,
    ExportSuccess,
    encode_csv,
    encode_json,
)

__all__ = [
    "Exporter",
    "ExportFormat",
    "ExportStatus",
    "ExportIdle",
    "ExportLoading",
    "ExportSuccess",
    "ExportError",
    "CSV_HEADER",
    "encode_csv",
    "encode_json",
]
