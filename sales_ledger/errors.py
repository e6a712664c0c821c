"""Excepciones del ledger de ventas."""

from __future__ import annotations


class LedgerError(Exception):
    """Base de todos los errores propios del paquete."""


class UnrecognizedFileType(LedgerError):
    """El encabezado del archivo no coincide con ningun reporte conocido."""

    def __init__(self, filename: str, detail: str = "") -> None:
        message = f"Tipo de archivo no reconocido: {filename}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.filename = filename


class UnreadableFile(LedgerError):
    """El archivo no se pudo abrir como planilla."""


class RowParseError(LedgerError):
    """Una fila no tiene sus campos clave (tienda, fecha) validos."""

    def __init__(self, line: int, reason: str) -> None:
        super().__init__(f"Fila {line}: {reason}")
        self.line = line
        self.reason = reason


class LedgerWriteConflict(LedgerError):
    """Dos escrituras chocaron sobre la misma clave natural."""
