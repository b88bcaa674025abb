"""Typed failures surfaced by ``expense_analysis``.

Only the statement loader and the backup path fail loudly; categorization,
aggregation and budget evaluation are total and degrade to defaults instead.
"""

from __future__ import annotations


class ExpenseAnalysisError(Exception):
    """Base class for all package errors."""


# ---------------------------------------------------------------------------
# Statement ingest
# ---------------------------------------------------------------------------


class StatementReadError(ExpenseAnalysisError):
    """The statement file could not be read (missing, permissions, I/O)."""


class StatementParseError(ExpenseAnalysisError):
    """The delimited table could not be parsed at all.

    The underlying ``csv.Error`` is chained as ``__cause__``.
    """


# ---------------------------------------------------------------------------
# Backup / restore
# ---------------------------------------------------------------------------


class BackupError(ExpenseAnalysisError):
    """Base class for backup and restore failures."""


class BackupFormatError(BackupError):
    """Envelope or decrypted payload does not have the expected structure."""

    def __init__(self, message: str = "Invalid backup file format") -> None:
        super().__init__(message)


class UnsupportedBackupVersionError(BackupError):
    def __init__(self, version: object) -> None:
        self.version = version
        super().__init__(f"Unsupported backup version: {version!r}")


class DecryptionError(BackupError):
    """Wrong password or corrupted ciphertext; the two are not distinguished."""

    def __init__(self) -> None:
        super().__init__("Incorrect password or corrupted data")


class IntegrityCheckError(BackupError):
    """Decryption succeeded but the plaintext checksum does not match."""

    def __init__(self) -> None:
        super().__init__("Data integrity check failed")


__all__ = [
    "ExpenseAnalysisError",
    "StatementReadError",
    "StatementParseError",
    "BackupError",
    "BackupFormatError",
    "UnsupportedBackupVersionError",
    "DecryptionError",
    "IntegrityCheckError",
]
