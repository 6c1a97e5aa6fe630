"""Backup vault for destructive operations."""

from .vault import SECONDS_PER_DAY, BackupVault

__all__ = ["BackupVault", "SECONDS_PER_DAY"]
