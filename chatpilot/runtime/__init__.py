"""Per-process runtime state: chat locks, quota counters, temp files."""

from chatpilot.runtime.quota import QuotaRecord, QuotaTracker
from chatpilot.runtime.session_lock import ChatLock
from chatpilot.runtime.temp_files import TempFileStore

__all__ = ["ChatLock", "QuotaRecord", "QuotaTracker", "TempFileStore"]
