"""
Form drafts: autosave and recovery of in-progress form input.

Components:
- Storage: key-value adapters (memory, JSON file, SQL, remote portal API)
- Store: fail-open access to draft records under ``form-draft-<formId>`` keys
- Controller: per-form restore, debounced autosave, clear and reset
"""

from .controller import FormDraft, MAX_DRAFT_AGE_MS
from .errors import DraftError, MalformedRecord, StorageUnavailable
from .notify import LogNotifier, Notifier, Severity
from .scheduler import AsyncioScheduler, Scheduler
from .storage import (
    DRAFT_KEY_PREFIX,
    JsonFileStorage,
    KeyValueStorage,
    MemoryStorage,
    RemoteStorage,
    SQLStorage,
)
from .store import DraftRecord, DraftStore, draft_key
from .timefmt import format_relative_time

__all__ = [
    "FormDraft",
    "MAX_DRAFT_AGE_MS",
    "DraftError",
    "MalformedRecord",
    "StorageUnavailable",
    "LogNotifier",
    "Notifier",
    "Severity",
    "AsyncioScheduler",
    "Scheduler",
    "DRAFT_KEY_PREFIX",
    "JsonFileStorage",
    "KeyValueStorage",
    "MemoryStorage",
    "RemoteStorage",
    "SQLStorage",
    "DraftRecord",
    "DraftStore",
    "draft_key",
    "format_relative_time",
]
