"""
Form Draft Controller
Restores, autosaves and clears the draft of one form instance.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Mapping, Optional

from pydantic import ValidationError

from .notify import LogNotifier, Notifier, Severity
from .scheduler import AsyncioScheduler, Scheduler, TimerHandle
from .store import DraftRecord, DraftStore, draft_key
from .timefmt import HOUR_MS, format_relative_time

logger = logging.getLogger(__name__)

DEFAULT_AUTO_SAVE_DELAY_MS = 3000
MAX_DRAFT_AGE_MS = 24 * HOUR_MS


def now_ms() -> int:
    return int(time.time() * 1000)


class FormDraft:
    """
    Draft lifecycle for a single form.

    Activation happens in the constructor: a record younger than 24 hours
    replaces ``initial_data``; older records are ignored but left in the
    store. Every ``update_form_data`` re-arms a debounce timer, so only the
    last edit inside ``auto_save_delay_ms`` gets persisted.

    All methods are expected to run on one event loop thread. Call
    ``close()`` (or use the instance as a context manager) when the form goes
    away so no save fires against it afterwards.
    """

    def __init__(
        self,
        form_id: str,
        initial_data: Mapping[str, Any],
        store: DraftStore,
        *,
        auto_save_delay_ms: int = DEFAULT_AUTO_SAVE_DELAY_MS,
        notify: bool = True,
        notifier: Optional[Notifier] = None,
        scheduler: Optional[Scheduler] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.form_id = form_id
        self.key = draft_key(form_id)
        self.store = store
        self.auto_save_delay_ms = auto_save_delay_ms
        self.notify = notify
        self.notifier = notifier or LogNotifier()
        self.scheduler = scheduler or AsyncioScheduler()
        self.clock = clock or now_ms

        self._initial_data: Dict[str, Any] = dict(initial_data)
        self._form_data: Dict[str, Any] = dict(initial_data)
        self._is_dirty = False
        self._last_saved: Optional[int] = None
        self._timer: Optional[TimerHandle] = None
        self._closed = False

        self._restore()

    # -- state ----------------------------------------------------------------

    @property
    def form_data(self) -> Dict[str, Any]:
        return dict(self._form_data)

    @property
    def is_dirty(self) -> bool:
        return self._is_dirty

    @property
    def last_saved(self) -> Optional[int]:
        return self._last_saved

    @property
    def has_draft(self) -> bool:
        return self.store.contains(self.key)

    @property
    def closed(self) -> bool:
        return self._closed

    # -- activation -----------------------------------------------------------

    def _restore(self) -> None:
        record = self.store.get(self.key)
        if record is None:
            return
        age = self.clock() - record.timestamp
        if age >= MAX_DRAFT_AGE_MS:
            logger.debug("ignoring stale draft %s (%d ms old)", self.key, age)
            return

        self._form_data = dict(record.data)
        self._last_saved = record.timestamp
        if self.notify:
            self.notifier.notify(
                Severity.info,
                "Draft restored",
                f"Last saved {format_relative_time(age)}",
            )

    # -- editing --------------------------------------------------------------

    def update_form_data(self, partial: Optional[Mapping[str, Any]] = None, **fields: Any) -> None:
        """Shallow-merge ``partial`` (and/or keyword fields) into the form."""
        updates = dict(partial or {})
        updates.update(fields)
        self._form_data.update(updates)
        self._is_dirty = True
        self._arm_timer()

    def set_form_data(self, data: Mapping[str, Any]) -> None:
        """Replace the form contents without changing the dirty flag."""
        self._form_data = dict(data)

    def save_draft(self) -> bool:
        self._cancel_timer()
        timestamp = self.clock()
        try:
            record = DraftRecord(data=dict(self._form_data), timestamp=timestamp, form_id=self.form_id)
        except ValidationError:
            logger.warning("draft %s holds non-scalar values, not saved", self.key)
            return False
        if not self.store.set(self.key, record):
            # in-memory form_data stays authoritative for this session
            return False

        self._last_saved = timestamp
        self._is_dirty = False
        if self.notify:
            self.notifier.notify(Severity.success, "Draft saved", "Your progress has been saved")
        return True

    def clear_draft(self) -> None:
        self._cancel_timer()
        self.store.delete(self.key)
        self._form_data = dict(self._initial_data)
        self._last_saved = None
        self._is_dirty = False

    def reset_form(self) -> None:
        self._cancel_timer()
        self._form_data = dict(self._initial_data)
        self._is_dirty = False

    # -- debounce -------------------------------------------------------------

    def _arm_timer(self) -> None:
        if self._closed:
            return
        self._cancel_timer()
        self._timer = self.scheduler.call_later(self.auto_save_delay_ms / 1000, self._on_timer)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        self._timer = None
        if self._closed or not self._is_dirty:
            return
        self.save_draft()

    # -- teardown -------------------------------------------------------------

    def close(self) -> None:
        self._cancel_timer()
        self._closed = True

    def __enter__(self) -> "FormDraft":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
