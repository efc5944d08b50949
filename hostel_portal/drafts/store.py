"""
Draft Store
Maps ``form-draft-<formId>`` keys to the latest draft record of each form.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr, ValidationError

from .errors import DraftError, MalformedRecord
from .storage import DRAFT_KEY_PREFIX, KeyValueStorage

logger = logging.getLogger(__name__)

# Order matters: bool before int so True is not read as 1.
FieldValue = Union[StrictBool, StrictInt, StrictFloat, StrictStr, None]


class DraftRecord(BaseModel):
    """Snapshot of a form at save time. ``timestamp`` is ms since epoch."""

    model_config = ConfigDict(populate_by_name=True)

    data: Dict[str, FieldValue]
    timestamp: StrictInt = Field(ge=0)
    form_id: StrictStr = Field(alias="formId")

    def to_storage(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


def draft_key(form_id: str) -> str:
    return f"{DRAFT_KEY_PREFIX}{form_id}"


def parse_record(key: str, value: Any) -> DraftRecord:
    """Validate a raw stored value, raising ``MalformedRecord`` on mismatch."""
    if not isinstance(value, dict):
        raise MalformedRecord(key, f"expected an object, got {type(value).__name__}")
    try:
        return DraftRecord.model_validate(value)
    except ValidationError as exc:
        raise MalformedRecord(key, f"{exc.error_count()} validation error(s)") from exc


class DraftStore:
    """
    Fail-open view of draft records over a key-value storage.

    Storage outages and corrupt values are logged and treated as "no draft";
    writes report success as a boolean instead of raising.
    """

    def __init__(self, storage: KeyValueStorage):
        self.storage = storage

    def get(self, key: str) -> Optional[DraftRecord]:
        try:
            value = self.storage.get(key)
            if value is None:
                return None
            return parse_record(key, value)
        except DraftError as exc:
            logger.warning("treating draft %s as absent: %s", key, exc)
            return None

    def set(self, key: str, record: DraftRecord) -> bool:
        try:
            self.storage.set(key, record.to_storage())
        except DraftError as exc:
            logger.warning("draft %s not persisted: %s", key, exc)
            return False
        return True

    def delete(self, key: str) -> bool:
        try:
            self.storage.delete(key)
        except DraftError as exc:
            logger.warning("draft %s not removed: %s", key, exc)
            return False
        return True

    def contains(self, key: str) -> bool:
        """Raw presence of a value, regardless of its age."""
        try:
            return self.storage.get(key) is not None
        except DraftError as exc:
            logger.warning("cannot check draft %s: %s", key, exc)
            return False
