"""
Key-value storage adapters for form drafts.

Every adapter implements the same small port (``get``/``set``/``delete``)
and signals failure by raising ``StorageUnavailable``. Values are plain
JSON-serialisable structures.
"""

from __future__ import annotations

import copy
import json
import os
import tempfile
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Optional, Protocol
from urllib.parse import quote

import requests
from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ..models import DraftEntryTable
from .errors import StorageUnavailable

DRAFT_KEY_PREFIX = "form-draft-"


class KeyValueStorage(Protocol):
    """Durable key-value port used by the draft store."""

    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class MemoryStorage:
    """Process-local storage. Values are deep-copied in and out."""

    def __init__(self) -> None:
        self._items: dict[str, Any] = {}

    def get(self, key: str) -> Optional[Any]:
        value = self._items.get(key)
        return copy.deepcopy(value)

    def set(self, key: str, value: Any) -> None:
        self._items[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)


class JsonFileStorage:
    """All keys in a single pretty-printed JSON object on disk."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _load(self, key: str) -> dict:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageUnavailable("read", key, str(exc)) from exc
        if not isinstance(raw, dict):
            raise StorageUnavailable("read", key, "storage file does not hold an object")
        return raw

    def _dump(self, items: dict, key: str) -> None:
        # sibling temp file, then an atomic swap
        tmp_name = None
        try:
            payload = json.dumps(items, indent=2, ensure_ascii=False)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(payload)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, self.path)
        except (OSError, TypeError, ValueError) as exc:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise StorageUnavailable("write", key, str(exc)) from exc

    def get(self, key: str) -> Optional[Any]:
        return self._load(key).get(key)

    def set(self, key: str, value: Any) -> None:
        items = self._load(key)
        items[key] = value
        self._dump(items, key)

    def delete(self, key: str) -> None:
        items = self._load(key)
        if key in items:
            del items[key]
            self._dump(items, key)


class SQLStorage:
    """
    Storage rows in the ``draft_entries`` table, scoped to one owner.

    The portal API builds one of these per authenticated user so drafts of
    different users never share a key.
    """

    def __init__(self, engine: Engine, owner_id: str):
        self.engine = engine
        self.owner_id = owner_id

    def _find(self, session: Session, key: str):
        return session.exec(
            select(DraftEntryTable).where(
                DraftEntryTable.owner_id == self.owner_id,
                DraftEntryTable.key == key,
            )
        ).first()

    def get(self, key: str) -> Optional[Any]:
        try:
            with Session(self.engine) as session:
                row = self._find(session, key)
                if row is None:
                    return None
                return json.loads(row.value)
        except (SQLAlchemyError, json.JSONDecodeError) as exc:
            raise StorageUnavailable("read", key, str(exc)) from exc

    def set(self, key: str, value: Any) -> None:
        now = datetime.now(UTC).replace(microsecond=0).isoformat()
        try:
            payload = json.dumps(value)
            with Session(self.engine) as session:
                row = self._find(session, key)
                if row is None:
                    row = DraftEntryTable(owner_id=self.owner_id, key=key, value=payload, updated_at=now)
                else:
                    row.value = payload
                    row.updated_at = now
                session.add(row)
                session.commit()
        except (SQLAlchemyError, TypeError, ValueError) as exc:
            raise StorageUnavailable("write", key, str(exc)) from exc

    def delete(self, key: str) -> None:
        try:
            with Session(self.engine) as session:
                row = self._find(session, key)
                if row is not None:
                    session.delete(row)
                    session.commit()
        except SQLAlchemyError as exc:
            raise StorageUnavailable("delete", key, str(exc)) from exc


class RemoteStorage:
    """
    Storage backed by the portal's ``/drafts/{form_id}`` routes.

    Keys must carry the ``form-draft-`` prefix; the remainder is the form id
    used in the URL. ``session`` is anything with requests-style
    ``get``/``put``/``delete`` methods returning responses that expose
    ``status_code`` and ``json()``.

    Form ids are percent-encoded as a single path segment, so ids holding
    ``/``, ``#`` or ``?`` round-trip intact.

    Calls are blocking and each one is bounded by ``timeout``. A debounced
    save armed on an event loop runs inside the loop callback and holds the
    loop for at most that long; async callers should keep ``timeout`` short.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        session: Optional[Any] = None,
        timeout: float = 5.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.session = session or requests.Session()
        self.timeout = timeout

    def _url(self, key: str) -> str:
        if not key.startswith(DRAFT_KEY_PREFIX):
            raise StorageUnavailable("address", key, "not a form draft key")
        form_id = key[len(DRAFT_KEY_PREFIX):]
        return f"{self.base_url}/drafts/{quote(form_id, safe='')}"

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    def get(self, key: str) -> Optional[Any]:
        try:
            resp = self.session.get(self._url(key), headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as exc:
            raise StorageUnavailable("read", key, str(exc)) from exc
        if resp.status_code == 404:
            return None
        if resp.status_code >= 400:
            raise StorageUnavailable("read", key, f"HTTP {resp.status_code}")
        try:
            return resp.json()
        except ValueError as exc:
            raise StorageUnavailable("read", key, "response is not JSON") from exc

    def set(self, key: str, value: Any) -> None:
        try:
            resp = self.session.put(
                self._url(key), json=value, headers=self._headers(), timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise StorageUnavailable("write", key, str(exc)) from exc
        if resp.status_code >= 400:
            raise StorageUnavailable("write", key, f"HTTP {resp.status_code}")

    def delete(self, key: str) -> None:
        try:
            resp = self.session.delete(self._url(key), headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as exc:
            raise StorageUnavailable("delete", key, str(exc)) from exc
        # 404 means already gone
        if resp.status_code >= 400 and resp.status_code != 404:
            raise StorageUnavailable("delete", key, f"HTTP {resp.status_code}")
