# Overview: Advisory, process-local edit locks for invoices and estimates.

"""
Soft edit locks

Two people opening the same invoice in the editor should see that the
other is already working on it. The ledgers themselves are guarded by
database transactions, not by these locks.

SCOPE:
- In memory, per process, lost on restart
- Entries expire after EDIT_LOCK_TTL_SECONDS
- A multi-process deployment needs a shared store (e.g. a cache with TTL keys)
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app

from ..errors import DocumentLockedError, ValidationError
from ledgerly.time_utils import to_utc_z, utcnow


LOCKABLE_DOCUMENTS = {"invoice", "estimate"}
EXTENSION_KEY = "ledgerly.edit_locks"


@dataclass(frozen=True)
class EditLock:
    document_type: str
    document_id: int
    editor: str
    acquired_at: datetime
    expires_at: datetime

    def to_dict(self) -> dict:
        return {
            "document_type": self.document_type,
            "document_id": self.document_id,
            "editor": self.editor,
            "acquired_at": to_utc_z(self.acquired_at),
            "expires_at": to_utc_z(self.expires_at),
        }


class EditLockRegistry:
    def __init__(self, ttl_seconds: int = 900, clock=utcnow):
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._locks: dict[tuple[str, int], EditLock] = {}
        self._mutex = threading.Lock()

    @staticmethod
    def _key(document_type: str, document_id: int) -> tuple[str, int]:
        if document_type not in LOCKABLE_DOCUMENTS:
            raise ValidationError(
                f"Invalid document type '{document_type}'. Must be one of: {', '.join(sorted(LOCKABLE_DOCUMENTS))}"
            )
        return document_type, int(document_id)

    def _live(self, key: tuple[str, int], now: datetime) -> EditLock | None:
        entry = self._locks.get(key)
        if entry is not None and entry.expires_at <= now:
            del self._locks[key]
            return None
        return entry

    def acquire(self, document_type: str, document_id: int, editor: str) -> EditLock:
        """Take or refresh the lock. Raises DocumentLockedError if someone else holds it."""
        if not editor:
            raise ValidationError("editor is required")
        key = self._key(document_type, document_id)
        with self._mutex:
            now = self._clock()
            current = self._live(key, now)
            if current is not None and current.editor != editor:
                raise DocumentLockedError(
                    f"{document_type.capitalize()} is being edited by {current.editor}",
                    details=current.to_dict(),
                )
            entry = EditLock(
                document_type=key[0],
                document_id=key[1],
                editor=editor,
                acquired_at=current.acquired_at if current else now,
                expires_at=now + self.ttl,
            )
            self._locks[key] = entry
            return entry

    def release(self, document_type: str, document_id: int, editor: str | None = None) -> bool:
        """Drop the lock. With an editor, only that editor's lock is dropped."""
        key = self._key(document_type, document_id)
        with self._mutex:
            current = self._live(key, self._clock())
            if current is None:
                return False
            if editor is not None and current.editor != editor:
                raise DocumentLockedError(
                    f"{document_type.capitalize()} is locked by {current.editor}",
                    details=current.to_dict(),
                )
            del self._locks[key]
            return True

    def get(self, document_type: str, document_id: int) -> EditLock | None:
        key = self._key(document_type, document_id)
        with self._mutex:
            return self._live(key, self._clock())

    def is_locked(self, document_type: str, document_id: int, *, by_other_than: str | None = None) -> bool:
        entry = self.get(document_type, document_id)
        if entry is None:
            return False
        return by_other_than is None or entry.editor != by_other_than

    def ensure_editable(self, document_type: str, document_id: int, editor: str | None) -> None:
        """Raise if another editor holds the lock; unlocked documents are editable by anyone."""
        entry = self.get(document_type, document_id)
        if entry is not None and entry.editor != editor:
            raise DocumentLockedError(
                f"{document_type.capitalize()} is being edited by {entry.editor}",
                details=entry.to_dict(),
            )

    def list_locks(self, document_type: str | None = None) -> list[EditLock]:
        with self._mutex:
            now = self._clock()
            for key in list(self._locks):
                self._live(key, now)
            return sorted(
                (lock for lock in self._locks.values() if document_type is None or lock.document_type == document_type),
                key=lambda lock: (lock.document_type, lock.document_id),
            )


def init_app(app) -> EditLockRegistry:
    registry = EditLockRegistry(ttl_seconds=app.config.get("EDIT_LOCK_TTL_SECONDS", 900))
    app.extensions[EXTENSION_KEY] = registry
    return registry


def get_registry() -> EditLockRegistry:
    return current_app.extensions[EXTENSION_KEY]
