"""Remote document sync

Each user owns one remote document holding the same JSON payload as local
storage plus a ``lastSync``/``updatedAt`` pair. Local and remote copies are
reconciled by last-write-wins on the two sync markers: the newer copy replaces
the older one wholesale, so an edit made concurrently on another device can be
lost.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from sqlalchemy import JSON, String, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker

from .db import LocalStorage, merge_document
from .models import RecordStore

logger = logging.getLogger(__name__)


class SyncError(RuntimeError):
    """Raised when the remote document store cannot be read or written"""


class RemoteBase(DeclarativeBase):
    """Base class for remote document models"""

    pass


class RemoteDocument(RemoteBase):
    """The synced copy of one user's data"""

    __tablename__ = "user_documents"

    user_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    data: Mapped[dict] = mapped_column(JSON)
    last_sync: Mapped[str] = mapped_column(String(64))
    updated_at: Mapped[str] = mapped_column(String(64))

    def __repr__(self):
        return f"<RemoteDocument(user_id={self.user_id}, last_sync={self.last_sync})>"


class RemoteDocumentStore:
    """Document store keyed by user id, reachable through any SQLAlchemy URL"""

    def __init__(self, url: str):
        self.url = url
        self.engine = create_engine(url, echo=False)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        RemoteBase.metadata.create_all(bind=self.engine)

    def get(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Fetch a user's document as {data, lastSync, updatedAt}, or None"""
        try:
            with self.SessionLocal() as session:
                doc = session.get(RemoteDocument, user_id)
                if doc is None:
                    return None
                return {"data": doc.data, "lastSync": doc.last_sync, "updatedAt": doc.updated_at}
        except SQLAlchemyError as e:
            raise SyncError(f"Failed to read remote document: {e}") from e

    def put(self, user_id: str, data: Dict[str, Any], timestamp: str) -> None:
        """Overwrite a user's document, stamping both markers with timestamp"""
        try:
            with self.SessionLocal() as session:
                doc = session.get(RemoteDocument, user_id)
                if doc is None:
                    doc = RemoteDocument(user_id=user_id)
                    session.add(doc)
                doc.data = data
                doc.last_sync = timestamp
                doc.updated_at = timestamp
                session.commit()
        except SQLAlchemyError as e:
            raise SyncError(f"Failed to write remote document: {e}") from e


@dataclass
class MergeDecision:
    """Which copy won and the document to keep"""

    winner: str  # "local" or "remote"
    data: Dict[str, Any]


def merge_last_write_wins(
    local_data: Dict[str, Any],
    remote_data: Optional[Dict[str, Any]],
    local_marker: Optional[str],
    remote_marker: Optional[str],
) -> MergeDecision:
    """Pick the copy with the greater sync marker

    Markers are compared as strings (ISO timestamps sort lexically); a missing
    marker counts as "0". Ties and a missing remote copy keep local data.
    """
    local_marker = local_marker or "0"
    remote_marker = remote_marker or "0"

    if remote_data is not None and remote_marker > local_marker:
        return MergeDecision("remote", merge_document(local_data, remote_data))
    return MergeDecision("local", local_data)


def _now_marker() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


class CloudSync:
    """Keeps local storage and the user's remote document in step

    Pushes are debounced: every ``schedule`` call restarts a single-shot timer,
    so a burst of saves becomes one remote write. Failures only change the
    status; local storage stays authoritative.
    """

    def __init__(
        self,
        local: LocalStorage,
        remote: RemoteDocumentStore,
        user_id: str,
        debounce_seconds: float = 2.0,
        clock: Callable[[], str] = _now_marker,
    ):
        self.local = local
        self.remote = remote
        self.user_id = user_id
        self.debounce_seconds = debounce_seconds
        self.clock = clock
        self.status = "offline"
        self.last_error: Optional[str] = None
        self._timer: Optional[threading.Timer] = None
        self._pending: Optional[RecordStore] = None
        self._lock = threading.Lock()

    def _set_status(self, status: str, error: Optional[str] = None) -> None:
        self.status = status
        self.last_error = error

    def start(self, store: RecordStore, push_local: bool = True):
        """Reconcile on sign-in

        Args:
            store: Locally loaded store
            push_local: Upload the local copy when it wins; off when local
                data was only partly readable

        Returns:
            Tuple of (store to use, notice or None)
        """
        try:
            doc = self.remote.get(self.user_id)
        except SyncError as e:
            logger.error("Sync failed: %s", e)
            self._set_status("error", str(e))
            return store, "Cloud sync failed"

        local_marker = self.local.get_sync_marker()
        decision = merge_last_write_wins(
            store.to_dict(),
            doc["data"] if doc else None,
            local_marker,
            doc["lastSync"] if doc else None,
        )

        if decision.winner == "remote":
            logger.info("Remote copy is newer (%s > %s), replacing local data",
                        doc["lastSync"], local_marker)
            merged = RecordStore.from_dict(decision.data)
            self.local.save(merged)
            self._set_status("synced")
            return merged, "Data synced from cloud"

        logger.info("Local copy is current")
        if not push_local:
            self._set_status("offline")
            return store, None
        if self.push(store):
            return store, None
        return store, "Cloud sync failed"

    def push(self, store: RecordStore) -> bool:
        """Write the store to the remote document now"""
        self._set_status("syncing")
        marker = self.clock()
        try:
            self.remote.put(self.user_id, store.to_dict(), marker)
            self.local.set_sync_marker(marker)
        except (SyncError, SQLAlchemyError) as e:
            logger.error("Cloud sync failed: %s", e)
            self._set_status("error", str(e))
            return False
        self._set_status("synced")
        return True

    def schedule(self, store: RecordStore) -> None:
        """Push after the quiet period, replacing any pending push"""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._pending = store
            self._timer = threading.Timer(self.debounce_seconds, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def _fire(self) -> None:
        with self._lock:
            store, self._pending, self._timer = self._pending, None, None
        if store is not None:
            self.push(store)

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def flush(self) -> bool:
        """Push a pending change immediately; True when nothing failed"""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            store, self._pending, self._timer = self._pending, None, None
        if store is None:
            return self.status != "error"
        return self.push(store)
