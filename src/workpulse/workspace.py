"""Application lifecycle: load state, ensure the weekly snapshot, save and sync"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from .db import DatabaseManager, LocalStorage
from .models import RecordStore
from .snapshots import generate_snapshot
from .sync import CloudSync, RemoteDocumentStore, SyncError
from .utils import Config

logger = logging.getLogger(__name__)


class Workspace:
    """Owns the Record Store for one application run

    Usage:
        workspace = Workspace(config)
        store = workspace.open()
        ...mutate store...
        workspace.save()
        workspace.close()
    """

    def __init__(self, config: Config, db_manager: Optional[DatabaseManager] = None):
        self.config = config
        self.db = db_manager or DatabaseManager(config.get("db_path"))
        self.db.init_db()
        self.local = LocalStorage(
            self.db,
            slot=config.get("storage_slot", "workpulse-data"),
            marker_slot=config.get("sync_marker_slot", "workpulse-lastSync"),
        )
        self.store = RecordStore()
        self.sync: Optional[CloudSync] = None
        self.notices: List[str] = []

    def _connect_remote(self) -> Optional[CloudSync]:
        url = self.config.get("remote_url")
        user_id = self.config.get("user_id")
        if not url or not user_id:
            return None
        try:
            remote = RemoteDocumentStore(url)
        except (SQLAlchemyError, ImportError) as e:
            logger.error("Remote store unavailable: %s", e)
            self.notices.append("Cloud sync failed")
            return None
        return CloudSync(
            self.local,
            remote,
            user_id,
            debounce_seconds=float(self.config.get("sync_debounce_seconds", 2.0)),
        )

    def open(self, now: Optional[datetime] = None, sync: bool = True) -> RecordStore:
        """Load local state, reconcile with the remote copy and refresh the snapshot

        When the stored document could only be partly read, nothing is written
        back at startup; the original stays on disk until a command saves.
        """
        self.store = self.local.load()
        degraded = self.local.load_failed
        if degraded:
            self.notices.append("Some stored data could not be read")

        if sync:
            self.sync = self._connect_remote()
            if self.sync is not None:
                self.store, notice = self.sync.start(self.store, push_local=not degraded)
                if notice:
                    self.notices.append(notice)

        stale_hours = float(self.config.get("snapshot_stale_hours", 24))
        generate_snapshot(self.store, now=now, stale_after=timedelta(hours=stale_hours))
        if not degraded:
            self.local.save(self.store)
        return self.store

    def replace(self, store: RecordStore) -> None:
        """Swap in a whole new store, e.g. after an import"""
        self.store = store

    def save(self) -> bool:
        """Write locally and schedule a debounced remote push"""
        ok = self.local.save(self.store)
        if not ok:
            self.notices.append("Failed to save data")
        if self.sync is not None:
            self.sync.schedule(self.store)
        return ok

    def sync_now(self) -> bool:
        """Push immediately, bypassing the debounce"""
        if self.sync is None:
            raise SyncError("Cloud sync is not configured (set remote_url and user_id)")
        return self.sync.push(self.store)

    @property
    def sync_status(self) -> str:
        return self.sync.status if self.sync is not None else "offline"

    def close(self) -> None:
        """Flush any pending remote push"""
        if self.sync is not None and self.sync.has_pending and not self.sync.flush():
            self.notices.append("Cloud sync failed")
