"""Local persistence: a SQLite key-value slot holding the whole Record Store"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional
from contextlib import contextmanager
from datetime import date

from sqlalchemy import String, Text, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import RecordStore, Settings
from .utils import to_local_date_string

logger = logging.getLogger(__name__)


DEFAULT_SLOT = "workpulse-data"
DEFAULT_MARKER_SLOT = "workpulse-lastSync"
IMPORT_KEYS = ("projects", "tasks", "activities")


class Base(DeclarativeBase):
    """Base class for all ORM models"""

    pass


class StorageSlot(Base):
    """One named value in the local key-value store"""

    __tablename__ = "storage"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text)

    def __repr__(self):
        return f"<StorageSlot(key={self.key}, size={len(self.value or '')})>"


class DataImportError(ValueError):
    """Raised when an import file cannot be used; the live store is untouched"""


class DatabaseManager:
    """Manages database connection and session lifecycle"""

    def __init__(self, db_path: Optional[str] = None):
        """Initialize database manager

        Args:
            db_path: Path to SQLite database file, ":memory:" for a throwaway
                store. If None, uses default ~/.workpulse/workpulse.db
        """
        if db_path is None:
            db_path = self._get_default_db_path()

        if db_path == ":memory:":
            self.db_path = None
            url = "sqlite://"
        else:
            self.db_path = Path(db_path).expanduser()
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            url = f"sqlite:///{self.db_path}"

        self.engine = create_engine(
            url,
            echo=False,  # Set to True for SQL debugging
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    @staticmethod
    def _get_default_db_path() -> str:
        """Get default database path in user's home directory"""
        return str(Path.home() / ".workpulse" / "workpulse.db")

    def init_db(self) -> None:
        """Initialize database by creating the storage table"""
        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def get_session(self):
        """Context manager for database sessions

        Usage:
            with db_manager.get_session() as session:
                slot = session.get(StorageSlot, "workpulse-data")
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def get_db_size(self) -> int:
        """Get database file size in bytes"""
        if self.db_path is not None and self.db_path.exists():
            return self.db_path.stat().st_size
        return 0

    def get_item(self, key: str) -> Optional[str]:
        """Read one slot, None when it was never written"""
        with self.get_session() as session:
            slot = session.get(StorageSlot, key)
            return slot.value if slot else None

    def set_item(self, key: str, value: str) -> None:
        """Overwrite one slot"""
        with self.get_session() as session:
            slot = session.get(StorageSlot, key)
            if slot is None:
                session.add(StorageSlot(key=key, value=value))
            else:
                slot.value = value


def merge_document(base: Dict[str, Any], incoming: Dict[str, Any]) -> Dict[str, Any]:
    """Shallow-merge a document over another; settings are incoming over defaults"""
    merged = {**base, **incoming}
    settings = incoming.get("settings")
    if not isinstance(settings, dict):
        settings = {}
    merged["settings"] = {**Settings().to_dict(), **settings}
    return merged


class LocalStorage:
    """Reads and writes the Record Store document in a named slot

    ``load_failed`` is set when the last load could not read the stored
    document in full, so callers can avoid overwriting it.
    """

    def __init__(
        self,
        db_manager: DatabaseManager,
        slot: str = DEFAULT_SLOT,
        marker_slot: str = DEFAULT_MARKER_SLOT,
    ):
        self.db = db_manager
        self.slot = slot
        self.marker_slot = marker_slot
        self.load_failed = False

    def load(self) -> RecordStore:
        """Load the stored document, falling back to an empty store

        A missing, unreadable or corrupt document never fails startup.
        Unreadable records are skipped with a warning.
        """
        self.load_failed = False
        try:
            raw = self.db.get_item(self.slot)
        except SQLAlchemyError:
            logger.exception("Failed to read local data")
            self.load_failed = True
            return RecordStore()

        if not raw:
            return RecordStore()

        try:
            parsed = json.loads(raw)
            if not isinstance(parsed, dict):
                raise ValueError("stored document is not an object")
        except ValueError as e:
            logger.error("Failed to load data: %s", e)
            self.load_failed = True
            return RecordStore()

        document = merge_document(RecordStore().to_dict(), parsed)
        try:
            return RecordStore.from_dict(document, strict=True)
        except (ValueError, TypeError) as e:
            logger.error("Stored data has unreadable records: %s", e)
            self.load_failed = True
            return RecordStore.from_dict(document)

    def save(self, store: RecordStore) -> bool:
        """Overwrite the slot with the full document; returns False on failure"""
        try:
            self.db.set_item(self.slot, json.dumps(store.to_dict()))
        except SQLAlchemyError:
            logger.exception("Failed to save data")
            return False
        return True

    def get_sync_marker(self) -> str:
        try:
            return self.db.get_item(self.marker_slot) or "0"
        except SQLAlchemyError:
            logger.exception("Failed to read sync marker")
            return "0"

    def set_sync_marker(self, marker: str) -> None:
        self.db.set_item(self.marker_slot, marker)


def export_filename(today: Optional[date] = None) -> str:
    return f"workpulse-export-{to_local_date_string(today)}.json"


def export_data(store: RecordStore, path: Path) -> Path:
    """Write the full document as pretty-printed JSON"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(store.to_dict(), indent=2))
    return path


def parse_import(text: str) -> Dict[str, Any]:
    """Parse and validate an import file's contents

    Raises:
        DataImportError: if the text is not JSON or carries none of the
            expected top-level collections
    """
    try:
        data = json.loads(text)
    except ValueError as e:
        raise DataImportError("Failed to parse file") from e

    if not isinstance(data, dict) or not any(key in data for key in IMPORT_KEYS):
        raise DataImportError("Invalid data file")
    return data


def import_data(store: RecordStore, text: str) -> RecordStore:
    """Build a new store with the import shallow-merged over the current one

    The given store is not modified; callers replace it with the result.
    Any unreadable record rejects the whole file.
    """
    data = parse_import(text)
    try:
        return RecordStore.from_dict(merge_document(store.to_dict(), data), strict=True)
    except (ValueError, TypeError, AttributeError) as e:
        logger.warning("Rejected import: %s", e)
        raise DataImportError(f"Invalid data file: {e}") from e

