"""Key-value stores for seen warnings.

The reconciler only needs ``read(collection, key)`` and
``write(collection, key, record)``. This module provides that contract
plus three backings:

- ``FileKeyValueStore``: one JSON file per key under a directory per
  collection.
- ``SqlKeyValueStore``: a single SQLAlchemy table, SQLite by default.
- ``InMemoryKeyValueStore``: a dict, for tests.
"""

from __future__ import annotations

import copy
import hashlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable
from urllib.parse import quote

from sqlalchemy import create_engine, select
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from warnung_tracker.storage.models import Base, StoredRecordModel

if TYPE_CHECKING:
    from warnung_tracker.config import StoreSettings

logger = logging.getLogger(__name__)

Record = dict[str, Any]

# Longest quoted name used as is; most filesystems cap names at 255 bytes.
MAX_FILE_NAME_LENGTH = 200


class StoreError(Exception):
    """Base exception for store errors."""


class StoreInitError(StoreError):
    """Raised when the store cannot be opened or created."""


class StoreReadError(StoreError):
    """Raised when a stored record exists but cannot be read."""


class StoreWriteError(StoreError):
    """Raised when a record cannot be written."""


@runtime_checkable
class KeyValueStore(Protocol):
    """Contract the reconciler requires from a persistence backend."""

    def read(self, collection: str, key: str) -> Record | None:
        """Return the record stored under key, or None if there is none."""
        ...

    def write(self, collection: str, key: str, record: Record) -> None:
        """Store record under key, replacing any previous record."""
        ...

    def close(self) -> None:
        """Release resources held by the store."""
        ...


class InMemoryKeyValueStore:
    """Dict-backed store. Records are copied in and out."""

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, Record]] = {}

    def read(self, collection: str, key: str) -> Record | None:
        record = self._collections.get(collection, {}).get(key)
        return copy.deepcopy(record) if record is not None else None

    def write(self, collection: str, key: str, record: Record) -> None:
        self._collections.setdefault(collection, {})[key] = copy.deepcopy(record)

    def keys(self, collection: str) -> list[str]:
        """List keys of a collection in insertion order."""
        return list(self._collections.get(collection, {}))

    def close(self) -> None:
        pass


def _file_name(name: str) -> str:
    """Map a collection or key to a single file name component."""
    quoted = quote(name, safe="", errors="surrogatepass")
    if len(quoted) <= MAX_FILE_NAME_LENGTH:
        return quoted
    digest = hashlib.sha256(name.encode("utf-8", "surrogatepass")).hexdigest()
    return f"{quoted[: MAX_FILE_NAME_LENGTH - len(digest) - 1]}-{digest}"


class FileKeyValueStore:
    """Store keeping one JSON document per key on disk.

    Layout is ``<root>/<collection>/<key>.json``. Collection and key are
    percent-quoted so any identifier maps to a single safe file name;
    names too long for the filesystem are shortened and suffixed with a
    SHA-256 digest of the full key. Records are written as ASCII-escaped
    JSON so any decoded string, lone surrogates included, round-trips.
    Writes go to a temporary file that is renamed into place.
    """

    def __init__(self, root: str | os.PathLike[str]) -> None:
        """Open (and create if needed) the store directory.

        Args:
            root: Root directory of the store.

        Raises:
            StoreInitError: If the directory cannot be created.
        """
        self.root = Path(root)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreInitError(f"Cannot create store directory {self.root}: {e}") from e
        if not self.root.is_dir():
            raise StoreInitError(f"Store path {self.root} is not a directory")

    def _collection_dir(self, collection: str) -> Path:
        return self.root / _file_name(collection)

    def _record_path(self, collection: str, key: str) -> Path:
        return self._collection_dir(collection) / f"{_file_name(key)}.json"

    def read(self, collection: str, key: str) -> Record | None:
        path = self._record_path(collection, key)
        try:
            with path.open(encoding="utf-8") as f:
                record = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            raise StoreReadError(f"Cannot read {path}: {e}") from e

        if not isinstance(record, dict):
            raise StoreReadError(f"Record {path} is not a JSON object")
        return record

    def write(self, collection: str, key: str, record: Record) -> None:
        directory = self._collection_dir(collection)
        path = self._record_path(collection, key)
        tmp_name: str | None = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=directory, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(record, f, indent="\t")
            os.replace(tmp_name, path)
            tmp_name = None
        except (OSError, TypeError, ValueError) as e:
            raise StoreWriteError(f"Cannot write {path}: {e}") from e
        finally:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)

        logger.debug("Wrote %s", path)

    def close(self) -> None:
        pass


class SqlKeyValueStore:
    """Store keeping records in a single SQL table.

    Example:
        >>> store = SqlKeyValueStore("sqlite:///DB/warnungen.db")
        >>> store.write("Meldungen", "id-1", {"identifier": "id-1"})
        >>> store.read("Meldungen", "id-1")
        {'identifier': 'id-1'}
    """

    def __init__(self, url: str) -> None:
        """Connect and create the schema if needed.

        Args:
            url: SQLAlchemy database URL.

        Raises:
            StoreInitError: If the URL is invalid or the database cannot
                be opened.
        """
        try:
            parsed = make_url(url)
            database = parsed.database
            if parsed.get_backend_name() == "sqlite" and database not in (None, "", ":memory:"):
                Path(database).parent.mkdir(parents=True, exist_ok=True)
            self._engine = create_engine(parsed)
            Base.metadata.create_all(self._engine)
        except (ArgumentError, SQLAlchemyError, OSError) as e:
            raise StoreInitError(f"Cannot open SQL store {url!r}: {e}") from e

        self._session_factory = sessionmaker(self._engine, expire_on_commit=False)

    def read(self, collection: str, key: str) -> Record | None:
        try:
            with self._session_factory() as session:
                model = session.execute(
                    select(StoredRecordModel).where(
                        StoredRecordModel.collection == collection,
                        StoredRecordModel.key == key,
                    )
                ).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StoreReadError(f"Cannot read {collection}/{key}: {e}") from e

        if model is None:
            return None
        if not isinstance(model.payload, dict):
            raise StoreReadError(f"Record {collection}/{key} is not a JSON object")
        return dict(model.payload)

    def write(self, collection: str, key: str, record: Record) -> None:
        try:
            with self._session_factory.begin() as session:
                model = session.execute(
                    select(StoredRecordModel).where(
                        StoredRecordModel.collection == collection,
                        StoredRecordModel.key == key,
                    )
                ).scalar_one_or_none()
                if model is None:
                    session.add(
                        StoredRecordModel(collection=collection, key=key, payload=record)
                    )
                else:
                    model.payload = record
        except SQLAlchemyError as e:
            raise StoreWriteError(f"Cannot write {collection}/{key}: {e}") from e

        logger.debug("Wrote %s/%s", collection, key)

    def close(self) -> None:
        self._engine.dispose()


def open_store(settings: StoreSettings) -> KeyValueStore:
    """Open the store selected by the settings.

    Args:
        settings: Store settings.

    Returns:
        An opened KeyValueStore.

    Raises:
        StoreInitError: If the store cannot be opened.
    """
    if settings.backend == "sql":
        logger.info("Opening SQL store %s", settings.url)
        return SqlKeyValueStore(settings.url)

    logger.info("Opening file store %s", settings.path)
    return FileKeyValueStore(settings.path)
