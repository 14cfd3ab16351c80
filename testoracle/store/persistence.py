"""Persistence backends for test cases."""

import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Callable, Iterable, Protocol
from uuid import UUID

from pydantic import ValidationError

from .errors import StoreError
from .models import TestCase

logger = logging.getLogger(__name__)


class PersistenceBackend(Protocol):
    """Key/value storage of test case records by id."""

    def put(self, test_id: UUID, record: TestCase) -> None: ...

    def get(self, test_id: UUID) -> TestCase | None: ...

    def query(self, predicate: Callable[[TestCase], bool]) -> list[TestCase]: ...

    def delete(self, test_id: UUID) -> bool: ...


class InMemoryBackend:
    """Keeps records in a dict; contents are lost with the process."""

    def __init__(self, records: Iterable[TestCase] = ()):
        self._lock = threading.Lock()
        self._records: dict[UUID, TestCase] = {r.id: r.model_copy(deep=True) for r in records}

    def put(self, test_id: UUID, record: TestCase) -> None:
        with self._lock:
            self._records[test_id] = record.model_copy(deep=True)

    def get(self, test_id: UUID) -> TestCase | None:
        with self._lock:
            record = self._records.get(test_id)
            return record.model_copy(deep=True) if record else None

    def query(self, predicate: Callable[[TestCase], bool]) -> list[TestCase]:
        with self._lock:
            return [r.model_copy(deep=True) for r in self._records.values() if predicate(r)]

    def delete(self, test_id: UUID) -> bool:
        with self._lock:
            return self._records.pop(test_id, None) is not None


class JsonFileBackend:
    """One ``<id>.json`` file per test case.

    Files are written to a temporary sibling and renamed into place, so a
    reader never sees a half-written record. Existing files are loaded when
    the backend is created.
    """

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError(f"Cannot create test case directory {self.directory}: {e}") from e

        self._lock = threading.Lock()
        records = self._load_all()
        self._cache = InMemoryBackend(records)
        logger.info("Loaded %d test case(s) from %s", len(records), self.directory)

    def _path(self, test_id: UUID) -> Path:
        return self.directory / f"{test_id}.json"

    def _load_all(self) -> list[TestCase]:
        records = []
        for path in sorted(self.directory.glob("*.json")):
            try:
                records.append(TestCase.model_validate_json(path.read_text(encoding="utf-8")))
            except (OSError, UnicodeDecodeError, ValidationError) as e:
                logger.warning("Skipping unreadable test case file %s: %s", path, e)
        return records

    def put(self, test_id: UUID, record: TestCase) -> None:
        data = record.model_dump_json(indent=2)
        with self._lock:
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{test_id}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(data)
                os.replace(tmp_name, self._path(test_id))
            except OSError as e:
                Path(tmp_name).unlink(missing_ok=True)
                raise StoreError(f"Failed to write test case {test_id}: {e}") from e
            self._cache.put(test_id, record)

    def get(self, test_id: UUID) -> TestCase | None:
        return self._cache.get(test_id)

    def query(self, predicate: Callable[[TestCase], bool]) -> list[TestCase]:
        return self._cache.query(predicate)

    def delete(self, test_id: UUID) -> bool:
        with self._lock:
            try:
                self._path(test_id).unlink(missing_ok=True)
            except OSError as e:
                raise StoreError(f"Failed to delete test case {test_id}: {e}") from e
            return self._cache.delete(test_id)
