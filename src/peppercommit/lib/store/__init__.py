import json
import logging
import os
import tempfile
import time
from contextlib import contextmanager
from pathlib import Path
from typing import List, Union

from peppercommit.lib.errors import (AlreadyExists, IntegrityMismatch, NotFound, ParseFailure,
                                     SerializationFailure, WriteFailure)
from peppercommit.lib.models import RECORD_FORMAT_VERSION, SecretRecord

DEFAULT_LOCK_TIMEOUT=10.0
LOCK_POLL_INTERVAL=0.05
LOCK_SUFFIX=".lock"

BATCH_FIELD_RECORDS="records"

PathLike = Union[str, os.PathLike]


class SecretStore:
    """Persists SecretRecords as JSON files.

    Writes are atomic (temp file, fsync, rename) and serialized per
    destination through an exclusive ``<destination>.lock`` file. An
    existing destination is never replaced unless the caller asks for it.
    """

    def __init__(self, lock_timeout: float = DEFAULT_LOCK_TIMEOUT) -> None:
        self.lock_timeout = lock_timeout

    def save(self, record: SecretRecord, destination: PathLike, overwrite: bool = False) -> None:
        # never let an unrevealable record replace anything on disk
        record.validate()
        self._write_json(record.to_dict(), destination, overwrite)
        logging.info("Saved secret record to %s", destination)

    def load(self, source: PathLike) -> SecretRecord:
        data = self._read_json(source)
        try:
            return SecretRecord.from_dict(data)
        except (ParseFailure, IntegrityMismatch) as exc:
            exc.path = str(source)
            raise

    def save_batch(self, records: List[SecretRecord], destination: PathLike, overwrite: bool = False) -> None:
        if not records:
            raise SerializationFailure("Refusing to save an empty batch", path=str(destination))
        for record in records:
            record.validate()
        data = {
            "version": RECORD_FORMAT_VERSION,
            BATCH_FIELD_RECORDS: [r.to_dict() for r in records],
        }
        self._write_json(data, destination, overwrite)
        logging.info("Saved %d secret records to %s", len(records), destination)

    def load_batch(self, source: PathLike) -> List[SecretRecord]:
        data = self._read_json(source)
        if not isinstance(data, dict) or not isinstance(data.get(BATCH_FIELD_RECORDS), list):
            raise ParseFailure("Not a batch file: missing 'records' list", path=str(source))
        if data.get("version") != RECORD_FORMAT_VERSION:
            raise ParseFailure(f"Unsupported batch version: {data.get('version')!r}", path=str(source))

        records = []
        for position, entry in enumerate(data[BATCH_FIELD_RECORDS]):
            try:
                records.append(SecretRecord.from_dict(entry))
            except ParseFailure as exc:
                raise ParseFailure(f"Record #{position}: {exc}", path=str(source)) from exc
            except IntegrityMismatch as exc:
                raise IntegrityMismatch(f"Record #{position}: {exc}", path=str(source)) from exc
        return records

    def load_any(self, source: PathLike) -> List[SecretRecord]:
        """Loads either a single record file or a batch file."""
        data = self._read_json(source)
        if isinstance(data, dict) and BATCH_FIELD_RECORDS in data:
            return self.load_batch(source)
        return [self.load(source)]

    @contextmanager
    def _locked(self, destination: Path):
        lock_path = destination.with_name(destination.name + LOCK_SUFFIX)
        deadline = time.monotonic() + self.lock_timeout
        while True:
            try:
                fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
                break
            except FileExistsError:
                if time.monotonic() >= deadline:
                    raise WriteFailure(
                        f"Timed out after {self.lock_timeout}s waiting for lock {lock_path}",
                        path=str(destination))
                time.sleep(LOCK_POLL_INTERVAL)
            except OSError as exc:
                raise WriteFailure(f"Cannot create lock {lock_path}: {exc}", path=str(destination)) from exc
        try:
            os.close(fd)
            yield
        finally:
            os.remove(lock_path)

    def _write_json(self, data: dict, destination: PathLike, overwrite: bool) -> None:
        destination = Path(destination)
        try:
            payload = json.dumps(data, indent=4, sort_keys=True, ensure_ascii=False) + "\n"
        except (TypeError, ValueError) as exc:
            raise SerializationFailure(f"Cannot encode record: {exc}", path=str(destination)) from exc

        with self._locked(destination):
            if destination.exists() and not overwrite:
                raise AlreadyExists(
                    f"{destination} already exists; refusing to overwrite a secret record",
                    path=str(destination))

            temp_name = None
            try:
                with tempfile.NamedTemporaryFile("w", encoding="utf-8", dir=destination.parent,
                                                 prefix=destination.name + ".", suffix=".tmp",
                                                 delete=False) as f:
                    temp_name = f.name
                    f.write(payload)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(temp_name, destination)
            except OSError as exc:
                if temp_name and os.path.exists(temp_name):
                    os.remove(temp_name)
                raise WriteFailure(f"Cannot write {destination}: {exc}", path=str(destination)) from exc

    def _read_json(self, source: PathLike):
        source = Path(source)
        try:
            with open(source, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError as exc:
            raise NotFound(f"No secret record at {source}", path=str(source)) from exc
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ParseFailure(f"{source} is not a valid secret record: {exc}", path=str(source)) from exc
        except OSError as exc:
            raise NotFound(f"{source} exists but is unreadable: {exc}", path=str(source)) from exc
