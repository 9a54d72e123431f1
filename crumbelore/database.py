import json
import logging
import os
import shutil
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .config import settings
from .errors import StoreInitError

logger = logging.getLogger(__name__)

# Collections the server keeps on disk.
USERS = "users"
BOOKS = "books"
ORDERS = "orders"
RESERVATIONS = "reservations"

BACKUP_SUFFIX = ".backup"


class RecordStore:
    """Reads and writes named collections (JSON arrays) under a directory.

    Reads and writes are attempted ``retries`` times with a fixed delay.
    An exhausted read yields an empty list; an exhausted write yields False.
    Before each write attempt the current file is copied to a ``.backup``
    sibling on a best-effort basis.

    Nothing guards a read-modify-write cycle: two callers that read, mutate
    and write the same collection concurrently can lose one of the writes.
    """

    def __init__(
        self,
        data_dir: Union[str, Path, None] = None,
        retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ) -> None:
        self.data_dir = Path(data_dir if data_dir is not None else settings.data_dir)
        self.retries = max(1, retries if retries is not None else settings.store_retries)
        self.retry_delay = settings.store_retry_delay if retry_delay is None else retry_delay

    def initialize(self) -> None:
        """Create the data directory. Failure here is fatal for the server."""
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreInitError(f"Cannot create data directory {self.data_dir}: {exc}") from exc
        logger.info(f"Data directory: {self.data_dir}")

    def path_for(self, collection: str) -> Path:
        return self.data_dir / f"{collection}.json"

    def backup_path_for(self, collection: str) -> Path:
        return self.data_dir / f"{collection}.json{BACKUP_SUFFIX}"

    def collections(self) -> List[str]:
        if not self.data_dir.is_dir():
            return []
        return sorted(p.stem for p in self.data_dir.glob("*.json"))

    # ------------------------- Reads ------------------------- #
    def read(self, collection: str) -> List[Dict[str, Any]]:
        path = self.path_for(collection)
        for attempt in range(1, self.retries + 1):
            try:
                with open(path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                if not isinstance(data, list):
                    raise ValueError(f"{path.name} does not hold a JSON array")
                return data
            except (OSError, ValueError) as exc:
                logger.debug(f"Read attempt {attempt}/{self.retries} for {path} failed: {exc}")
                if attempt < self.retries:
                    time.sleep(self.retry_delay)
        logger.warning(f"Could not read {path} after {self.retries} attempts; using an empty collection")
        return []

    # ------------------------- Writes ------------------------- #
    def write(self, collection: str, records: List[Dict[str, Any]]) -> bool:
        path = self.path_for(collection)
        for attempt in range(1, self.retries + 1):
            self._backup(collection)
            try:
                self._write_json(path, records)
                return True
            except (OSError, TypeError, ValueError) as exc:
                logger.debug(f"Write attempt {attempt}/{self.retries} for {path} failed: {exc}")
                if attempt < self.retries:
                    time.sleep(self.retry_delay)
        logger.error(f"Could not write {path} after {self.retries} attempts")
        return False

    def _backup(self, collection: str) -> None:
        path = self.path_for(collection)
        if not path.exists():
            return
        try:
            shutil.copyfile(path, self.backup_path_for(collection))
        except OSError as exc:
            logger.warning(f"Backup of {path} failed: {exc}")

    @staticmethod
    def _write_json(path: Path, data: Any) -> None:
        payload = json.dumps(data, ensure_ascii=False, indent=2)
        tmp_path = path.with_suffix(".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(payload)
        os.replace(tmp_path, path)
