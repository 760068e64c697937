"""JSON file persistence for the expense collection."""
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Union

from services.errors import CorruptStoreError, PersistenceError

logger = logging.getLogger(__name__)


class JsonFileStorage:
    """
    Reads and writes the whole expense collection as a single JSON array.

    The file is rewritten in full on every save; there is no append log.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> List[Dict[str, Any]]:
        """Returns the stored records, creating an empty document on first run."""
        if not self._path.exists():
            logger.info(f"Expenses file {self._path} not found. Creating an empty one.")
            self.save([])

        try:
            raw = self._path.read_bytes()
        except OSError as e:
            logger.error(f"Could not read expenses file {self._path}: {e}")
            raise PersistenceError(f"Could not read expenses file {self._path}: {e}") from e

        try:
            records = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error(f"Expenses file {self._path} is not valid JSON: {e}")
            raise CorruptStoreError(f"Expenses file {self._path} is not valid JSON: {e}") from e

        if not isinstance(records, list):
            logger.error(f"Expenses file {self._path} does not contain a JSON array (got {type(records).__name__}).")
            raise CorruptStoreError(f"Expenses file {self._path} must contain a JSON array.")

        logger.debug(f"Loaded {len(records)} records from {self._path}.")
        return records

    def save(self, records: List[Dict[str, Any]]) -> None:
        """Overwrites the backing file with the given records."""
        tmp_name = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            # Write next to the target so os.replace stays on one filesystem
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._path.name}.", suffix=".tmp", dir=str(self._path.parent)
            )
            try:
                f = os.fdopen(fd, "w", encoding="utf-8")
            except Exception:
                os.close(fd)
                raise
            with f:
                json.dump(records, f, ensure_ascii=False, indent=2)
                f.write("\n")
            os.replace(tmp_name, self._path)
            tmp_name = None
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to write expenses file {self._path}: {e}")
            raise PersistenceError(f"Failed to write expenses file {self._path}: {e}") from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
        logger.debug(f"Saved {len(records)} records to {self._path}.")
