"""JSON file store: one file per record.

Files are named ``{namespace}_{key}.json`` inside the data directory and are
written to a temporary file first, then swapped in with ``os.replace`` so a
reader never sees a half-written record.
"""

import asyncio
import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Optional

from nijawallet.errors import Malformed, UpstreamUnavailable
from nijawallet.storage.base import KeyValueStore, check_namespace

logger = logging.getLogger(__name__)

# Session tokens, hex hashes/addresses and base58 signatures all fit.
_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,160}$")


class FileKeyValueStore(KeyValueStore):
    """File-backed KeyValueStore."""

    def __init__(self, data_dir: str):
        self.data_dir = Path(data_dir)

    @property
    def name(self) -> str:
        return "file"

    async def open(self) -> None:
        await asyncio.to_thread(self.data_dir.mkdir, parents=True, exist_ok=True)
        logger.info(f"File store ready at {self.data_dir}")

    def _path(self, namespace: str, key: str) -> Path:
        check_namespace(namespace)
        if not _KEY_PATTERN.match(key):
            raise Malformed(f"Invalid record key: {key!r}")
        return self.data_dir / f"{namespace}_{key}.json"

    async def get(self, namespace: str, key: str) -> Optional[dict]:
        path = self._path(namespace, key)
        try:
            return await asyncio.to_thread(self._read, path)
        except OSError as e:
            raise UpstreamUnavailable(f"Store read failed: {e}") from e

    async def put(self, namespace: str, key: str, value: dict) -> None:
        path = self._path(namespace, key)
        payload = json.dumps(value, sort_keys=True)
        try:
            await asyncio.to_thread(self._write, path, payload)
        except OSError as e:
            raise UpstreamUnavailable(f"Store write failed: {e}") from e

    async def delete(self, namespace: str, key: str) -> bool:
        path = self._path(namespace, key)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            return False
        return True

    @staticmethod
    def _read(path: Path) -> Optional[dict]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except json.JSONDecodeError as e:
            logger.error(f"Corrupt record {path.name}: {e}")
            return None

    def _write(self, path: Path, payload: str) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.data_dir, prefix=".tmp_", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def _read_all(self, namespace: str) -> list[dict]:
        if not self.data_dir.exists():
            return []
        records = []
        for path in sorted(self.data_dir.glob(f"{namespace}_*.json")):
            record = self._read(path)
            if record is not None:
                records.append(record)
        return records

    # Defined last: the name shadows the builtin for the rest of the class body
    async def list(self, namespace: str) -> list[dict]:
        check_namespace(namespace)
        return await asyncio.to_thread(self._read_all, namespace)
