"""SQLAlchemy-backed KeyValueStore (aiosqlite by default)."""

import asyncio
import json
import logging
import os
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from nijawallet.errors import UpstreamUnavailable
from nijawallet.storage.base import KeyValueStore, check_namespace
from nijawallet.storage.database import create_session_factory, get_db, init_db, sqlite_directory
from nijawallet.storage.models import KVRecord

logger = logging.getLogger(__name__)


class SqlKeyValueStore(KeyValueStore):
    """One row per (namespace, key); the value column holds JSON text.

    An engine passed with ``owns_engine=True`` is disposed on close.
    """

    def __init__(self, engine: AsyncEngine, owns_engine: bool = False):
        self._engine = engine
        self._owns_engine = owns_engine
        self._session_factory = create_session_factory(engine)

    @property
    def name(self) -> str:
        return "sql"

    async def open(self) -> None:
        directory = sqlite_directory(str(self._engine.url))
        try:
            if directory:
                await asyncio.to_thread(os.makedirs, directory, exist_ok=True)
            await init_db(self._engine)
        except (SQLAlchemyError, OSError) as e:
            raise UpstreamUnavailable(f"Store open failed: {e}") from e
        logger.info(f"SQL store ready ({self._engine.url.drivername})")

    async def close(self) -> None:
        if self._owns_engine:
            await self._engine.dispose()

    async def get(self, namespace: str, key: str) -> Optional[dict]:
        check_namespace(namespace)
        try:
            async with get_db(self._session_factory) as session:
                row = await session.scalar(
                    select(KVRecord).where(KVRecord.namespace == namespace, KVRecord.key == key)
                )
                return json.loads(row.value) if row else None
        except SQLAlchemyError as e:
            raise UpstreamUnavailable(f"Store read failed: {e}") from e

    async def put(self, namespace: str, key: str, value: dict) -> None:
        check_namespace(namespace)
        payload = json.dumps(value, sort_keys=True)
        try:
            async with get_db(self._session_factory) as session:
                row = await session.scalar(
                    select(KVRecord).where(KVRecord.namespace == namespace, KVRecord.key == key)
                )
                if row is None:
                    session.add(KVRecord(namespace=namespace, key=key, value=payload))
                else:
                    row.value = payload
        except SQLAlchemyError as e:
            raise UpstreamUnavailable(f"Store write failed: {e}") from e

    async def delete(self, namespace: str, key: str) -> bool:
        check_namespace(namespace)
        try:
            async with get_db(self._session_factory) as session:
                result = await session.execute(
                    delete(KVRecord).where(KVRecord.namespace == namespace, KVRecord.key == key)
                )
                return result.rowcount > 0
        except SQLAlchemyError as e:
            raise UpstreamUnavailable(f"Store delete failed: {e}") from e

    async def list(self, namespace: str) -> list[dict]:
        check_namespace(namespace)
        try:
            async with get_db(self._session_factory) as session:
                rows = await session.scalars(
                    select(KVRecord).where(KVRecord.namespace == namespace).order_by(KVRecord.id)
                )
                return [json.loads(row.value) for row in rows]
        except SQLAlchemyError as e:
            raise UpstreamUnavailable(f"Store list failed: {e}") from e
