"""
SQL-backed document store.

Documents are rows of the ``documents`` table; deleted documents stay behind as
tombstones so versions only ever grow.  Transactions are optimistic: the
callback reads through a short-lived session, then the buffered writes are
applied in a second database transaction that re-checks every version it read
and updates each row only if its version is unchanged.  A mismatch (or a
duplicate insert) rolls back and runs the callback again.

When a Redis change feed is configured, committed paths are published so that
other processes can refresh their own snapshot listeners.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Tuple
from uuid import uuid4

import redis
import redis.asyncio as aioredis
from redis.asyncio.client import PubSub
from redis.exceptions import ConnectionError, RedisError
from sqlalchemy import insert, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from scheduler.core.errors import StoreError, TransactionContentionError
from scheduler.core.store import (
    Document,
    ListeningDocumentStore,
    T,
    Transaction,
    Where,
    check_batch_size,
    matches,
    merged,
    parent_collection,
    split_path,
    transaction_attempts,
)
from scheduler.models import StoredDocument

logger = logging.getLogger(__name__)


class _ConflictingWrite(Exception):
    pass


class _SqlTransaction(Transaction):
    def __init__(self, session: Session):
        self._session = session
        # Versions seen by this attempt; 0 means the path never existed
        self.reads: Dict[str, int] = {}
        self.collection_reads: Dict[str, Dict[str, int]] = {}
        self.writes: Dict[str, Optional[Document]] = {}

    def get(self, path: str) -> Optional[Document]:
        if path in self.writes:
            return copy.deepcopy(self.writes[path])
        row = self._session.get(StoredDocument, path)
        self.reads.setdefault(path, row.version if row else 0)
        if row is None or row.is_deleted:
            return None
        return copy.deepcopy(row.data)

    def list_documents(self, collection: str, where: Where = None) -> Dict[str, Document]:
        rows = self._session.exec(
            select(StoredDocument).where(
                StoredDocument.collection == collection,
                StoredDocument.is_deleted == False,
            )
        ).all()
        self.collection_reads.setdefault(collection, {row.path: row.version for row in rows})

        documents = {split_path(row.path)[1]: copy.deepcopy(row.data) for row in rows}
        for path, data in self.writes.items():
            parent, doc_id = split_path(path)
            if parent != collection:
                continue
            if data is None:
                documents.pop(doc_id, None)
            else:
                documents[doc_id] = copy.deepcopy(data)
        return {doc_id: data for doc_id, data in documents.items() if matches(data, where)}

    def set(self, path: str, data: Document, merge: bool = False) -> None:
        split_path(path)
        existing = self.get(path) if merge else None
        self.writes[path] = merged(existing, data, merge)

    def delete(self, path: str) -> None:
        split_path(path)
        self.writes[path] = None


class RedisChangeFeed:
    """Publishes changed document paths on a Redis channel."""

    def __init__(self, redis_url: str, channel: str):
        self.channel = channel
        self.redis_url = redis_url
        self.origin = uuid4().hex
        self._client = redis.Redis.from_url(redis_url, decode_responses=True)

    def publish(self, paths: Iterable[str]) -> None:
        message = json.dumps({"origin": self.origin, "paths": list(paths)})
        try:
            self._client.publish(self.channel, message)
            logger.debug(f"Published document changes on {self.channel}")
        except (ConnectionError, RedisError) as e:
            # Other processes miss this change until their next snapshot
            logger.warning(f"Failed to publish document changes: {e}")


class RedisChangeListener:
    """Listens to the change feed and refreshes local listeners for remote writes."""

    def __init__(self, store: "SqlDocumentStore", feed: RedisChangeFeed):
        self.store = store
        self.feed = feed
        self.redis: Optional[aioredis.Redis] = None
        self.pubsub: Optional[PubSub] = None
        self._listener_task: Optional[asyncio.Task] = None

    def parse_message(self, raw: str) -> List[str]:
        """Return the changed paths of a remote message, or an empty list for our own."""
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning(f"Ignoring malformed change message: {raw!r}")
            return []
        if not isinstance(data, dict) or data.get("origin") == self.feed.origin:
            return []
        paths = data.get("paths") or []
        return [path for path in paths if isinstance(path, str)]

    async def connect(self) -> None:
        try:
            self.redis = aioredis.from_url(self.feed.redis_url, encoding="utf-8", decode_responses=True)
            self.pubsub = self.redis.pubsub()
            await self.pubsub.subscribe(self.feed.channel)
            logger.info(f"Subscribed to document change channel '{self.feed.channel}'")
            self._listener_task = asyncio.create_task(self._listen())
        except (ConnectionError, RedisError) as e:
            logger.error(f"Failed to connect to Redis change feed: {e}")
            raise StoreError("Document change feed is unavailable") from e

    async def disconnect(self) -> None:
        if self._listener_task:
            self._listener_task.cancel()
            try:
                await self._listener_task
            except asyncio.CancelledError:
                pass

        if self.pubsub:
            await self.pubsub.unsubscribe(self.feed.channel)
            await self.pubsub.aclose()

        if self.redis:
            await self.redis.aclose()

        logger.info("Document change feed disconnected")

    async def _listen(self) -> None:
        try:
            async for message in self.pubsub.listen():
                if message["type"] != "message":
                    continue
                paths = self.parse_message(message["data"])
                if paths:
                    await asyncio.to_thread(self.store.notify_changes, paths)
        except asyncio.CancelledError:
            logger.info("Document change listener cancelled")
            raise
        except (ConnectionError, RedisError) as e:
            logger.error(f"Document change listener error: {e}", exc_info=True)


class SqlDocumentStore(ListeningDocumentStore):
    """Document store persisted through SQLModel."""

    def __init__(self, engine: Engine, change_feed: RedisChangeFeed | None = None):
        super().__init__()
        self._engine = engine
        # Commits take the database write lock up front on SQLite (see db.build_engine)
        self._write_engine = engine.execution_options(sqlite_immediate=True)
        self._change_feed = change_feed
        self._listener: RedisChangeListener | None = None

    async def open(self) -> None:
        if self._change_feed and self._listener is None:
            self._listener = RedisChangeListener(self, self._change_feed)
            await self._listener.connect()

    async def close(self) -> None:
        if self._listener:
            await self._listener.disconnect()
            self._listener = None

    def get(self, path: str) -> Optional[Document]:
        try:
            with Session(self._engine) as session:
                row = session.get(StoredDocument, path)
                if row is None or row.is_deleted:
                    return None
                return copy.deepcopy(row.data)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read {path}") from e

    def list_documents(self, collection: str, where: Where = None) -> Dict[str, Document]:
        try:
            with Session(self._engine) as session:
                rows = session.exec(
                    select(StoredDocument).where(
                        StoredDocument.collection == collection,
                        StoredDocument.is_deleted == False,
                    )
                ).all()
                documents = {split_path(row.path)[1]: copy.deepcopy(row.data) for row in rows}
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to list {collection}") from e
        return {doc_id: data for doc_id, data in documents.items() if matches(data, where)}

    def set(self, path: str, data: Document, merge: bool = False) -> None:
        self.run_transaction(lambda txn: txn.set(path, data, merge=merge))

    def delete(self, path: str) -> None:
        self.run_transaction(lambda txn: txn.delete(path))

    def batch_delete(self, paths: List[str]) -> None:
        check_batch_size(paths)
        for path in paths:
            split_path(path)
        now = datetime.now(timezone.utc)
        try:
            with Session(self._write_engine) as session, session.begin():
                existing = session.exec(
                    select(StoredDocument.path).where(
                        StoredDocument.path.in_(paths),
                        StoredDocument.is_deleted == False,
                    )
                ).all()
                if existing:
                    session.execute(
                        update(StoredDocument)
                        .where(StoredDocument.path.in_(existing))
                        .values(
                            data={},
                            is_deleted=True,
                            deleted_at=now,
                            updated_at=now,
                            version=StoredDocument.version + 1,
                        )
                    )
        except SQLAlchemyError as e:
            raise StoreError("Batch delete failed") from e
        logger.debug(f"Batch deleted {len(existing)} of {len(paths)} documents")
        self._after_commit(list(existing))

    def _current_version(self, session: Session, path: str) -> Tuple[int, bool]:
        """Return (version, exists) for ``path``; tombstones keep their version."""
        row = session.exec(
            select(StoredDocument.version, StoredDocument.is_deleted)
            .where(StoredDocument.path == path)
            .with_for_update()
        ).first()
        if row is None:
            return 0, False
        version, is_deleted = row
        return version, not is_deleted

    def _write(self, session: Session, path: str, data: Optional[Document], now: datetime) -> bool:
        version, exists = self._current_version(session, path)
        if data is None and not exists:
            return False

        if version == 0:
            session.execute(
                insert(StoredDocument).values(
                    path=path,
                    collection=parent_collection(path),
                    data=data,
                    version=1,
                    is_deleted=False,
                    updated_at=now,
                )
            )
            return True

        if data is None:
            values = {"data": {}, "is_deleted": True, "deleted_at": now}
        else:
            values = {"data": data, "is_deleted": False, "deleted_at": None}
        result = session.execute(
            update(StoredDocument)
            .where(StoredDocument.path == path, StoredDocument.version == version)
            .values(version=StoredDocument.version + 1, updated_at=now, **values)
        )
        if result.rowcount != 1:
            raise _ConflictingWrite(path)
        return True

    def _commit(self, txn: _SqlTransaction) -> List[str]:
        changed: List[str] = []
        now = datetime.now(timezone.utc)
        try:
            with Session(self._write_engine) as session, session.begin():
                for path, expected in txn.reads.items():
                    if self._current_version(session, path)[0] != expected:
                        raise _ConflictingWrite(path)

                for collection, expected_versions in txn.collection_reads.items():
                    rows = session.exec(
                        select(StoredDocument.path, StoredDocument.version).where(
                            StoredDocument.collection == collection,
                            StoredDocument.is_deleted == False,
                        )
                    ).all()
                    if {row_path: version for row_path, version in rows} != expected_versions:
                        raise _ConflictingWrite(collection)

                for path, data in txn.writes.items():
                    if self._write(session, path, data, now):
                        changed.append(path)
        except IntegrityError as e:
            # A concurrent writer created one of our new documents first
            raise _ConflictingWrite(str(e.params)) from e
        except SQLAlchemyError as e:
            raise StoreError("Transaction commit failed") from e
        return changed

    def run_transaction(self, fn: Callable[[Transaction], T], max_attempts: int | None = None) -> T:
        attempts = transaction_attempts(max_attempts)
        for attempt in range(1, attempts + 1):
            try:
                with Session(self._engine) as session:
                    txn = _SqlTransaction(session)
                    result = fn(txn)
            except SQLAlchemyError as e:
                raise StoreError("Transaction read failed") from e
            try:
                changed = self._commit(txn)
            except _ConflictingWrite as exc:
                logger.warning(f"Transaction attempt {attempt} hit a concurrent write on {exc}; retrying")
                continue
            self._after_commit(changed)
            return result
        raise TransactionContentionError(attempts)

    def _after_commit(self, changed: List[str]) -> None:
        if not changed:
            return
        if self._change_feed:
            self._change_feed.publish(changed)
        self.notify_changes(changed)
