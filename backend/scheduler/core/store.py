"""
Document store contract used by the scheduling core.

The real backend (authentication, snapshots, transactional writes) lives
outside this package.  The core only relies on the operations declared by
``DocumentStore``; ``create_store`` picks an implementation once at startup.
"""

from __future__ import annotations

import copy
import logging
import threading
from abc import ABC, abstractmethod
from itertools import count
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, TypeVar

from scheduler.core.config import MAX_BATCH_OPERATIONS, Settings, settings
from scheduler.core.errors import (
    InvalidInputError,
    StoreUnavailableError,
    TransactionContentionError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

Document = Dict[str, Any]
Where = Optional[Tuple[str, Any]]


def transaction_attempts(max_attempts: int | None = None) -> int:
    attempts = settings.STORE_TRANSACTION_MAX_ATTEMPTS if max_attempts is None else max_attempts
    if attempts < 1:
        raise InvalidInputError("A transaction needs at least one attempt")
    return attempts


DocumentCallback = Callable[[str, Optional[Document]], None]
CollectionCallback = Callable[[str, Dict[str, Document]], None]


def split_path(path: str) -> Tuple[str, str]:
    """Split ``apps/c1/users/u1`` into (``apps/c1/users``, ``u1``)."""
    parts = [part for part in path.split("/") if part]
    if not parts or len(parts) % 2 != 0:
        raise InvalidInputError(f"Not a document path: {path!r}")
    return "/".join(parts[:-1]), parts[-1]


def parent_collection(path: str) -> str:
    return split_path(path)[0]


def matches(data: Document, where: Where) -> bool:
    if where is None:
        return True
    field, value = where
    return data.get(field) == value


def merged(existing: Optional[Document], data: Document, merge: bool) -> Document:
    if merge and existing:
        result = copy.deepcopy(existing)
        result.update(copy.deepcopy(data))
        return result
    return copy.deepcopy(data)


class Subscription:
    """Handle returned by the subscribe calls."""

    def __init__(self, cancel: Callable[[], None]):
        self._cancel = cancel
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._cancel()


class Transaction(ABC):
    """Reads and buffered writes of one transactional attempt."""

    @abstractmethod
    def get(self, path: str) -> Optional[Document]: ...

    @abstractmethod
    def list_documents(self, collection: str, where: Where = None) -> Dict[str, Document]: ...

    @abstractmethod
    def set(self, path: str, data: Document, merge: bool = False) -> None: ...

    @abstractmethod
    def delete(self, path: str) -> None: ...


class DocumentStore(ABC):
    """Operations the core needs from the external document store."""

    is_configured: bool = True

    async def open(self) -> None:
        """Start background resources such as change feeds."""

    async def close(self) -> None:
        """Release what ``open`` started."""

    @abstractmethod
    def get(self, path: str) -> Optional[Document]: ...

    @abstractmethod
    def list_documents(self, collection: str, where: Where = None) -> Dict[str, Document]: ...

    @abstractmethod
    def set(self, path: str, data: Document, merge: bool = False) -> None: ...

    @abstractmethod
    def delete(self, path: str) -> None: ...

    @abstractmethod
    def batch_delete(self, paths: List[str]) -> None:
        """Delete ``paths`` in one atomic batch. Missing documents are ignored."""

    @abstractmethod
    def run_transaction(self, fn: Callable[[Transaction], T], max_attempts: int | None = None) -> T:
        """
        Run ``fn`` atomically, retrying on conflicting concurrent writes.

        ``fn`` may be invoked more than once. Exceptions raised by ``fn`` abort
        the transaction without a retry.
        """

    @abstractmethod
    def subscribe_document(self, path: str, callback: DocumentCallback) -> Subscription: ...

    @abstractmethod
    def subscribe_collection(self, collection: str, callback: CollectionCallback) -> Subscription: ...


def check_batch_size(paths: List[str]) -> None:
    if len(paths) > MAX_BATCH_OPERATIONS:
        raise InvalidInputError(
            f"Batch of {len(paths)} operations exceeds the limit of {MAX_BATCH_OPERATIONS}"
        )


class ListeningDocumentStore(DocumentStore):
    """Keeps snapshot listeners and fans out change notifications."""

    def __init__(self) -> None:
        self._listener_lock = threading.Lock()
        self._listener_ids = count(1)
        self._document_listeners: Dict[str, Dict[int, DocumentCallback]] = {}
        self._collection_listeners: Dict[str, Dict[int, CollectionCallback]] = {}

    def subscribe_document(self, path: str, callback: DocumentCallback) -> Subscription:
        listener_id = next(self._listener_ids)
        with self._listener_lock:
            self._document_listeners.setdefault(path, {})[listener_id] = callback
        callback(path, self.get(path))
        return Subscription(lambda: self._remove(self._document_listeners, path, listener_id))

    def subscribe_collection(self, collection: str, callback: CollectionCallback) -> Subscription:
        listener_id = next(self._listener_ids)
        with self._listener_lock:
            self._collection_listeners.setdefault(collection, {})[listener_id] = callback
        callback(collection, self.list_documents(collection))
        return Subscription(lambda: self._remove(self._collection_listeners, collection, listener_id))

    def _remove(self, registry: Dict[str, Dict[int, Any]], key: str, listener_id: int) -> None:
        with self._listener_lock:
            listeners = registry.get(key)
            if listeners is None:
                return
            listeners.pop(listener_id, None)
            if not listeners:
                del registry[key]

    def notify_changes(self, paths: Iterable[str]) -> None:
        """Push fresh snapshots to every listener watching one of ``paths``."""
        changed = list(dict.fromkeys(paths))
        collections = list(dict.fromkeys(parent_collection(path) for path in changed))

        with self._listener_lock:
            document_targets = [
                (path, list(self._document_listeners.get(path, {}).values())) for path in changed
            ]
            collection_targets = [
                (collection, list(self._collection_listeners.get(collection, {}).values()))
                for collection in collections
            ]

        for path, callbacks in document_targets:
            if callbacks:
                data = self.get(path)
                for callback in callbacks:
                    callback(path, copy.deepcopy(data))

        for collection, callbacks in collection_targets:
            if callbacks:
                documents = self.list_documents(collection)
                for callback in callbacks:
                    callback(collection, copy.deepcopy(documents))


class _ConflictingWrite(Exception):
    pass


class _MemoryTransaction(Transaction):
    def __init__(self, store: "MemoryDocumentStore"):
        self._store = store
        self.reads: Dict[str, int] = {}
        self.collection_reads: Dict[str, int] = {}
        self.writes: Dict[str, Optional[Document]] = {}

    def get(self, path: str) -> Optional[Document]:
        if path in self.writes:
            return copy.deepcopy(self.writes[path])
        data, version = self._store._read(path)
        self.reads.setdefault(path, version)
        return data

    def list_documents(self, collection: str, where: Where = None) -> Dict[str, Document]:
        documents, version = self._store._read_collection(collection)
        self.collection_reads.setdefault(collection, version)
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


class MemoryDocumentStore(ListeningDocumentStore):
    """Thread-safe in-process store with per-document versions."""

    def __init__(self) -> None:
        super().__init__()
        self._lock = threading.RLock()
        self._documents: Dict[str, Document] = {}
        self._versions: Dict[str, int] = {}
        self._collection_versions: Dict[str, int] = {}

    def _read(self, path: str) -> Tuple[Optional[Document], int]:
        with self._lock:
            return copy.deepcopy(self._documents.get(path)), self._versions.get(path, 0)

    def _read_collection(self, collection: str) -> Tuple[Dict[str, Document], int]:
        with self._lock:
            documents = {
                split_path(path)[1]: copy.deepcopy(data)
                for path, data in self._documents.items()
                if parent_collection(path) == collection
            }
            return documents, self._collection_versions.get(collection, 0)

    def _apply(self, writes: Dict[str, Optional[Document]]) -> List[str]:
        changed = []
        for path, data in writes.items():
            if data is None and path not in self._documents:
                continue
            if data is None:
                del self._documents[path]
            else:
                self._documents[path] = copy.deepcopy(data)
            self._versions[path] = self._versions.get(path, 0) + 1
            collection = parent_collection(path)
            self._collection_versions[collection] = self._collection_versions.get(collection, 0) + 1
            changed.append(path)
        return changed

    def get(self, path: str) -> Optional[Document]:
        return self._read(path)[0]

    def list_documents(self, collection: str, where: Where = None) -> Dict[str, Document]:
        documents, _ = self._read_collection(collection)
        return {doc_id: data for doc_id, data in documents.items() if matches(data, where)}

    def set(self, path: str, data: Document, merge: bool = False) -> None:
        split_path(path)
        with self._lock:
            changed = self._apply({path: merged(self._documents.get(path), data, merge)})
        logger.debug(f"Wrote document {path} (merge={merge})")
        self.notify_changes(changed)

    def delete(self, path: str) -> None:
        split_path(path)
        with self._lock:
            changed = self._apply({path: None})
        self.notify_changes(changed)

    def batch_delete(self, paths: List[str]) -> None:
        check_batch_size(paths)
        for path in paths:
            split_path(path)
        with self._lock:
            changed = self._apply({path: None for path in paths})
        logger.debug(f"Batch deleted {len(changed)} of {len(paths)} documents")
        self.notify_changes(changed)

    def _commit(self, txn: _MemoryTransaction) -> List[str]:
        with self._lock:
            for path, version in txn.reads.items():
                if self._versions.get(path, 0) != version:
                    raise _ConflictingWrite(path)
            for collection, version in txn.collection_reads.items():
                if self._collection_versions.get(collection, 0) != version:
                    raise _ConflictingWrite(collection)
            return self._apply(txn.writes)

    def run_transaction(self, fn: Callable[[Transaction], T], max_attempts: int | None = None) -> T:
        attempts = transaction_attempts(max_attempts)
        for attempt in range(1, attempts + 1):
            txn = _MemoryTransaction(self)
            result = fn(txn)
            try:
                changed = self._commit(txn)
            except _ConflictingWrite as exc:
                logger.warning(f"Transaction attempt {attempt} hit a concurrent write on {exc}; retrying")
                continue
            self.notify_changes(changed)
            return result
        raise TransactionContentionError(attempts)


class NullDocumentStore(DocumentStore):
    """Stand-in used when no store is configured: empty reads, refused writes."""

    is_configured = False

    def get(self, path: str) -> Optional[Document]:
        return None

    def list_documents(self, collection: str, where: Where = None) -> Dict[str, Document]:
        return {}

    def _unavailable(self) -> StoreUnavailableError:
        return StoreUnavailableError("Document store is not configured")

    def set(self, path: str, data: Document, merge: bool = False) -> None:
        raise self._unavailable()

    def delete(self, path: str) -> None:
        raise self._unavailable()

    def batch_delete(self, paths: List[str]) -> None:
        raise self._unavailable()

    def run_transaction(self, fn: Callable[[Transaction], T], max_attempts: int | None = None) -> T:
        raise self._unavailable()

    def subscribe_document(self, path: str, callback: DocumentCallback) -> Subscription:
        callback(path, None)
        return Subscription(lambda: None)

    def subscribe_collection(self, collection: str, callback: CollectionCallback) -> Subscription:
        callback(collection, {})
        return Subscription(lambda: None)


def create_store(config: Settings | None = None) -> DocumentStore:
    """Pick the store implementation for this process."""
    config = config or settings
    backend = config.STORE_BACKEND

    if backend == "none":
        logger.warning("No document store configured; writes will be refused")
        return NullDocumentStore()

    if backend == "sql":
        from scheduler.core.sql_store import RedisChangeFeed, SqlDocumentStore
        from scheduler.db import build_engine, init_db

        engine = build_engine(config.DATABASE_URL)
        init_db(engine)
        feed = None
        if config.STORE_CHANGE_FEED_ENABLED:
            feed = RedisChangeFeed(config.REDIS_URL, config.STORE_CHANGE_CHANNEL)
        logger.info(f"Using SQL document store: {config.DATABASE_URL}")
        return SqlDocumentStore(engine, change_feed=feed)

    logger.info("Using in-memory document store")
    return MemoryDocumentStore()
