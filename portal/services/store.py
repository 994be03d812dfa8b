# Document store abstraction and the in-process backend
import abc
import copy
import logging
import threading
import uuid
from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Optional, Tuple

from portal.errors import NotFound

logger = logging.getLogger(__name__)

Filter = Tuple[str, str, Any]
Unsubscribe = Callable[[], None]


class Write(NamedTuple):
    """One operation of an atomic batch: ``set``, ``update`` or ``delete``."""
    op: str
    collection: str
    doc_id: str
    data: Optional[Dict[str, Any]] = None


class DocumentStore(abc.ABC):
    """
    The read/write/query surface the services need from a document database.

    Documents are plain dicts; reads return them with their id under ``'id'``.
    Filters are ``(field, op, value)`` tuples using Firestore operator names.
    """

    @abc.abstractmethod
    def get_doc(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Returns one document or ``None``."""

    @abc.abstractmethod
    def get_docs(self, collection: str, filters: Optional[List[Filter]] = None) -> List[Dict[str, Any]]:
        """Returns every document matching all filters."""

    @abc.abstractmethod
    def add_doc(self, collection: str, data: Dict[str, Any]) -> str:
        """Creates a document with a generated id and returns the id."""

    @abc.abstractmethod
    def set_doc(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        """Creates or overwrites (or merges into) a document."""

    @abc.abstractmethod
    def update_doc(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Updates fields of an existing document; raises ``NotFound``."""

    @abc.abstractmethod
    def delete_doc(self, collection: str, doc_id: str) -> None:
        """Deletes a document; deleting a missing one is a no-op."""

    @abc.abstractmethod
    def array_union(self, collection: str, doc_id: str, field: str, values: List[Any],
                    extra: Optional[Dict[str, Any]] = None) -> None:
        """
        Atomically adds ``values`` to an array field, skipping values already
        present, and applies ``extra`` field updates in the same write.
        """

    @abc.abstractmethod
    def commit(self, writes: List[Write]) -> None:
        """Applies all writes atomically."""

    @abc.abstractmethod
    def new_id(self, collection: str) -> str:
        """Reserves a fresh document id for use in a batch."""

    @abc.abstractmethod
    def subscribe(self, collection: str, filters: Optional[List[Filter]],
                  callback: Callable[[List[Dict[str, Any]]], None]) -> Unsubscribe:
        """Calls ``callback`` with the matching documents now and on every change."""

    @abc.abstractmethod
    def upload_file(self, path: str, data: bytes, content_type: str) -> str:
        """Stores a blob and returns its public URL."""

    @abc.abstractmethod
    def delete_file(self, path: str) -> None:
        """Removes a blob; a missing blob is a no-op."""


def _matches(doc: Dict[str, Any], flt: Filter) -> bool:
    field, op, value = flt
    if field not in doc:
        return False
    current = doc[field]
    try:
        if op == "==":
            return current == value
        if op == "!=":
            return current != value
        if op == "<":
            return current < value
        if op == "<=":
            return current <= value
        if op == ">":
            return current > value
        if op == ">=":
            return current >= value
        if op == "in":
            return current in value
        if op == "not-in":
            return current not in value
        if op == "array_contains":
            return isinstance(current, list) and value in current
        if op == "array_contains_any":
            return isinstance(current, list) and any(v in current for v in value)
    except TypeError:
        return False
    raise ValueError(f"Operador de filtro não suportado: {op}")


class MemoryStore(DocumentStore):
    """
    Thread-safe in-process store with the same semantics as the Firestore backend.

    Used for local development and by the test suite.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._blobs: Dict[str, Tuple[bytes, str]] = {}
        self._subscribers: Dict[str, List[Tuple[Optional[List[Filter]], Callable]]] = {}
        logger.info("MemoryStore inicializado.")

    def _collection(self, collection: str) -> Dict[str, Dict[str, Any]]:
        return self._data.setdefault(collection, {})

    @staticmethod
    def _with_id(doc_id: str, doc: Dict[str, Any]) -> Dict[str, Any]:
        return copy.deepcopy(doc) | {"id": doc_id}

    def get_doc(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self._collection(collection).get(doc_id)
            return self._with_id(doc_id, doc) if doc is not None else None

    def get_docs(self, collection: str, filters: Optional[List[Filter]] = None) -> List[Dict[str, Any]]:
        with self._lock:
            return self._query(collection, filters)

    def _query(self, collection: str, filters: Optional[Iterable[Filter]]) -> List[Dict[str, Any]]:
        filters = list(filters or [])
        return [self._with_id(doc_id, doc) for doc_id, doc in self._collection(collection).items()
                if all(_matches(doc, f) for f in filters)]

    def add_doc(self, collection: str, data: Dict[str, Any]) -> str:
        doc_id = self.new_id(collection)
        self.set_doc(collection, doc_id, data)
        return doc_id

    def set_doc(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        self.commit([Write("set" if not merge else "merge", collection, doc_id, data)])

    def update_doc(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        self.commit([Write("update", collection, doc_id, data)])

    def delete_doc(self, collection: str, doc_id: str) -> None:
        self.commit([Write("delete", collection, doc_id)])

    def array_union(self, collection: str, doc_id: str, field: str, values: List[Any],
                    extra: Optional[Dict[str, Any]] = None) -> None:
        with self._lock:
            doc = self._collection(collection).get(doc_id)
            if doc is None:
                raise NotFound(collection, doc_id)
            items = doc.setdefault(field, [])
            for value in values:
                if value not in items:
                    items.append(copy.deepcopy(value))
            doc.update(copy.deepcopy(extra or {}))
        self._notify(collection)

    def commit(self, writes: List[Write]) -> None:
        with self._lock:
            for w in writes:
                if w.op == "update" and w.doc_id not in self._collection(w.collection):
                    raise NotFound(w.collection, w.doc_id)
            for w in writes:
                docs = self._collection(w.collection)
                if w.op == "set":
                    docs[w.doc_id] = copy.deepcopy(w.data or {})
                elif w.op in ("update", "merge"):
                    docs.setdefault(w.doc_id, {}).update(copy.deepcopy(w.data or {}))
                elif w.op == "delete":
                    docs.pop(w.doc_id, None)
                else:
                    raise ValueError(f"Operação desconhecida: {w.op}")
        for collection in {w.collection for w in writes}:
            self._notify(collection)

    def new_id(self, collection: str) -> str:
        return uuid.uuid4().hex[:20]

    def subscribe(self, collection: str, filters: Optional[List[Filter]],
                  callback: Callable[[List[Dict[str, Any]]], None]) -> Unsubscribe:
        entry = (filters, callback)
        with self._lock:
            self._subscribers.setdefault(collection, []).append(entry)
            snapshot = self._query(collection, filters)
        callback(snapshot)

        def unsubscribe():
            with self._lock:
                if entry in self._subscribers.get(collection, []):
                    self._subscribers[collection].remove(entry)

        return unsubscribe

    def _notify(self, collection: str) -> None:
        with self._lock:
            pending = [(cb, self._query(collection, flt)) for flt, cb in self._subscribers.get(collection, [])]
        for callback, docs in pending:
            try:
                callback(docs)
            except Exception as e:
                logger.error(f"Erro no listener de '{collection}': {e}", exc_info=True)

    def upload_file(self, path: str, data: bytes, content_type: str) -> str:
        with self._lock:
            self._blobs[path] = (bytes(data), content_type)
        return f"memory://{path}"

    def delete_file(self, path: str) -> None:
        with self._lock:
            self._blobs.pop(path, None)

    def has_file(self, path: str) -> bool:
        return path in self._blobs
