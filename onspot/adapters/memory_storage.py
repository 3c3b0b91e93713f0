"""
In-memory document store implementing the StorageGateway protocol.

Backs the CLI (loaded from and saved to a JSON data file) and the tests.
Each document has its own asyncio lock, so every primitive is atomic per
document while operations on different documents interleave freely.
"""

import asyncio
import contextlib
import copy
import json
import logging
import uuid
from collections import defaultdict
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Iterable, List, Mapping, Optional, Tuple

from ..domain.exceptions import ConflictError, NotFoundError, StorageUnavailableError
from ..domain.models import FIELD_STATUS, GeoPoint

logger = logging.getLogger(__name__)

Document = Dict[str, Any]

_MISSING = object()


def _get_path(document: Mapping[str, Any], path: str) -> Any:
    value: Any = document
    for part in path.split("."):
        if not isinstance(value, Mapping) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _set_path(document: Dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    target = document
    for part in parts[:-1]:
        child = target.get(part)
        if not isinstance(child, dict):
            child = {}
            target[part] = child
        target = child
    target[parts[-1]] = value


def _as_comparable(value: Any, bound: Any) -> Any:
    """Coerce a stored value to the type of the query bound."""
    if isinstance(bound, GeoPoint) and isinstance(value, Mapping):
        return GeoPoint.from_document(value)
    return value


class _DocumentLock:
    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


class InMemoryStorage:
    """
    Dictionary-backed document store.

    Data layout is ``{collection: {doc_id: document}}``, the same shape the
    JSON data file uses.
    """

    def __init__(self, data: Optional[Mapping[str, Mapping[str, Document]]] = None):
        self._collections: Dict[str, Dict[str, Document]] = defaultdict(dict)
        for collection, documents in (data or {}).items():
            self._collections[collection] = copy.deepcopy(dict(documents))
        self._locks: Dict[Tuple[str, str], _DocumentLock] = {}

    @classmethod
    def from_json_file(cls, data_file: Path) -> "InMemoryStorage":
        """
        Load a store from a JSON data file.

        Raises:
            FileNotFoundError: If the data file doesn't exist
            ValueError: If the file is not a mapping of collections
        """
        if not data_file.exists():
            raise FileNotFoundError(f"Data file not found: {data_file}")

        with open(data_file, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as exc:
                raise ValueError(f"Invalid JSON in {data_file}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Data file must contain a mapping of collections at the root level.")

        return cls(data)

    def save_json_file(self, data_file: Path) -> None:
        """Write all collections back to a JSON data file."""
        with open(data_file, "w", encoding="utf-8") as f:
            json.dump(self.snapshot(), f, indent=2, ensure_ascii=False)

    def snapshot(self) -> Dict[str, Dict[str, Document]]:
        """Deep copy of every collection."""
        return copy.deepcopy({name: docs for name, docs in self._collections.items() if docs})

    @contextlib.asynccontextmanager
    async def _locked(self, collection: str, doc_id: str) -> AsyncIterator[None]:
        """Hold the document's lock; it is dropped once no caller holds or awaits it."""
        key = (collection, doc_id)
        entry = self._locks.get(key)
        if entry is None:
            entry = self._locks[key] = _DocumentLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[key]

    def _require(self, collection: str, doc_id: str) -> Document:
        document = self._collections[collection].get(doc_id)
        if document is None:
            raise NotFoundError(f"{collection}/{doc_id} does not exist")
        return document

    def _list_field(self, document: Document, field: str) -> List[Dict[str, Any]]:
        current = _get_path(document, field)
        if current is _MISSING or current is None:
            current = []
            _set_path(document, field, current)
        if not isinstance(current, list):
            raise StorageUnavailableError(f"Field {field} is not a list")
        return current

    async def get_document(self, collection: str, doc_id: str) -> Document:
        async with self._locked(collection, doc_id):
            return copy.deepcopy(self._require(collection, doc_id))

    async def query_range(
        self, collection: str, field: str, lower: Any, upper: Any
    ) -> List[Tuple[str, Document]]:
        matches: List[Tuple[str, Document]] = []
        for doc_id, document in list(self._collections[collection].items()):
            raw = _get_path(document, field)
            if raw is _MISSING or raw is None:
                continue
            try:
                value = _as_comparable(raw, lower)
                if lower <= value <= upper:
                    matches.append((doc_id, copy.deepcopy(document)))
            except (TypeError, ValueError):
                logger.warning("Skipping %s/%s: field %s is not comparable", collection, doc_id, field)
        return matches

    async def update_fields(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        async with self._locked(collection, doc_id):
            document = self._require(collection, doc_id)
            for path, value in fields.items():
                _set_path(document, path, copy.deepcopy(value))

    async def create_document(
        self, collection: str, fields: Mapping[str, Any], doc_id: Optional[str] = None
    ) -> str:
        doc_id = doc_id or uuid.uuid4().hex[:20]
        async with self._locked(collection, doc_id):
            if doc_id in self._collections[collection]:
                raise ConflictError(f"{collection}/{doc_id} already exists")
            self._collections[collection][doc_id] = copy.deepcopy(dict(fields))
        return doc_id

    async def delete_document(self, collection: str, doc_id: str) -> None:
        async with self._locked(collection, doc_id):
            self._collections[collection].pop(doc_id, None)

    async def append_if_absent(
        self,
        collection: str,
        doc_id: str,
        field: str,
        entry: Mapping[str, Any],
        key: str,
        blocking_values: Iterable[Any] = (),
    ) -> bool:
        blocking = set(blocking_values)
        async with self._locked(collection, doc_id):
            items = self._list_field(self._require(collection, doc_id), field)
            for index, item in enumerate(items):
                if item.get(key) != entry.get(key):
                    continue
                if item.get(FIELD_STATUS) in blocking:
                    return False
                items[index] = dict(entry)
                return True
            items.append(dict(entry))
            return True

    async def replace_matching(
        self,
        collection: str,
        doc_id: str,
        field: str,
        key: str,
        key_value: Any,
        entry: Mapping[str, Any],
        append_missing: bool = False,
    ) -> bool:
        async with self._locked(collection, doc_id):
            items = self._list_field(self._require(collection, doc_id), field)
            changed = False
            for index, item in enumerate(items):
                if item.get(key) == key_value:
                    items[index] = dict(entry)
                    changed = True
            if not changed and append_missing:
                items.append(dict(entry))
                changed = True
            return changed

    async def remove_matching(
        self, collection: str, doc_id: str, field: str, key: str, key_value: Any
    ) -> int:
        async with self._locked(collection, doc_id):
            items = self._list_field(self._require(collection, doc_id), field)
            kept = [item for item in items if item.get(key) != key_value]
            removed = len(items) - len(kept)
            items[:] = kept
            return removed

    async def compare_and_set(
        self, collection: str, doc_id: str, field: str, expected: Any, value: Any
    ) -> bool:
        async with self._locked(collection, doc_id):
            document = self._require(collection, doc_id)
            current = _get_path(document, field)
            if current is _MISSING or current != expected:
                return False
            _set_path(document, field, copy.deepcopy(value))
            return True

    async def raise_to_max(self, collection: str, doc_id: str, field: str, value: float) -> float:
        async with self._locked(collection, doc_id):
            document = self._collections[collection].setdefault(doc_id, {})
            current = _get_path(document, field)
            if current is _MISSING or current is None or current < value:
                _set_path(document, field, value)
                return value
            return current
