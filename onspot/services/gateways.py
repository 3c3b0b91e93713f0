"""
Protocols for the external collaborators the services depend on.

Services only see these protocols, so the in-memory adapters used by the
CLI and the tests can stand in for a real document store or push service.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple

Document = Dict[str, Any]


@dataclass(frozen=True)
class Notification:
    """Push message shown to the other party of a partnership."""
    title: str
    body: str
    icon: Optional[str] = None

    def to_payload(self) -> Dict[str, str]:
        payload = {"title": self.title, "body": self.body}
        if self.icon:
            payload["icon"] = self.icon
        return payload


class StorageGateway(Protocol):
    """
    Document store operations needed by the core.

    Every method is atomic per document. Partner lists are only ever changed
    through the list primitives, never by writing back a previously read
    list. Failures of the store surface as StorageUnavailableError.
    """

    async def get_document(self, collection: str, doc_id: str) -> Document:
        """Return a copy of the document or raise NotFoundError."""

    async def query_range(
        self, collection: str, field: str, lower: Any, upper: Any
    ) -> List[Tuple[str, Document]]:
        """Return (id, document) pairs with ``lower <= field <= upper``."""

    async def update_fields(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        """Partially update a document; dotted keys address nested fields."""

    async def create_document(
        self, collection: str, fields: Mapping[str, Any], doc_id: Optional[str] = None
    ) -> str:
        """Insert a document, raising ConflictError if ``doc_id`` is taken."""

    async def delete_document(self, collection: str, doc_id: str) -> None:
        """Delete a document if it exists."""

    async def append_if_absent(
        self,
        collection: str,
        doc_id: str,
        field: str,
        entry: Mapping[str, Any],
        key: str,
        blocking_values: Iterable[Any] = (),
    ) -> bool:
        """
        Append ``entry`` unless an element with the same ``key`` exists.

        An existing element whose ``status`` is not in ``blocking_values`` is
        replaced instead. Returns False when a blocking element was found.
        """

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
        """Replace elements matching ``key_value`` in place; True if any changed."""

    async def remove_matching(
        self, collection: str, doc_id: str, field: str, key: str, key_value: Any
    ) -> int:
        """Remove elements matching ``key_value``; returns how many were removed."""

    async def compare_and_set(
        self, collection: str, doc_id: str, field: str, expected: Any, value: Any
    ) -> bool:
        """Set ``field`` to ``value`` only if it currently equals ``expected``."""

    async def raise_to_max(self, collection: str, doc_id: str, field: str, value: float) -> float:
        """Set a numeric field to ``max(current, value)``; returns the stored value."""


class NotificationGateway(Protocol):
    """Best-effort push delivery addressed by account reference (osb::/osd::)."""

    async def notify(self, target_account_ref: str, notification: Notification) -> None:
        """Deliver a notification or raise NotificationUnavailableError."""
