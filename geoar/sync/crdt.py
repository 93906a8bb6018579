"""
Replicated document for shared ephemeral scene content, built on pycrdt (Yjs).

The content is a map keyed by spatial cell id. Each value is a list of
content events; a cell can also be cleared.

Document layout (pycrdt root types):
    meta     Map   {"schema": GENESIS_ID}, written once by the genesis update
    cells    Map   cell id -> True for every cell ever written or cleared
    entries  Array {"cell": ..., "event": {...}} records in document order

Entries of all cells live in one root array tagged with their cell. A nested
list per map key would be created independently by peers writing the same
cell concurrently, and the map keeps only one of them.

Replication model:
    - Every document starts by applying the same genesis update, produced by
      a fixed client id, so documents created independently by different
      peers share one common ancestor.
    - Merging is the Yjs update merge: commutative, associative, idempotent,
      and the array order is the same on every replica.
    - A clear deletes the entries it observed when it was made. Appends made
      concurrently with a clear survive it.

Wire format (JSON compatible):
    {"genesis": "...", "doc_id": "...", "update": "<base64 Yjs update>"}
"""

import base64
import binascii
import uuid
from typing import Any, Dict, List, Optional, Tuple
from dataclasses import dataclass, field
import logging

from pycrdt import Array, Doc, Map

from ..errors import InvalidInputError

logger = logging.getLogger(__name__)

GENESIS_ID = "geoar-genesis-v1"
GENESIS_CLIENT_ID = 1

ROOT_META = "meta"
ROOT_CELLS = "cells"
ROOT_ENTRIES = "entries"


def select_canonical_id(local_id: str, remote_id: str) -> str:
    """
    Pick the document identity both peers keep publishing under.

    The comparison is a fixed total order on identifier strings, so two peers
    holding the pair in either order pick the same identity.
    """
    return local_id if local_id > remote_id else remote_id


def _build_genesis_update() -> bytes:
    genesis = Doc(client_id=GENESIS_CLIENT_ID)
    genesis[ROOT_META] = Map({'schema': GENESIS_ID})
    return genesis.get_update()


GENESIS_UPDATE = _build_genesis_update()


def _encode(data: bytes) -> str:
    return base64.b64encode(data).decode('ascii')


def _decode(data: Any, what: str) -> bytes:
    if not isinstance(data, str):
        raise InvalidInputError(f"{what} must be a base64 string, got {type(data).__name__}")
    try:
        return base64.b64decode(data.encode('ascii'), validate=True)
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise InvalidInputError(f"{what} is not valid base64") from exc


@dataclass(frozen=True)
class ContentEvent:
    """
    Application-defined record, e.g. "object created" with its GeoPose.

    Attributes:
        kind: Application event type
        payload: JSON-compatible event data
        event_id: Unique identifier used by readers to skip seen events
    """
    kind: str
    payload: Dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        return {'event_id': self.event_id, 'kind': self.kind, 'payload': self.payload}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContentEvent":
        if not isinstance(data, dict):
            raise InvalidInputError(f"Content event must be a mapping: {data!r}")
        kind = data.get('kind')
        event_id = data.get('event_id')
        payload = data.get('payload') or {}
        if not isinstance(kind, str) or not kind:
            raise InvalidInputError(f"Content event without a kind: {data!r}")
        if not isinstance(event_id, str) or not event_id:
            raise InvalidInputError(f"Content event without an event_id: {data!r}")
        if not isinstance(payload, dict):
            raise InvalidInputError(f"Content event payload must be a mapping: {data!r}")
        return cls(kind=kind, payload=dict(payload), event_id=event_id)


def _decode_entry(entry: Any) -> Tuple[str, ContentEvent]:
    if not isinstance(entry, dict):
        raise InvalidInputError(f"Malformed entry: {entry!r}")
    cell = entry.get('cell')
    if not isinstance(cell, str) or not cell:
        raise InvalidInputError(f"Entry without a cell id: {entry!r}")
    if entry.get('event') is None:
        raise InvalidInputError(f"Entry without an event: {entry!r}")
    return cell, ContentEvent.from_dict(entry['event'])


class SyncDocument:
    """
    Replicated map of spatial cell id -> list of ContentEvent.

    Example usage:
        doc = SyncDocument(actor_id="peer-a")
        doc.append("882a100d2bfffff", ContentEvent("object_created", {...}))
        other.merge(doc)
    """

    def __init__(self, doc_id: Optional[str] = None, actor_id: Optional[str] = None):
        """
        Create a document starting from the genesis state.

        Args:
            doc_id: Document identity; a random UUID when omitted
            actor_id: Identity of the local replica making changes
        """
        self.doc_id = doc_id or str(uuid.uuid4())
        self.actor_id = actor_id or str(uuid.uuid4())
        self._doc = Doc()
        self._doc.apply_update(GENESIS_UPDATE)
        self._cells = self._doc.get(ROOT_CELLS, type=Map)
        self._entries = self._doc.get(ROOT_ENTRIES, type=Array)

    def __len__(self) -> int:
        return len(self._entries)

    def append(self, cell: str, event: ContentEvent) -> ContentEvent:
        """Append a content event to a cell's list."""
        if not isinstance(cell, str) or not cell:
            raise InvalidInputError("Cell id must be a non-empty string")
        if not isinstance(event, ContentEvent):
            raise InvalidInputError(f"Expected a ContentEvent, got {type(event).__name__}")
        with self._doc.transaction():
            self._cells[cell] = True
            self._entries.append({'cell': cell, 'event': event.to_dict()})
        return event

    def clear(self, cell: str) -> int:
        """
        Remove every entry of a cell that this replica currently sees.

        Returns:
            Number of entries removed
        """
        if not isinstance(cell, str) or not cell:
            raise InvalidInputError("Cell id must be a non-empty string")
        with self._doc.transaction():
            self._cells[cell] = True
            indices = [
                i for i, entry in enumerate(self._entries.to_py() or [])
                if isinstance(entry, dict) and entry.get('cell') == cell
            ]
            # Delete from the back so earlier indices stay valid
            for i in reversed(indices):
                del self._entries[i]
        return len(indices)

    @staticmethod
    def _materialize(cells: Map, entries: Array) -> Dict[str, List[ContentEvent]]:
        data: Dict[str, List[ContentEvent]] = {cell: [] for cell in sorted(cells.keys())}
        for entry in entries.to_py() or []:
            cell, event = _decode_entry(entry)
            data.setdefault(cell, []).append(event)
        return data

    @property
    def data(self) -> Dict[str, List[ContentEvent]]:
        """Materialized root map. Cells that were never written are absent."""
        return self._materialize(self._cells, self._entries)

    def get(self, cell: str) -> List[ContentEvent]:
        return self.data.get(cell, [])

    def cells(self) -> List[str]:
        return sorted(self.data.keys())

    def snapshot(self) -> Dict[str, List[Dict[str, Any]]]:
        """Plain-dict view of the content, for comparison and display."""
        return {
            cell: [event.to_dict() for event in events]
            for cell, events in self.data.items()
        }

    def state_vector(self) -> str:
        """Encoded Yjs state vector of this replica."""
        return _encode(self._doc.get_state())

    def get_update(self, state_vector: Optional[str] = None) -> Dict[str, Any]:
        """
        Encode what a replica with the given state vector lacks.

        Deletions are always included, since a state vector does not cover them.

        Args:
            state_vector: Remote state vector from state_vector(); None encodes
                the whole document

        Returns:
            JSON-compatible update dict
        """
        if state_vector is None:
            raw = self._doc.get_update()
        else:
            state = _decode(state_vector, "State vector")
            try:
                raw = self._doc.get_update(state)
            except Exception as exc:
                raise InvalidInputError(f"Undecodable state vector: {exc}") from exc
        return {'genesis': GENESIS_ID, 'doc_id': self.doc_id, 'update': _encode(raw)}

    def _validated(self, raw: bytes) -> None:
        # Apply to a scratch replica first so a bad update never reaches this one
        scratch = Doc()
        scratch.apply_update(self._doc.get_update())
        try:
            scratch.apply_update(raw)
        except Exception as exc:
            raise InvalidInputError(f"Undecodable update: {exc}") from exc
        self._materialize(
            scratch.get(ROOT_CELLS, type=Map), scratch.get(ROOT_ENTRIES, type=Array)
        )

    def apply_update(self, update: Dict[str, Any]) -> bool:
        """
        Merge an encoded update into this document.

        Args:
            update: Dict produced by get_update() on any replica

        Returns:
            True if the visible content changed

        Raises:
            InvalidInputError: if the update does not descend from the shared
                genesis state or is malformed; the document is left as is
        """
        if not isinstance(update, dict) or update.get('genesis') != GENESIS_ID:
            raise InvalidInputError("Update does not share the genesis document state")
        raw = _decode(update.get('update'), "Update")
        self._validated(raw)

        before = self.snapshot()
        self._doc.apply_update(raw)
        changed = self.snapshot() != before
        logger.debug(f"Applied update to {self.doc_id}: content {'changed' if changed else 'unchanged'}")
        return changed

    def merge(self, other: "SyncDocument") -> bool:
        """Merge another replica into this one. Identity is left unchanged."""
        return self.apply_update(other.get_update(self.state_vector()))

    def to_dict(self) -> Dict[str, Any]:
        return self.get_update(None)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], actor_id: Optional[str] = None) -> "SyncDocument":
        """Rebuild a replica from a full update, keeping its document identity."""
        doc = cls(doc_id=data.get('doc_id') if isinstance(data, dict) else None, actor_id=actor_id)
        doc.apply_update(data)
        return doc
