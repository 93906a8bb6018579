"""
Peer protocol keeping one shared SyncDocument per connected group.

Messages (JSON dicts):
    announce  {"type": "announce", "doc_id", "state_vector", "update"}
              Full document, sent to each newly connected peer and in reply
              to fetch. The receiver merges it and always answers with an
              update carrying what the announcer lacks.
    fetch     {"type": "fetch"}
              Asks a peer to announce its document.
    update    {"type": "update", "doc_id", "update"}
              Delta of one local change (broadcast) or reply to an announce.
              Never answered, unless the sender publishes under a different
              document id or the receiver just adopted a partial document.

Several documents may exist transiently, e.g. two peers that started writing
before meeting. On every exchange both documents are merged and both peers
adopt select_canonical_id(local, remote) as identity, so a connected group
converges on one document. The switchover is done under the peer lock, after
the merge has settled; local writes wait on a readiness event meanwhile,
which covers the time the new identity takes to be persisted.
"""

import asyncio
import os
from typing import Any, Callable, Dict, List, Optional, Set
import yaml
import logging

from ..errors import InvalidInputError, SyncTimeoutError
from ..poses import GeoPose
from .cells import DEFAULT_CELL_RESOLUTION, spatial_cell_id
from .crdt import ContentEvent, SyncDocument, select_canonical_id
from .transport import Transport

logger = logging.getLogger(__name__)

DEFAULT_READY_TIMEOUT = 4.0

MSG_ANNOUNCE = "announce"
MSG_FETCH = "fetch"
MSG_UPDATE = "update"

Listener = Callable[[SyncDocument], None]


class SyncPeer:
    """
    One participant of a shared session.

    Example usage:
        peer = SyncPeer(LocalTransport(hub, "peer-a"))
        await peer.connect()
        unsubscribe = peer.subscribe(lambda doc: print(doc.snapshot()))
        await peer.send(cell_id, ContentEvent("object_created", {...}))
        await peer.disconnect()
    """

    def __init__(
        self,
        transport: Transport,
        ready_timeout: float = DEFAULT_READY_TIMEOUT,
        identity_file: Optional[str] = None,
        cell_resolution: int = DEFAULT_CELL_RESOLUTION,
    ):
        """
        Args:
            transport: Connection to the peer group
            ready_timeout: Seconds a local write waits for a pending merge
            identity_file: Optional YAML file remembering the last document id
            cell_resolution: H3 resolution used by send_at()
        """
        self.transport = transport
        self.peer_id = transport.peer_id
        self.ready_timeout = ready_timeout
        self.identity_file = identity_file
        self.cell_resolution = cell_resolution

        self.document: Optional[SyncDocument] = None
        self._lock = asyncio.Lock()
        # Set whenever no remote merge is in progress
        self._ready = asyncio.Event()
        self._ready.set()
        self._listeners: List[Listener] = []
        self._pending_merges = 0

        self._attach()

    @classmethod
    def from_settings(cls, transport: Transport, settings) -> "SyncPeer":
        """Build a peer from a config.SyncSettings."""
        return cls(
            transport,
            ready_timeout=settings.ready_timeout,
            identity_file=settings.identity_file,
            cell_resolution=settings.cell_resolution,
        )

    def _attach(self) -> None:
        self.transport.set_message_handler(self.handle_message)
        self.transport.set_peer_handler(self._on_peer_connected)

    @property
    def document_id(self) -> Optional[str]:
        return self.document.doc_id if self.document is not None else None

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    # Identity persistence

    def _load_identity(self) -> Optional[str]:
        if not self.identity_file or not os.path.exists(self.identity_file):
            return None
        try:
            with open(self.identity_file, 'r') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Could not read document identity from {self.identity_file}: {e}")
            return None
        doc_id = data.get('document_id') if isinstance(data, dict) else None
        return str(doc_id) if doc_id else None

    def _save_identity(self, doc_id: str) -> None:
        if not self.identity_file:
            return
        try:
            with open(self.identity_file, 'w') as f:
                yaml.dump({'document_id': doc_id}, f, default_flow_style=False)
        except OSError as e:
            logger.warning(f"Could not save document identity to {self.identity_file}: {e}")

    # Lifecycle

    async def connect(self) -> None:
        """
        Join the peer group.

        The local document, if any, is announced to every peer the transport
        reports as connected.
        """
        self._attach()
        await self.transport.connect()
        logger.info(f"Peer {self.peer_id} connected")

    async def disconnect(self) -> None:
        """Tear down the transport and drop all listeners. Local state is kept."""
        self._listeners.clear()
        self.transport.set_message_handler(None)
        self.transport.set_peer_handler(None)
        await self.transport.disconnect()
        logger.info(f"Peer {self.peer_id} disconnected")

    def subscribe(self, callback: Listener) -> Callable[[], None]:
        """
        Call callback(document) after every local or remote change.

        Returns:
            Function removing the subscription
        """
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self.document)

    # Local writes

    def _ensure_document(self) -> SyncDocument:
        if self.document is None:
            self.document = SyncDocument(doc_id=self._load_identity(), actor_id=self.peer_id)
            self._save_identity(self.document.doc_id)
            logger.info(f"Created document {self.document.doc_id}")
        return self.document

    async def wait_until_ready(self, timeout: Optional[float] = None) -> None:
        """
        Wait until no remote merge is in progress.

        A merge that switches the document identity holds the peer lock while
        the new identity is written to the identity file.

        Raises:
            SyncTimeoutError: if the document is not ready within the timeout
        """
        timeout = self.ready_timeout if timeout is None else timeout
        try:
            await asyncio.wait_for(self._ready.wait(), timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Document not ready after {timeout}s")
            raise SyncTimeoutError(f"Document not ready after {timeout}s") from None

    async def _write(self, change: Callable[[SyncDocument], Any]) -> Any:
        await self.wait_until_ready()
        async with self._lock:
            # Created and changed without yielding, so no empty document is announced
            document = self._ensure_document()
            before = document.state_vector()
            result = change(document)
            update = document.get_update(before)
            doc_id = document.doc_id
        await self._send({'type': MSG_UPDATE, 'doc_id': doc_id, 'update': update})
        self._notify()
        return result

    async def send(self, cell_id: str, event: ContentEvent) -> ContentEvent:
        """
        Append an event to a cell and broadcast the change.

        Creates the document on first use.

        Raises:
            SyncTimeoutError: if a pending merge does not settle in time; the
                document is not modified
        """
        await self._write(lambda doc: doc.append(cell_id, event))
        logger.debug(f"Appended {event.kind} event {event.event_id} to cell {cell_id}")
        return event

    async def send_at(self, geo_pose: GeoPose, event: ContentEvent) -> ContentEvent:
        """Append an event to the cell containing a GeoPose."""
        pos = geo_pose.position
        return await self.send(spatial_cell_id(pos.lat, pos.lon, self.cell_resolution), event)

    async def clear(self, cell_id: str) -> int:
        """
        Clear a cell and broadcast the change. Same readiness rule as send().

        Returns:
            Number of entries removed
        """
        removed = await self._write(lambda doc: doc.clear(cell_id))
        logger.debug(f"Cleared cell {cell_id} ({removed} entries)")
        return removed

    # Remote messages

    async def _send(self, message: Dict[str, Any], target: Optional[str] = None) -> None:
        if not self.transport.is_connected:
            return
        await self.transport.send(message, target)

    async def _announce(self, target: Optional[str] = None) -> None:
        doc = self.document
        await self._send({
            'type': MSG_ANNOUNCE,
            'doc_id': doc.doc_id,
            'state_vector': doc.state_vector(),
            'update': doc.get_update(),
        }, target)

    async def _on_peer_connected(self, peer_id: str) -> None:
        logger.debug(f"Peer {peer_id} connected to {self.peer_id}")
        if self.document is not None:
            await self._announce(peer_id)

    async def request_document(self, peer_id: str) -> None:
        """Ask a peer to announce its document."""
        await self._send({'type': MSG_FETCH}, peer_id)

    async def handle_message(self, sender: str, message: Dict[str, Any]) -> None:
        """Dispatch one message received from the transport."""
        kind = message.get('type') if isinstance(message, dict) else None
        try:
            if kind == MSG_FETCH:
                if self.document is not None:
                    await self._announce(sender)
            elif kind in (MSG_ANNOUNCE, MSG_UPDATE):
                await self._merge_remote(sender, message)
            else:
                logger.warning(f"Ignoring message of unknown type {kind!r} from {sender}")
        except (InvalidInputError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring malformed {kind} message from {sender}: {e}")

    async def _merge_remote(self, sender: str, message: Dict[str, Any]) -> None:
        kind = message['type']
        remote_id = str(message['doc_id'])
        update = message['update']

        self._pending_merges += 1
        self._ready.clear()
        try:
            async with self._lock:
                previous_id = self.document_id
                adopted = self.document is None
                if adopted:
                    self.document = SyncDocument.from_dict(
                        {**update, 'doc_id': remote_id}, actor_id=self.peer_id
                    )
                    changed = True
                    logger.info(f"Adopted document {remote_id} from {sender}")
                else:
                    changed = self.document.apply_update(update)
                    canonical = select_canonical_id(previous_id, remote_id)
                    if canonical != previous_id:
                        logger.info(
                            f"Switching document {previous_id} -> {canonical} "
                            f"after merge with {sender}"
                        )
                        self.document.doc_id = canonical
                        changed = True
                doc_id = self.document.doc_id
                if self.identity_file and doc_id != previous_id:
                    # Persisted off the event loop; local writes wait for it
                    await asyncio.to_thread(self._save_identity, doc_id)
        finally:
            self._pending_merges -= 1
            if self._pending_merges == 0:
                self._ready.set()

        if kind == MSG_ANNOUNCE:
            await self._send({
                'type': MSG_UPDATE,
                'doc_id': doc_id,
                'update': self.document.get_update(message.get('state_vector')),
            }, sender)
        elif remote_id != doc_id:
            await self._announce(sender)
        elif adopted:
            # A broadcast delta may lack earlier changes of the sender
            await self.request_document(sender)

        if changed:
            self._notify()


class ContentReader:
    """
    Read-side deduplication of content events.

    A merge can deliver an event that was already seen, e.g. after an
    identity switchover. read() only returns events never returned before.
    """

    def __init__(self):
        self._seen: Set[str] = set()

    def __contains__(self, event_id: str) -> bool:
        return event_id in self._seen

    def read(self, document: Optional[SyncDocument], cell_id: Optional[str] = None) -> List[ContentEvent]:
        """
        New events of one cell, or of all cells in cell order.
        """
        if document is None:
            return []
        cells = [cell_id] if cell_id is not None else document.cells()
        new_events = []
        for cell in cells:
            for event in document.get(cell):
                if event.event_id not in self._seen:
                    self._seen.add(event.event_id)
                    new_events.append(event)
        return new_events

    def reset(self) -> None:
        self._seen.clear()
