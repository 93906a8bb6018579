"""
Shared-state synchronization of ephemeral content between peers.

Content events are grouped by spatial cell id in a replicated document. Peers
that meet merge their documents and agree on one document identity.
"""

from .cells import spatial_cell_id, cell_center, DEFAULT_CELL_RESOLUTION
from .crdt import ContentEvent, SyncDocument, select_canonical_id
from .protocol import SyncPeer, ContentReader, DEFAULT_READY_TIMEOUT
from .transport import Transport, LocalHub, LocalTransport

__all__ = [
    "spatial_cell_id",
    "cell_center",
    "DEFAULT_CELL_RESOLUTION",
    "ContentEvent",
    "SyncDocument",
    "select_canonical_id",
    "SyncPeer",
    "ContentReader",
    "DEFAULT_READY_TIMEOUT",
    "Transport",
    "LocalHub",
    "LocalTransport",
]
