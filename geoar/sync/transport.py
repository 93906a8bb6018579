"""
Message transport between sync peers.

SyncPeer only depends on the Transport interface. Messages are dicts that
encode to JSON; a transport may deliver them in any interleaving but preserves
the order of messages between one pair of peers.

LocalHub/LocalTransport connect peers living in the same process. Delivery is
asynchronous on the running event loop, like a network transport, so the
peer code paths are the same.
"""

import asyncio
import json
import uuid
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set
import logging

logger = logging.getLogger(__name__)

MessageHandler = Callable[[str, Dict[str, Any]], Awaitable[None]]
PeerHandler = Callable[[str], Awaitable[None]]


class Transport(ABC):
    """Abstract connection from one peer to its group."""

    def __init__(self, peer_id: Optional[str] = None):
        self.peer_id = peer_id or str(uuid.uuid4())
        self._message_handler: Optional[MessageHandler] = None
        self._peer_handler: Optional[PeerHandler] = None

    def set_message_handler(self, handler: Optional[MessageHandler]) -> None:
        """Register the coroutine called with (sender_id, message)."""
        self._message_handler = handler

    def set_peer_handler(self, handler: Optional[PeerHandler]) -> None:
        """Register the coroutine called with the id of each newly connected peer."""
        self._peer_handler = handler

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        pass

    @abstractmethod
    def connected_peers(self) -> List[str]:
        pass

    @abstractmethod
    async def connect(self) -> None:
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        pass

    @abstractmethod
    async def send(self, message: Dict[str, Any], target: Optional[str] = None) -> None:
        """Send to one peer, or to every connected peer when target is None."""
        pass


class LocalHub:
    """
    In-process meeting point for LocalTransports.

    Example usage:
        hub = LocalHub()
        a = LocalTransport(hub, "peer-a")
        b = LocalTransport(hub, "peer-b")
        await a.connect(); await b.connect()
        ...
        await hub.drain()
    """

    def __init__(self):
        self._members: Dict[str, "LocalTransport"] = {}
        self._pending: Set[asyncio.Task] = set()

    @property
    def members(self) -> List[str]:
        return sorted(self._members)

    def _schedule(self, coro, owner: "LocalTransport") -> None:
        task = asyncio.get_running_loop().create_task(coro)
        owner._tasks.add(task)
        self._pending.add(task)

        def _done(t: asyncio.Task):
            owner._tasks.discard(t)
            self._pending.discard(t)

        task.add_done_callback(_done)

    async def _join(self, transport: "LocalTransport") -> None:
        if transport.peer_id in self._members:
            raise ValueError(f"Peer id already connected: {transport.peer_id}")
        others = list(self._members.values())
        self._members[transport.peer_id] = transport
        logger.debug(f"{transport.peer_id} joined hub with {len(others)} peers")
        for other in others:
            self._schedule(other._peer_connected(transport.peer_id), other)
            self._schedule(transport._peer_connected(other.peer_id), transport)

    def _leave(self, transport: "LocalTransport") -> None:
        self._members.pop(transport.peer_id, None)

    def _route(self, sender: str, data: str, target: Optional[str]) -> None:
        if target is None:
            targets = [t for pid, t in self._members.items() if pid != sender]
        else:
            member = self._members.get(target)
            if member is None:
                logger.warning(f"Dropping message from {sender} to unknown peer {target}")
                return
            targets = [member]
        for member in targets:
            self._schedule(member._deliver(sender, data), member)

    async def drain(self) -> None:
        """Wait until every scheduled delivery, including follow-ups, has run."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


class LocalTransport(Transport):
    """Transport endpoint attached to a LocalHub."""

    def __init__(self, hub: LocalHub, peer_id: Optional[str] = None):
        super().__init__(peer_id)
        self.hub = hub
        self._connected = False
        self._tasks: Set[asyncio.Task] = set()

    @property
    def is_connected(self) -> bool:
        return self._connected

    def connected_peers(self) -> List[str]:
        if not self._connected:
            return []
        return [pid for pid in self.hub.members if pid != self.peer_id]

    async def connect(self) -> None:
        if self._connected:
            return
        await self.hub._join(self)
        self._connected = True

    async def disconnect(self) -> None:
        """Leave the hub and abandon deliveries that have not run yet."""
        if not self._connected:
            return
        self._connected = False
        self.hub._leave(self)
        pending = [t for t in self._tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.debug(f"{self.peer_id} disconnected, {len(pending)} deliveries abandoned")

    async def send(self, message: Dict[str, Any], target: Optional[str] = None) -> None:
        if not self._connected:
            raise ConnectionError(f"Transport {self.peer_id} is not connected")
        self.hub._route(self.peer_id, json.dumps(message), target)

    async def _peer_connected(self, peer_id: str) -> None:
        if self._connected and self._peer_handler is not None:
            await self._peer_handler(peer_id)

    async def _deliver(self, sender: str, data: str) -> None:
        if not self._connected or self._message_handler is None:
            return
        try:
            message = json.loads(data)
        except json.JSONDecodeError as e:
            logger.warning(f"Discarding undecodable message from {sender}: {e}")
            return
        await self._message_handler(sender, message)
