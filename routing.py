from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, NamedTuple, Optional

from starlette.websockets import WebSocketState

import message_types
from logging_config import get_logger
from registry import Peer, PeerRegistry, RoomIndex, now_ms
from schemas.signaling import InboundMessage

logger = get_logger(__name__)

ROOMS_MODE = "rooms"
CONTACTS_MODE = "contacts"


class Delivery(NamedTuple):
    """One outbound frame for one recipient, computed while routing."""
    peer_id: str
    connection: Any
    message: Dict[str, Any]


def connection_is_open(connection: Any) -> bool:
    """True while both ends of the WebSocket still consider it connected."""
    return (
        getattr(connection, "application_state", None) == WebSocketState.CONNECTED
        and getattr(connection, "client_state", None) == WebSocketState.CONNECTED
    )


def peer_event(event_type: str, peer_id: str) -> Dict[str, Any]:
    return {"type": event_type, "data": {"peerId": peer_id}}


class BaseRouter(ABC):
    """Routes inbound control messages and computes the resulting deliveries.

    Handlers never await: state is mutated and recipients are snapshotted in
    one synchronous step, so on a single event loop at most one mutation is in
    flight. Sending the returned deliveries is the caller's job.
    """

    mode: str = ""

    def __init__(self, registry: PeerRegistry):
        self.registry = registry
        self._handlers: Dict[str, Callable[[Peer, InboundMessage], List[Delivery]]] = {}

    def handle(self, sender_id: str, message: InboundMessage) -> List[Delivery]:
        sender = self.registry.get(sender_id)
        if sender is None:
            logger.debug(f"Ignoring {message.type} from unregistered peer {sender_id}")
            return []

        if message.type in message_types.SIGNALING_TYPES:
            return self.relay(sender, message)

        handler = self._handlers.get(message.type)
        if handler is None:
            logger.warning(f"Unknown message type {message.type!r} from peer {sender_id}")
            return []
        return handler(sender, message)

    @abstractmethod
    def disconnect(self, peer_id: str) -> List[Delivery]:
        """Notifications owed to other peers when peer_id goes away."""

    def relay(self, sender: Peer, message: InboundMessage) -> List[Delivery]:
        target = self.registry.get(message.to)
        if target is None or not connection_is_open(target.connection):
            logger.warning(f"Cannot forward {message.type} from {sender.id} to {message.to}")
            return []
        logger.debug(f"Relaying {message.type} from {sender.id} to {target.id}")
        self.on_relayed(sender, target)
        payload = {"type": message.type, "from": sender.id}
        # A missing data key stays missing; an explicit null is passed through
        if "data" in message.model_fields_set:
            payload["data"] = message.data
        return [Delivery(target.id, target.connection, payload)]

    def on_relayed(self, sender: Peer, target: Peer):
        pass

    def _deliver(self, peer_id: str, message: Dict[str, Any]) -> Optional[Delivery]:
        peer = self.registry.get(peer_id)
        if peer is None:
            return None
        return Delivery(peer.id, peer.connection, message)

    def _broadcast(self, peer_ids, message: Dict[str, Any]) -> List[Delivery]:
        deliveries = []
        for peer_id in peer_ids:
            delivery = self._deliver(peer_id, message)
            if delivery is not None:
                deliveries.append(delivery)
        return deliveries


class RoomRouter(BaseRouter):
    """Peers see each other only within the single room they have joined."""

    mode = ROOMS_MODE

    def __init__(self, registry: PeerRegistry, rooms: RoomIndex):
        super().__init__(registry)
        self.rooms = rooms
        self._handlers.update({
            message_types.JOIN_ROOM: self.join_room,
            message_types.LEAVE_ROOM: self.leave_room,
            message_types.GET_ROOM_PEERS: self.room_peers,
        })

    def join_room(self, sender: Peer, message: InboundMessage) -> List[Delivery]:
        room_id = message.roomId
        if room_id is None:
            logger.warning(f"joinRoom from peer {sender.id} without a roomId, ignoring")
            return []

        deliveries = []
        if sender.room_id is not None:
            deliveries.extend(self.leave_room(sender, message))

        sender.room_id = room_id
        sender.joined_at = now_ms()
        self.rooms.ensure_room(room_id)
        self.rooms.add_member(room_id, sender.id)

        others = self.rooms.members_of(room_id) - {sender.id}
        deliveries.extend(self._broadcast(others, peer_event(message_types.PEER_JOINED, sender.id)))
        deliveries.extend(self.room_peers(sender, message))
        logger.info(f"Peer {sender.id} joined room {room_id}. members={len(others) + 1}")
        return deliveries

    def leave_room(self, sender: Peer, message: Optional[InboundMessage] = None) -> List[Delivery]:
        room_id = sender.room_id
        if room_id is None:
            logger.debug(f"leaveRoom from peer {sender.id} which is not in a room")
            return []

        self.rooms.remove_member(room_id, sender.id)
        sender.room_id = None
        remaining = self.rooms.members_of(room_id)
        logger.info(f"Peer {sender.id} left room {room_id}. members={len(remaining)}")
        return self._broadcast(remaining, peer_event(message_types.PEER_LEFT, sender.id))

    def room_peers(self, sender: Peer, message: Optional[InboundMessage] = None) -> List[Delivery]:
        peers = []
        for peer_id in self.rooms.members_of(sender.room_id) - {sender.id}:
            peer = self.registry.get(peer_id)
            if peer is not None:
                peers.append(peer.summary())
        return [Delivery(sender.id, sender.connection, {"type": message_types.ROOM_PEERS, "data": peers})]

    def disconnect(self, peer_id: str) -> List[Delivery]:
        peer = self.registry.get(peer_id)
        if peer is None:
            return []
        return self.leave_room(peer)


class ContactRouter(BaseRouter):
    """Legacy mode without rooms.

    Every peer can list every other peer, and a disconnect is announced only to
    the peers it exchanged signaling messages with. Contacts are recorded on
    each successful relay and are never pruned.
    """

    mode = CONTACTS_MODE

    def __init__(self, registry: PeerRegistry):
        super().__init__(registry)
        self._handlers[message_types.GET_PEERS] = self.peer_list

    def peer_list(self, sender: Peer, message: Optional[InboundMessage] = None) -> List[Delivery]:
        peers = [peer.summary() for peer in self.registry.peers() if peer.id != sender.id]
        return [Delivery(sender.id, sender.connection, {"type": message_types.PEER_LIST, "data": peers})]

    def on_relayed(self, sender: Peer, target: Peer):
        sender.contacts.add(target.id)
        target.contacts.add(sender.id)

    def disconnect(self, peer_id: str) -> List[Delivery]:
        peer = self.registry.get(peer_id)
        if peer is None:
            return []
        contacts = set(peer.contacts) - {peer_id}
        logger.info(f"Notifying {len(contacts)} contacts of peer {peer_id} about disconnect")
        return self._broadcast(contacts, peer_event(message_types.PEER_DISCONNECTED, peer_id))


def build_router(mode: str, registry: PeerRegistry, rooms: RoomIndex) -> BaseRouter:
    if mode == ROOMS_MODE:
        return RoomRouter(registry, rooms)
    if mode == CONTACTS_MODE:
        return ContactRouter(registry)
    raise ValueError(f"Unknown signaling mode {mode!r}, expected {ROOMS_MODE!r} or {CONTACTS_MODE!r}")
