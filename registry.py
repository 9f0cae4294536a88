import random
import string
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from logging_config import get_logger

logger = get_logger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_peer_id(length: int = 9) -> str:
    suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=length))
    return f"peer-{now_ms()}-{suffix}"


@dataclass
class Peer:
    id: str
    connection: Any
    created_at: int
    room_id: Optional[str] = None
    joined_at: Optional[int] = None
    # contacts mode only: peers this one has exchanged signaling messages with
    contacts: Set[str] = field(default_factory=set)

    @property
    def timestamp(self) -> int:
        """Time of the latest room join, falling back to registration time."""
        return self.joined_at if self.joined_at is not None else self.created_at

    def summary(self) -> Dict[str, Any]:
        return {"id": self.id, "timestamp": self.timestamp}


class PeerRegistry:
    """Live peers keyed by their server-assigned ID."""

    def __init__(self):
        self._peers: Dict[str, Peer] = {}

    def register(self, connection: Any) -> str:
        peer_id = generate_peer_id()
        while peer_id in self._peers:
            logger.debug(f"Peer ID collision on {peer_id}, regenerating")
            peer_id = generate_peer_id()
        self._peers[peer_id] = Peer(id=peer_id, connection=connection, created_at=now_ms())
        logger.debug(f"Registered peer {peer_id} (live peers: {len(self._peers)})")
        return peer_id

    def get(self, peer_id: Optional[str]) -> Optional[Peer]:
        if peer_id is None:
            return None
        return self._peers.get(peer_id)

    def remove(self, peer_id: str):
        removed = self._peers.pop(peer_id, None)
        if removed is not None:
            logger.debug(f"Removed peer {peer_id} (live peers: {len(self._peers)})")

    def peers(self) -> List[Peer]:
        return list(self._peers.values())

    def __contains__(self, peer_id: str) -> bool:
        return peer_id in self._peers

    def __len__(self) -> int:
        return len(self._peers)


class RoomIndex:
    """Room ID -> member peer IDs. A room only exists while it has members."""

    def __init__(self):
        self._rooms: Dict[str, Set[str]] = {}

    def ensure_room(self, room_id: str):
        if room_id not in self._rooms:
            self._rooms[room_id] = set()
            logger.debug(f"Created room {room_id}")

    def add_member(self, room_id: str, peer_id: str):
        self.ensure_room(room_id)
        self._rooms[room_id].add(peer_id)

    def remove_member(self, room_id: str, peer_id: str):
        members = self._rooms.get(room_id)
        if members is None:
            return
        members.discard(peer_id)
        if not members:
            del self._rooms[room_id]
            logger.debug(f"Deleted empty room {room_id}")

    def members_of(self, room_id: Optional[str]) -> Set[str]:
        """Snapshot of the member set; empty when the room is unknown."""
        if room_id is None:
            return set()
        return set(self._rooms.get(room_id, ()))

    def room_ids(self) -> List[str]:
        return list(self._rooms)

    def __contains__(self, room_id: str) -> bool:
        return room_id in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)
