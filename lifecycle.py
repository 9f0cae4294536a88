import asyncio
import json
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

import message_types
from logging_config import get_logger
from registry import PeerRegistry
from routing import BaseRouter, Delivery, connection_is_open
from schemas.signaling import InboundMessage

logger = get_logger(__name__)


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


def decode_frame(frame: Union[str, bytes]) -> Optional[InboundMessage]:
    """Parse one text or binary frame, returning None when it is malformed."""
    try:
        text = frame.decode("utf-8") if isinstance(frame, (bytes, bytearray)) else frame
        return InboundMessage.model_validate_json(text)
    except UnicodeDecodeError as e:
        logger.warning(f"Dropping binary frame that is not valid UTF-8: {e}")
    except ValidationError as e:
        logger.warning(f"Dropping malformed frame: {e.errors()[0].get('msg', e)}")
    return None


class Outbox:
    """Outbound frames for one peer, written in order by a background task.

    Enqueueing never waits, so a recipient that stops reading only stalls its
    own writer, never the peer whose message caused the send.
    """

    def __init__(self, peer_id: str, connection: Any):
        self.peer_id = peer_id
        self.connection = connection
        self.queue: asyncio.Queue = asyncio.Queue()
        self.task: Optional[asyncio.Task] = None

    def start(self):
        self.task = asyncio.create_task(self._write_loop())

    def put(self, message: Dict[str, Any]):
        self.queue.put_nowait(message)

    async def _write_loop(self):
        while True:
            message = await self.queue.get()
            try:
                if connection_is_open(self.connection):
                    await self.connection.send_text(json.dumps(message))
                else:
                    logger.debug(f"Skipping send to closed connection of peer {self.peer_id}")
            except Exception as e:
                logger.warning(f"Error sending to peer {self.peer_id}: {e}")
            finally:
                self.queue.task_done()

    async def join(self):
        """Wait until every queued frame has been written or dropped."""
        await self.queue.join()

    async def stop(self):
        if self.task is None:
            return
        self.task.cancel()
        try:
            await self.task
        except asyncio.CancelledError:
            pass
        self.task = None


class ConnectionSession:
    """One peer connection: Connecting -> Open -> Closed."""

    def __init__(self, handler: "ConnectionLifecycleHandler", connection: Any):
        self.handler = handler
        self.connection = connection
        self.state = ConnectionState.CONNECTING
        self.peer_id: Optional[str] = None

    async def open(self) -> str:
        if self.state != ConnectionState.CONNECTING:
            raise RuntimeError(f"Cannot open a session in state {self.state.value}")
        self.peer_id = self.handler.registry.register(self.connection)
        self.handler.attach(self.peer_id, self.connection)
        self.state = ConnectionState.OPEN
        logger.info(f"Peer connected {self.peer_id}")
        self.handler.dispatch([Delivery(self.peer_id, self.connection, {"type": message_types.PEER_ID, "data": self.peer_id})])
        return self.peer_id

    async def receive(self, frame: Union[str, bytes]):
        if self.state != ConnectionState.OPEN:
            logger.debug(f"Ignoring frame for session in state {self.state.value}")
            return
        message = decode_frame(frame)
        if message is None:
            return
        logger.debug(f"Received {message.type} from peer {self.peer_id}")
        self.handler.dispatch(self.handler.router.handle(self.peer_id, message))

    async def close(self, error: Optional[BaseException] = None):
        """Disconnect cleanup. Safe to call repeatedly; only the first call acts."""
        if self.state == ConnectionState.CLOSED:
            return
        previous, self.state = self.state, ConnectionState.CLOSED
        if previous != ConnectionState.OPEN:
            return

        if error is not None:
            logger.error(f"WebSocket error for peer {self.peer_id}: {error}")
        deliveries = self.handler.router.disconnect(self.peer_id)
        self.handler.registry.remove(self.peer_id)
        logger.info(f"Peer disconnected {self.peer_id}")
        self.handler.dispatch(deliveries)
        await self.handler.detach(self.peer_id)


class ConnectionLifecycleHandler:
    def __init__(self, registry: PeerRegistry, router: BaseRouter):
        self.registry = registry
        self.router = router
        self.outboxes: Dict[str, Outbox] = {}

    def session(self, connection: Any) -> ConnectionSession:
        return ConnectionSession(self, connection)

    def attach(self, peer_id: str, connection: Any):
        outbox = Outbox(peer_id, connection)
        outbox.start()
        self.outboxes[peer_id] = outbox

    async def detach(self, peer_id: str):
        outbox = self.outboxes.pop(peer_id, None)
        if outbox is not None:
            await outbox.stop()

    def dispatch(self, deliveries: List[Delivery]):
        """Queue deliveries on their recipients' outboxes without waiting for the sends."""
        for delivery in deliveries:
            outbox = self.outboxes.get(delivery.peer_id)
            if outbox is None or outbox.connection is not delivery.connection:
                logger.debug(f"No outbox for peer {delivery.peer_id}, dropping {delivery.message.get('type')}")
                continue
            outbox.put(delivery.message)

    async def flush(self, *peer_ids: str):
        """Wait for the outboxes of peer_ids (all peers when none given) to drain."""
        targets = peer_ids or tuple(self.outboxes)
        for peer_id in targets:
            outbox = self.outboxes.get(peer_id)
            if outbox is not None:
                await outbox.join()
