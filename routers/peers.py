from fastapi import APIRouter, Request
from typing import List

from schemas.signaling import PeerSummary
from logging_config import get_logger

logger = get_logger(__name__)

peers_router = APIRouter(prefix="/peers", tags=["peers"])


@peers_router.get("", response_model=List[PeerSummary])
async def list_peers(request: Request):
    """Currently connected peers with their timestamps, in no particular order."""
    registry = request.app.state.registry
    peers = [PeerSummary(**peer.summary()) for peer in registry.peers()]
    logger.debug(f"Peer list requested by {request.client.host if request.client else 'unknown'}: {len(peers)} peers")
    return peers
