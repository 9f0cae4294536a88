import os
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

import constants
from lifecycle import ConnectionLifecycleHandler
from logging_config import get_logger, setup_logging
from registry import PeerRegistry, RoomIndex
from routers.peers import peers_router
from routers.signaling import signaling_router
from routing import build_router

# Setup logging
setup_logging(log_level=constants.LOG_LEVEL, log_file=constants.LOG_FILE)
logger = get_logger(__name__)


def create_app(
    mode: Optional[str] = None,
    static_dir: Optional[str] = None,
    registry: Optional[PeerRegistry] = None,
    rooms: Optional[RoomIndex] = None,
) -> FastAPI:
    """Build the signaling application with its own peer registry and room index."""
    mode = mode or constants.SIGNALING_MODE
    registry = registry if registry is not None else PeerRegistry()
    rooms = rooms if rooms is not None else RoomIndex()
    router = build_router(mode, registry, rooms)

    app = FastAPI(title="WebRTC signaling relay")

    # Configure CORS to allow all origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Allow all origins
        allow_credentials=True,
        allow_methods=["*"],  # Allow all HTTP methods
        allow_headers=["*"],  # Allow all headers
    )

    app.state.registry = registry
    app.state.rooms = rooms
    app.state.router = router
    app.state.lifecycle = ConnectionLifecycleHandler(registry, router)

    app.include_router(peers_router)
    app.include_router(signaling_router)

    # Mounted last so the WebSocket route and /peers win over static files at "/"
    static_dir = static_dir or constants.STATIC_DIR
    if static_dir:
        if os.path.isdir(static_dir):
            app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")
            logger.info(f"Serving static files from {static_dir}")
        else:
            logger.warning(f"Static directory {static_dir} does not exist, not serving static files")

    logger.info(f"FastAPI application initialized (signaling mode: {router.mode})")
    return app


app = create_app()
