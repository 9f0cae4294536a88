import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3000))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

RELOAD = os.getenv("RELOAD", "false").lower() in ("1", "true", "yes")

# "rooms" (room membership) or "contacts" (legacy per-peer contact tracking)
SIGNALING_MODE = os.getenv("SIGNALING_MODE", "rooms")

# Directory of browser client assets served at "/", if any
STATIC_DIR = os.getenv("STATIC_DIR", None)
