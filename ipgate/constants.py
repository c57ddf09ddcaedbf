"""Shared constants for ipgate.

Default paths, listener settings and uvicorn hardening values live here.
No magic numbers in other modules; import from here.
"""

from pathlib import Path

# ─── Filesystem defaults ──────────────────────────────────────────────────────

# Directory containing the ipgate package. Default credential and allow-list
# paths are resolved relative to it.
INSTALL_DIR: Path = Path(__file__).resolve().parent.parent

DEFAULT_WHITELIST_PATH: str = str(INSTALL_DIR / "whitelist")
DEFAULT_CERT_PATH: str = str(INSTALL_DIR / "cert.pem")
DEFAULT_KEY_PATH: str = str(INSTALL_DIR / "key.pem")

# ─── Listener defaults ────────────────────────────────────────────────────────

# All interfaces: the allow-list, not the bind address, is the access boundary.
DEFAULT_HOST: str = "0.0.0.0"
DEFAULT_PORT: int = 443

MIN_PORT: int = 0
MAX_PORT: int = 65_535

# ─── Uvicorn hardened defaults ───────────────────────────────────────────────

# New connections receive HTTP 503 when this limit is exceeded.
UVICORN_LIMIT_CONCURRENCY: int = 100

# OS-level TCP backlog for the listening socket.
UVICORN_BACKLOG: int = 50

# Low keep-alive reduces the Slow Loris window.
UVICORN_TIMEOUT_KEEP_ALIVE: int = 5

# ─── Responses ────────────────────────────────────────────────────────────────

ROOT_BODY: str = "hello"
