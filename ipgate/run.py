"""Process entry point for ipgate.

Usage:
    python -m ipgate.run
    ipgate                    # via pyproject.toml [project.scripts]

Loads the config, runs the bootstrap sequence and serves until the process is
terminated. Any configuration or bootstrap failure exits with status 1 before
a socket is left accepting connections.
"""

from __future__ import annotations

import asyncio
import os

from ipgate.bootstrap import BootstrapSequencer
from ipgate.config import Config, load_config
from ipgate.errors import BootstrapError
from ipgate.utils.logger import configure_logging, get_logger

logger = get_logger(__name__)


async def serve(config: Config) -> None:
    """Bootstrap and serve.

    Raises:
        SystemExit(1): A bootstrap stage failed.
    """
    sequencer = BootstrapSequencer(config)
    try:
        listener = await sequencer.run()
    except BootstrapError as exc:
        logger.error(
            "Server setup failed",
            stage=exc.stage,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        raise SystemExit(1) from exc

    logger.info("Server setup complete", host=listener.host, port=listener.port)
    try:
        await listener.serve()
    finally:
        listener.close()


def main() -> None:
    """Start ipgate.

    Raises:
        SystemExit(1): On config or bootstrap failure.
    """
    # Env-only logging until the config file has been read.
    configure_logging(
        log_level=os.getenv("LOG_LEVEL") or "INFO",
        json_output=(os.getenv("JSON_LOGS") or "true").lower() == "true",
    )
    config = load_config()
    configure_logging(log_level=config.logging.level, json_output=config.logging.json_output)

    asyncio.run(serve(config))


if __name__ == "__main__":
    main()
