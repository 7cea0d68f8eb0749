"""Granian process entry point shared by ``signpost serve`` and ``App.run()``."""

import logging
from typing import Any

logger = logging.getLogger("signpost")


def serve(
    target: str,
    *,
    host: str = "127.0.0.1",
    port: int = 8000,
    reload: bool = False,
    workers: int = 1,
    log_level: str = "info",
    granian_kwargs: dict[str, Any] | None = None,
) -> None:
    """Serve the ``"module:var"`` *target* through Granian's ASGI interface."""
    from granian import Granian

    configure_logging(log_level)
    logger.info("Serving %s on http://%s:%d (workers=%d, reload=%s)", target, host, port, workers, reload)
    Granian(
        target=target,
        address=host,
        port=port,
        interface="asgi",
        workers=workers,
        reload=reload,
        log_level=log_level,
        **(granian_kwargs or {}),
    ).serve()


def configure_logging(level: str) -> None:
    logger.setLevel(level.upper())
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        logger.addHandler(handler)
