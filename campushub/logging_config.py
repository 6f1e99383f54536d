from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_app_logging(level: str = "INFO") -> None:
    """
    Logging setup for CampusHub (stdlib `logging`).

    - Under uvicorn, handlers already exist; only the `campushub` level is set.
    - Run any other way (scripts, a REPL), a stream handler is added so
      messages are not lost.
    - SQL echo from `sqlalchemy.engine` is only shown at DEBUG.
    """

    normalized = level.upper()
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format=LOG_FORMAT)

    app_logger = logging.getLogger("campushub")
    app_logger.setLevel(normalized)
    app_logger.propagate = True

    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if normalized == "DEBUG" else logging.WARNING)
