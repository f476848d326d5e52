from __future__ import annotations

import logging


def configure_app_logging(level: str = "INFO") -> None:
    """
    Logging setup for this repo.

    Notes:
    - Stdlib logging only; uvicorn already installs handlers, so this just sets
      levels for our package.
    - Authorization decisions are logged by ``staffdesk.authz.observability``
      at DEBUG. ``STAFFDESK_LOG_LEVEL=DEBUG`` shows every decision.
    """

    normalized = level.upper()
    logging.getLogger("staffdesk").setLevel(normalized)
    # Ensure child loggers under staffdesk.* inherit this level.
    logging.getLogger("staffdesk").propagate = True
