import logging
import os
import sys

LOGGER_NAME = "gigdispatch"


def setup_logging(level: str | None = None) -> logging.Logger:
    """
    Configure stdout logging for the API and return the service logger.

    The level comes from ``LOG_LEVEL`` (default INFO). Each dispatch
    transition is logged once at INFO by the service that performs it.
    """
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    # Client libraries log every request at INFO
    for noisy in ("sqlalchemy.engine", "urllib3", "httpx"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logging.getLogger(LOGGER_NAME)


logger = setup_logging()
