"""Logging setup shared by the API and scripts."""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger once; later calls only adjust the level."""
    logging.basicConfig(format=LOG_FORMAT)
    logging.getLogger().setLevel(level.upper())
    # Engine echo already covers SQL statements
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
