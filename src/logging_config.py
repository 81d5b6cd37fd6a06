"""
Application logging setup.

Modules log through ``logging.getLogger(__name__)``; this applies the
configured level and a single format to the root logger at startup.
"""

import logging
from typing import Optional

from src.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging.

    Args:
        level: Level name overriding settings.log_level
    """
    level = level or get_settings().log_level
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)

    # SQL echo is controlled by the engine; keep the library logger quiet otherwise
    if level != "DEBUG":
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(f"Logging configured at {level}")
