import logging
import sys

from .config import settings

logger = logging.getLogger("moment")

if not logger.handlers:
    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(
        logging.Formatter("%(asctime)s | %(levelname)-8s | %(name)s:%(module)s - %(message)s")
    )
    logger.addHandler(_handler)
    logger.setLevel(settings.LOG_LEVEL.upper())
