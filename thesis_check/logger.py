# logger.py
import logging

from thesis_check.config import LOG_FILE, LOG_LEVEL

_handlers = [logging.StreamHandler()]
if LOG_FILE:
    _handlers.append(logging.FileHandler(LOG_FILE))

logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    handlers=_handlers,
)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
