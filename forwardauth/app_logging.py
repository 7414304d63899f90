"""Root logger configuration."""

import logging
from pythonjsonlogger import jsonlogger

FORMAT = '%(asctime)s %(levelname)s %(name)s %(message)s'


def setup_logger(level: int = logging.INFO, json: bool = True) -> None:
    """Attach a single stream handler to the root logger."""
    logger = logging.getLogger()
    logger.setLevel(level)
    if any(getattr(handler, '_forwardauth', False)
           for handler in logger.handlers):
        return
    logHandler = logging.StreamHandler()
    if json:
        formatter = jsonlogger.JsonFormatter(
            FORMAT,
            rename_fields={'levelname': 'level', 'asctime': 'timestamp'}
        )
    else:
        formatter = logging.Formatter(FORMAT)
    logHandler.setFormatter(formatter)
    logHandler._forwardauth = True   # type: ignore
    logger.addHandler(logHandler)
