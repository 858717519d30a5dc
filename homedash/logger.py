import logging
import os
import sys

def setup_logger(name: str, level: str = None):
    logger = logging.getLogger(name)
    level = (level or os.getenv("LOG_LEVEL", "DEBUG")).upper()
    logger.setLevel(getattr(logging, level, logging.DEBUG))
    if not logger.handlers:  # importing twice must not double every line
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(logging.DEBUG)
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.propagate = False
    return logger

logger = setup_logger("HomeDash")
