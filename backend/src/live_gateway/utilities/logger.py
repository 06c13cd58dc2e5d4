import logging
import os
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s: %(message)s"


def setup_logger(name: str = "live_gateway", level: str = "INFO",
                 log_dir: Optional[str] = None) -> logging.Logger:
    # Reuse Uvicorn's error logger handlers so our output always appears in console
    base_logger = logging.getLogger("uvicorn.error")
    logger = logging.getLogger(name)
    if base_logger.handlers and not logger.handlers:
        for h in base_logger.handlers:
            logger.addHandler(h)
    logger.propagate = False
    logger.setLevel(level)
    if logger.handlers:
        return logger  # avoid duplicate handlers

    formatter = logging.Formatter(LOG_FORMAT)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        error_file = logging.FileHandler(os.path.join(log_dir, "error.log"))
        error_file.setLevel(logging.ERROR)
        error_file.setFormatter(formatter)
        combined_file = logging.FileHandler(os.path.join(log_dir, "combined.log"))
        combined_file.setFormatter(formatter)
        logger.addHandler(error_file)
        logger.addHandler(combined_file)

    return logger
