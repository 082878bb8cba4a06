import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from utils.config import CONFIG

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logger(log_file: Optional[str] = None,
                 level: Optional[str] = None,
                 console: bool = True) -> logging.Logger:
    """Configure the root logger once: rotating file + optional stderr echo."""
    cfg = CONFIG["logging"]
    log_file = log_file or cfg["file"]
    level = (level or cfg["level"]).upper()
    if CONFIG.get("debug_mode"):
        level = "DEBUG"

    logger = logging.getLogger()
    logger.setLevel(level)
    if getattr(logger, "_habitgrid_configured", False):
        return logger

    formatter = logging.Formatter(LOG_FORMAT)

    Path(log_file).parent.mkdir(exist_ok=True, parents=True)
    handler = RotatingFileHandler(log_file,
                                  maxBytes=cfg["max_bytes"],
                                  backupCount=cfg["backup_count"],
                                  encoding="utf-8")
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    if console:
        stream = logging.StreamHandler()
        stream.setFormatter(formatter)
        stream.setLevel(logging.WARNING)
        logger.addHandler(stream)

    # requests/urllib3 chatter is noise at INFO
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    logger._habitgrid_configured = True
    return logger
