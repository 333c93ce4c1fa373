"""
Logging Configuration
Root logger setup driven by LOG_LEVEL / LOG_FILE
"""
import logging
import sys
from pathlib import Path
from typing import Optional

from app.config import Settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(config: Optional[Settings] = None) -> None:
    """
    Configure the root logger once at startup.

    Args:
        config: Settings instance, uses the global settings if None
    """
    if config is None:
        from app.config import settings as default_settings
        config = default_settings

    handlers = [logging.StreamHandler(sys.stdout)]
    if config.LOG_FILE:
        log_path = Path(config.LOG_FILE)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def get_logger(name: str) -> logging.Logger:
    """Get a module logger (usually called with __name__)"""
    return logging.getLogger(name)
