"""DevXP - gamification engine for developer activity"""
import logging
from typing import Optional

__version__ = "0.1.0"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging the way host processes expect"""
    from devxp.config import LOG_LEVEL

    logging.basicConfig(
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        level=getattr(logging, (level or LOG_LEVEL).upper())
    )
