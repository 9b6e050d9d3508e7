import logging

from dojo.core.config import settings

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging() -> None:
    """Apply LOG_LEVEL and a single line format to the root logger."""
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, format=settings.log_format or DEFAULT_LOG_FORMAT)
    logging.getLogger("dojo").setLevel(level)
