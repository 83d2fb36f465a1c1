import logging

import structlog


def configure_logging(level: str | int = "INFO") -> None:
    """Route structlog through a level filter; stdlib loggers share the level."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format="%(message)s")
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
    )
