import logging
import logging.config

from classmate.core.config import settings

VERBOSE_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"
COMPACT_FORMAT = "%(levelname)s %(name)s: %(message)s"


def setup_logging(level: str = None) -> None:
    """Configure root logging once for the API process."""
    level = (level or settings.LOG_LEVEL).upper()
    fmt = VERBOSE_FORMAT if settings.ENVIRONMENT != "production" else COMPACT_FORMAT

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": fmt},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
            },
        },
        "root": {"handlers": ["console"], "level": level},
        "loggers": {
            # SQL echo stays off unless explicitly asked for
            "sqlalchemy.engine": {"level": "WARNING"},
            "uvicorn.access": {"level": "WARNING"},
        },
    })
    logging.getLogger(__name__).debug("Logging configured at %s", level)
