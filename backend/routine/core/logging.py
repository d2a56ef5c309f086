from __future__ import annotations

import logging
import logging.config

from routine.core.config import Settings

# Loggers that are too chatty at INFO for day to day operation.
QUIET_LOGGERS = ("sqlalchemy.engine", "uvicorn.access", "httpx")


def configure_logging(settings: Settings) -> None:
    level = settings.log_level.upper()
    if not isinstance(logging.getLevelName(level), int):
        level = "INFO"

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": settings.log_format,
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "loggers": {
                "routine": {"level": level},
                **{name: {"level": "WARNING"} for name in QUIET_LOGGERS},
            },
            "root": {"level": "WARNING", "handlers": ["console"]},
        }
    )
