from __future__ import annotations

import logging
import os
from logging.config import dictConfig
from typing import Optional

_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"

# env var -> logger it controls
_ENV_LOGGERS = {
    "LOG_APP_LEVEL": ("tradein",),
    "LOG_THIRD_PARTY_LEVEL": ("httpx", "httpcore"),
}


def _level(name: str, default: str) -> str:
    value = (os.getenv(name) or default).upper().strip()
    return value if value in _LEVELS else default


def init_logging(
    *,
    root_level: str = "INFO",
    app_level: Optional[str] = None,
    third_party_level: str = "WARNING",
) -> None:
    """Console logging for the whole process; LOG_*_LEVEL env vars win over arguments.

    httpx and httpcore log every request at INFO, so they default to WARNING.
    """
    root = _level("LOG_ROOT_LEVEL", root_level)
    defaults = {"LOG_APP_LEVEL": app_level or root, "LOG_THIRD_PARTY_LEVEL": third_party_level}

    loggers = {}
    for env_name, names in _ENV_LOGGERS.items():
        lvl = _level(env_name, defaults[env_name])
        for name in names:
            loggers[name] = {"level": lvl, "handlers": ["console"], "propagate": False}

    dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"plain": {"format": LOG_FORMAT, "datefmt": "%H:%M:%S"}},
        "handlers": {
            "console": {"class": "logging.StreamHandler", "stream": "ext://sys.stdout", "formatter": "plain"},
        },
        "root": {"level": root, "handlers": ["console"]},
        "loggers": loggers,
    })
    logging.getLogger("tradein.log").debug(
        "logging ready: root=%s %s", root, ", ".join(f"{n}={c['level']}" for n, c in loggers.items())
    )
