"""
Logging configuration.

The packaged `config/logging.yaml` routes everything to stderr. Only the `geocell`
logger tree follows the requested level (`--log-level`, else `app.log_level` /
`GEOCELL_LOG_LEVEL`), so planner and search debug output can be turned on without
enabling debug logs from the web server or other libraries.
"""

from __future__ import annotations

import copy
import logging.config

from geocell.config.settings import get_logging_config, get_settings

LOGGER_NAME = "geocell"


def configure_logging(level: str | None = None) -> None:
    """Apply the packaged logging config with `level` on the `geocell` loggers."""
    level = (level or get_settings().app.log_level).upper()
    # The loaded config is cached; never mutate it in place.
    config = copy.deepcopy(get_logging_config())

    config.setdefault("loggers", {}).setdefault(LOGGER_NAME, {})["level"] = level

    logging.config.dictConfig(config)
