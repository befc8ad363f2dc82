"""
Central logging configuration for recurrence_engine.

Engine modules log expansion details at DEBUG. Hosts embedding the engine in a
busy calendar service usually want those off, so this module sets the
package loggers to INFO by default and lets an environment variable turn
debug output back on while troubleshooting.
"""

import logging
import os
from typing import Optional

DEBUG_ENV = "RECURRENCE_ENGINE_DEBUG"
LOG_LEVEL_ENV = "RECURRENCE_ENGINE_LOG_LEVEL"

ENGINE_MODULES = [
    "recurrence_engine",
    "recurrence_engine.rule_codec",
    "recurrence_engine.occurrence_expander",
    "recurrence_engine.expansion_cache",
    "recurrence_engine.series_clamper",
    "recurrence_engine.series_editing",
    "recurrence_engine.human_text",
    "recurrence_engine.config_loader",
]

# Third-party loggers kept quiet regardless of debug mode
QUIET_LOGGERS = {
    "dateutil": logging.WARNING,
}


def configure_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure log levels for recurrence_engine modules.

    Args:
        debug_mode: Whether to enable debug logging for engine modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        RECURRENCE_ENGINE_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        RECURRENCE_ENGINE_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv(DEBUG_ENV, "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv(LOG_LEVEL_ENV, "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    logger_config: dict[str, int] = dict(QUIET_LOGGERS)
    engine_level = logging.DEBUG if final_debug else logging.INFO
    for module in ENGINE_MODULES:
        logger_config[module] = engine_level

    for logger_name, level in logger_config.items():
        logging.getLogger(logger_name).setLevel(level)

    if final_debug:
        root_logger.info("Debug logging enabled for recurrence_engine modules.")
    else:
        root_logger.info("Production logging configuration applied.")


def reset_logging_to_debug() -> None:
    """
    Reset all loggers to DEBUG level for troubleshooting.
    """
    logging.getLogger().setLevel(logging.DEBUG)

    for logger_name in [*ENGINE_MODULES, *QUIET_LOGGERS]:
        logging.getLogger(logger_name).setLevel(logging.DEBUG)

    logging.getLogger().info("All loggers reset to DEBUG level for troubleshooting")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}

    for logger_name in ["recurrence_engine", *QUIET_LOGGERS]:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)

    return status
