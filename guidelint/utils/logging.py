"""Centralized logging configuration using Loguru.

Usage:
    from guidelint.utils.logging import logger
    logger.info("Message")
    logger.debug("Debug message")  # Only shows if GUIDELINT_LOG_LEVEL=DEBUG

Environment Variables:
    GUIDELINT_LOG_LEVEL: DEBUG|INFO|WARNING|ERROR (default: WARNING)
    GUIDELINT_LOG_JSON: 0|1 (default: 0, human-readable)
    GUIDELINT_LOG_FILE: path to log file (optional)
"""

import json
import os
import sys

from loguru import logger

# Remove default handler
logger.remove()

_log_level = os.environ.get("GUIDELINT_LOG_LEVEL", "WARNING").upper()
_json_mode = os.environ.get("GUIDELINT_LOG_JSON", "0") == "1"
_log_file = os.environ.get("GUIDELINT_LOG_FILE")


def _to_ndjson(record) -> str:
    payload = {
        "level": record["level"].name,
        "time": int(record["time"].timestamp() * 1000),
        "msg": record["message"],
        "module": record["name"],
        "pid": record["process"].id,
    }
    for key, value in record["extra"].items():
        payload[key] = value if isinstance(value, (str, int, float, bool)) else str(value)
    if record["exception"]:
        exc = record["exception"]
        payload["err"] = {
            "type": exc.type.__name__ if exc.type else "Error",
            "message": str(exc.value) if exc.value else "",
        }
    return json.dumps(payload)


def ndjson_sink(message) -> None:
    """Write one JSON object per record to stderr."""
    # Never call logger.* inside a sink - causes infinite recursion
    sys.stderr.write(_to_ndjson(message.record) + "\n")
    sys.stderr.flush()


_human_format = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}:{function}:{line}</cyan> - "
    "<level>{message}</level>"
)


def _add_console_handler() -> int:
    if _json_mode:
        return logger.add(ndjson_sink, level=_log_level, colorize=False)
    return logger.add(sys.stderr, level=_log_level, format=_human_format, colorize=None)


_console_handler_id = _add_console_handler()

if _log_file:

    def _file_sink(message) -> None:
        with open(_log_file, "a", encoding="utf-8") as f:
            f.write(_to_ndjson(message.record) + "\n")

    logger.add(_file_sink, level="DEBUG")


def set_level(level: str) -> None:
    """Reconfigure the console handler, e.g. for ``--verbose``."""
    global _log_level, _console_handler_id
    _log_level = level.upper()
    logger.remove(_console_handler_id)
    _console_handler_id = _add_console_handler()


__all__ = ["logger", "set_level"]
