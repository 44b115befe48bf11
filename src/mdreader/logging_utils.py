from __future__ import annotations

import logging
from copy import copy, deepcopy
from typing import Any
from urllib.parse import parse_qsl, unquote, urlsplit

from uvicorn.config import LOGGING_CONFIG
from uvicorn.logging import AccessFormatter, ColourizedFormatter

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
ACCESS_FORMATTER = "mdreader.logging_utils.ChapterPathAccessFormatter"


def configure_logging(debug: bool = False) -> None:
    """Route mdreader diagnostics to stderr at INFO, or DEBUG when asked."""
    logging.basicConfig(level=logging.DEBUG if debug else logging.INFO, format=LOG_FORMAT)
    logging.getLogger("mdreader").setLevel(logging.DEBUG if debug else logging.INFO)


def readable_target(target: str) -> str:
    """Percent-decode a request target so chapter paths read as file names.

    ``/api/chapter?path=%C3%BCber.md`` becomes ``/api/chapter?path=über.md``.
    """
    parts = urlsplit(target)
    path = unquote(parts.path, errors="replace")
    if not parts.query:
        return path
    pairs = parse_qsl(parts.query, keep_blank_values=True, errors="replace")
    return path + "?" + "&".join(f"{key}={value}" for key, value in pairs)


def _is_access_record(record: logging.LogRecord) -> bool:
    args = record.args
    return isinstance(args, tuple) and len(args) == 5 and isinstance(args[2], str)


class ChapterPathAccessFormatter(AccessFormatter):
    """uvicorn access formatter that logs request targets percent-decoded."""

    def formatMessage(self, record):  # type: ignore[override]
        if not _is_access_record(record):
            return ColourizedFormatter.formatMessage(self, record)
        decoded = copy(record)
        client_addr, method, target, http_version, status_code = record.args
        decoded.args = (client_addr, method, readable_target(target), http_version, status_code)
        return super().formatMessage(decoded)


def build_uvicorn_log_config(debug: bool = False) -> dict[str, Any]:
    """Return uvicorn's logging config with decoded access targets and mdreader's logger."""
    config = deepcopy(LOGGING_CONFIG)
    config["formatters"]["access"]["()"] = ACCESS_FORMATTER
    config["loggers"]["mdreader"] = {
        "handlers": ["default"],
        "level": "DEBUG" if debug else "INFO",
        "propagate": False,
    }
    return config


__all__ = [
    "ACCESS_FORMATTER",
    "ChapterPathAccessFormatter",
    "build_uvicorn_log_config",
    "configure_logging",
    "readable_target",
]
