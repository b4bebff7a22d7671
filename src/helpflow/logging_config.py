"""Structured logging configuration for helpflow.

Provides JSON or text logging. Configure via the CLI options or the
``HELPFLOW_LOG_LEVEL`` / ``HELPFLOW_LOG_FORMAT`` environment variables handled
by AppSettings.

Every record carries two helpflow fields: ``component`` (the emitting module,
e.g. ``gateway`` for ``helpflow.gateway``) and ``widget`` (the widget name a
call site passes via ``extra={"widget": ...}``, ``-`` otherwise).
"""

from __future__ import annotations

import logging

from pythonjsonlogger import jsonlogger


class HelpContextFilter(logging.Filter):
    """Stamps ``component`` and ``widget`` onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        record.component = name[len("helpflow."):] if name.startswith("helpflow.") else name
        if not hasattr(record, "widget"):
            record.widget = "-"
        return True


def _build_json_formatter() -> logging.Formatter:
    fields = [
        "asctime",
        "levelname",
        "component",
        "widget",
        "message",
        "funcName",
        "lineno",
    ]
    fmt = " ".join([f"%({f})s" for f in fields])
    return jsonlogger.JsonFormatter(fmt=fmt)


def configure_logging(level: str = "INFO", fmt: str = "json") -> None:
    level_upper = level.upper()
    log_level = getattr(logging, level_upper, logging.INFO)

    root = logging.getLogger()
    root.setLevel(log_level)

    # Remove default handlers to avoid duplicate logs
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler()
    handler.addFilter(HelpContextFilter())
    if fmt.lower() == "json":
        handler.setFormatter(_build_json_formatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s %(levelname)s %(component)s[%(widget)s]: %(message)s",
                datefmt="%Y-%m-%dT%H:%M:%S%z",
            )
        )
    root.addHandler(handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(log_level, logging.WARNING))
