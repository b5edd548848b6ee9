"""
Central logging configuration utilities.

Usage
-----
In the entrypoint (server, panel host, manual runs):

    from utils.logging_utils import setup_logging

    def main() -> None:
        setup_logging(level="INFO", panel_name="weatherpane")
        ...

In a module:

    from utils.logging_utils import get_tagged_logger

    logger = get_tagged_logger(__name__, tag="geocoding_client")

    def resolve() -> None:
        logger.info("Resolving location")

The panel owns stdout for drawing, so every handler configured here writes to
stderr or to an optional log file. Records always carry:
- panel_name (one per process)
- tag (component)
- logger name, message
"""

from __future__ import annotations

import logging
import logging.config
from typing import Any, Dict, Iterable, Mapping, Optional


# ---------------------------------------------------------------------------
# Minimal bootstrap config (early logs)
# ---------------------------------------------------------------------------

# Anything logged before setup_logging() still gets timestamps + levels.
BOOTSTRAP_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"
BOOTSTRAP_DATEFMT = "%Y-%m-%d %H:%M:%S"

logging.basicConfig(
    level=logging.INFO,
    format=BOOTSTRAP_FORMAT,
    datefmt=BOOTSTRAP_DATEFMT,
)


# ---------------------------------------------------------------------------
# Defaults for full configuration
# ---------------------------------------------------------------------------

DEFAULT_LOG_FORMAT = (
    "%(asctime)s | %(levelname)s | %(panel_name)s | %(tag)s | %(name)s | %(message)s"
)
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# HTTP stack loggers that would otherwise log every request at DEBUG/INFO.
NOISY_LOGGERS = ("urllib3", "requests_cache", "httpx")

_CONFIGURED: bool = False


# ---------------------------------------------------------------------------
# Filters to enrich log records
# ---------------------------------------------------------------------------

class EnsureTagFilter(logging.Filter):
    """
    Ensure every LogRecord has a `tag` attribute.

    - If a LoggerAdapter has already provided `record.tag`, leave it alone.
    - Otherwise derive it from the last segment of the logger name,
      e.g. "weatherpane.data_sources.geocoding_client" -> "geocoding_client".
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        """Ensure the record has a tag attribute."""
        if not hasattr(record, "tag"):
            logger_name = getattr(record, "name", "")
            record.tag = logger_name.split(".")[-1] if logger_name else "-"
        return True


class PanelNameFilter(logging.Filter):
    """
    Inject a `panel_name` attribute into every LogRecord.

    Several panels may share one log file (one per multiplexer pane); the
    name tells their records apart. Defaults to "-".
    """

    def __init__(self, panel_name: Optional[str] = None) -> None:
        """Initialize with a fixed panel name."""
        super().__init__()
        self._panel_name = panel_name or "-"

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        """Inject the panel_name attribute when missing."""
        if not hasattr(record, "panel_name"):
            record.panel_name = self._panel_name
        return True


# ---------------------------------------------------------------------------
# Config builder and setup function
# ---------------------------------------------------------------------------


def build_logging_config(
    *,
    level: str | int = "INFO",
    log_format: str = DEFAULT_LOG_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
    panel_name: Optional[str] = None,
    log_file: Optional[str] = None,
    quiet_loggers: Iterable[str] = NOISY_LOGGERS,
) -> Mapping[str, Any]:
    """
    Build a dictConfig-style logging configuration.

    Parameters
    ----------
    level:
        Root logger level (e.g., "DEBUG", "INFO", logging.INFO).
    log_format:
        Formatter pattern for log messages.
    date_format:
        Formatter pattern for timestamps.
    panel_name:
        Optional logical name for this panel instance.
    log_file:
        When set, records are also appended to this file.
    quiet_loggers:
        Logger names capped at WARNING.

    Returns
    -------
    dict suitable for logging.config.dictConfig().
    """
    handlers: Dict[str, Any] = {
        "stderr": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
            "filters": ["ensure_tag", "panel_name"],
            "level": "DEBUG",
            "stream": "ext://sys.stderr",
        },
    }
    if log_file:
        handlers["file"] = {
            "class": "logging.FileHandler",
            "formatter": "standard",
            "filters": ["ensure_tag", "panel_name"],
            "level": "DEBUG",
            "filename": log_file,
            "encoding": "utf-8",
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "ensure_tag": {"()": EnsureTagFilter},
            "panel_name": {"()": PanelNameFilter, "panel_name": panel_name},
        },
        "formatters": {
            "standard": {
                "format": log_format,
                "datefmt": date_format,
            },
        },
        "handlers": handlers,
        "loggers": {name: {"level": "WARNING"} for name in quiet_loggers},
        "root": {
            "level": level,
            "handlers": list(handlers),
        },
    }


def setup_logging(
    *,
    level: str | int = "INFO",
    log_format: str = DEFAULT_LOG_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
    panel_name: Optional[str] = None,
    log_file: Optional[str] = None,
    override_existing: bool = False,
) -> None:
    """
    Configure process-wide logging once.

    Call this from the entrypoint before starting the panel host.
    Repeated calls are a no-op unless `override_existing` is True.
    """
    global _CONFIGURED

    if _CONFIGURED and not override_existing:
        return

    config_dict = build_logging_config(
        level=level,
        log_format=log_format,
        date_format=date_format,
        panel_name=panel_name,
        log_file=log_file,
    )
    logging.config.dictConfig(config_dict)
    _CONFIGURED = True


# ---------------------------------------------------------------------------
# Logger helper
# ---------------------------------------------------------------------------


def get_tagged_logger(
    name: str,
    *,
    tag: Optional[str] = None,
) -> logging.LoggerAdapter:
    """
    Return a LoggerAdapter that always carries a `tag` field.

    If `tag` is omitted it defaults to the last segment of `name`. Use it like
    a normal logger:

        logger = get_tagged_logger(__name__, tag="pipeline")
        logger.info("Entered ready", extra={"generation": 2})
    """
    base_logger = logging.getLogger(name)
    if tag is None:
        tag = name.split(".")[-1]
    return _TagAdapter(base_logger, {"tag": tag})


class _TagAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges per-call `extra` with the adapter's tag."""

    def process(self, msg, kwargs):
        """Keep call-site extras instead of replacing them with the tag."""
        extra = dict(kwargs.get("extra") or {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs
