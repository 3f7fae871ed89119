from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from velibadvisor.config.models import LoggingSettings


DECISION_LOGGER_NAME = "velibadvisor.decisions"
_DECISION_HANDLER_NAME = "velibadvisor-decision-file"


def _attach_decision_file(path: Path, fmt: str) -> None:
    """
    Append one line per analysed journey to `path`.

    The records still propagate to the root handlers; this file is an extra, greppable trail
    of recommendations. Re-running setup replaces the handler instead of stacking a second one.
    """

    decisions = logging.getLogger(DECISION_LOGGER_NAME)
    for handler in list(decisions.handlers):
        if handler.get_name() == _DECISION_HANDLER_NAME:
            decisions.removeHandler(handler)
            handler.close()

    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.set_name(_DECISION_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(fmt))
    decisions.addHandler(handler)
    decisions.setLevel(logging.INFO)


def configure_logging(settings: LoggingSettings) -> None:
    level = getattr(logging, settings.level.upper(), None)
    if not isinstance(level, int):
        raise ValueError(f"Invalid log level: {settings.level}")

    handlers: Optional[list[logging.Handler]] = None
    if settings.file is not None:
        settings.file.parent.mkdir(parents=True, exist_ok=True)
        handlers = [logging.FileHandler(settings.file, encoding="utf-8"), logging.StreamHandler()]

    logging.basicConfig(level=level, format=settings.format, handlers=handlers)
    # urllib3 retry chatter drowns out provider fallbacks at INFO.
    logging.getLogger("urllib3").setLevel(max(level, logging.WARNING))

    if settings.decision_file is not None:
        _attach_decision_file(settings.decision_file, settings.format)
