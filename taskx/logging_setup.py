from __future__ import annotations

import logging
import sys

# Third-party loggers that are chatty at INFO.
_QUIET_LOGGERS = ("googleapiclient.discovery_cache", "httpx", "httpcore", "urllib3")


def setup_logging(level: str | int = logging.INFO) -> None:
    """Configure console logging for the API process and the reminder job.

    Call this once, before the first log line. Safe to call again: the
    handler installed by a previous call is replaced, not duplicated.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)

    for handler in list(root.handlers):
        if getattr(handler, "_taskx_handler", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s", "%Y-%m-%d %H:%M:%S")
    )
    handler._taskx_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
