# moneytracker/core/logging.py
# JSON lines to stdout + levels

from __future__ import annotations
import logging
import sys

_JSON_FMT = (
    '{"level":"%(levelname)s","ts":"%(asctime)s",'
    '"name":"%(name)s","msg":"%(message)s"}'
)

# apscheduler logs every job run at INFO
_NOISY = ("apscheduler.executors.default", "aiosqlite")


def setup_logging(level: str = "INFO") -> None:
    logger = logging.getLogger()
    logger.handlers.clear()
    logger.setLevel(level.upper())

    h = logging.StreamHandler(sys.stdout)
    h.setFormatter(logging.Formatter(_JSON_FMT))
    logger.addHandler(h)

    for name in _NOISY:
        logging.getLogger(name).setLevel(logging.WARNING)
