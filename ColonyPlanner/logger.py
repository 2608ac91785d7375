"""
ColonyPlanner Logger - Persistent file-based logging.

Provides structured, levelled logging to rotating log files so you can
review exactly why the planner put a wall, a road or an extension where it
did, long after the tick that made the decision has passed.

Usage
-----
    from ColonyPlanner.logger import get_logger

    log = get_logger()          # module-level logger
    log.info("Planning pass started")
    log.debug("Cost matrix built in %d iterations", n)
    log.warning("No anchor found, retrying next tick")

    # Planner-specific helpers
    log.plan_event("ANCHOR", "(24, 19) score=12.40", tick=1234)
    log.placement("core", anchor, added=14, duplicates=0, conflicts=2, tick=1234)

The log file lives at  logs/colony_<timestamp>.log  relative to the working
directory (override with COLONY_LOG_DIR). Old log files are kept for up to
LOG_BACKUP_COUNT rotations before being deleted.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Mapping, Optional


# ── Configuration ────────────────────────────────────────────────────────────

LOG_DIR          = Path(os.getenv("COLONY_LOG_DIR", "logs"))
LOG_LEVEL        = getattr(logging, os.getenv("COLONY_LOG_LEVEL", "DEBUG").upper(), logging.DEBUG)
CONSOLE_LEVEL    = getattr(logging, os.getenv("COLONY_CONSOLE_LEVEL", "INFO").upper(), logging.INFO)
LOG_BACKUP_COUNT = 10                   # How many old log files to keep
MAX_BYTES        = 5 * 1024 * 1024      # 5 MB per file before rotating


# ── Custom log levels ─────────────────────────────────────────────────────────

PLAN_EVENT_LEVEL = 25   # between INFO (20) and WARNING (30)
PLACEMENT_LEVEL  = 15   # between DEBUG (10) and INFO (20)

logging.addLevelName(PLAN_EVENT_LEVEL, "PLAN")
logging.addLevelName(PLACEMENT_LEVEL,  "PLACE")


# ── Custom formatter ──────────────────────────────────────────────────────────

class ColonyFormatter(logging.Formatter):
    """
    Adds a [tick] column when a 'tick' extra field is present, so log lines
    can be correlated directly to the simulation step that produced them.

    Example output:
        2026-10-19 21:14:03.412 | INFO    |       - | Logger initialised
        2026-10-19 21:14:05.001 | PLAN    |    1280 | ANCHOR | (24, 19) score=12.40
        2026-10-19 21:14:05.002 | PLACE   |    1280 | core @ (24, 19) | +14 dup=0 conflict=2
    """

    BASE_FMT  = "%(asctime)s.%(msecs)03d | %(levelname)-7s | %(tick_col)7s | %(message)s"
    DATE_FMT  = "%Y-%m-%d %H:%M:%S"

    def format(self, record: logging.LogRecord) -> str:
        tick = getattr(record, "tick", None)
        record.tick_col = "-" if tick is None else str(tick)
        record.levelname = record.levelname[:7]  # keep column width fixed
        return super().format(record)


# ── Logger factory ────────────────────────────────────────────────────────────

_logger_instance: Optional["ColonyLogger"] = None


def get_logger(name: str = "colony") -> "ColonyLogger":
    """
    Return the singleton ColonyLogger, creating it on first call.

    Call this once at module level in each file that needs logging:

        log = get_logger()
    """
    global _logger_instance
    if _logger_instance is None:
        _logger_instance = ColonyLogger(name)
    return _logger_instance


class ColonyLogger:
    """
    Thin wrapper around Python's standard logging that adds planner-specific
    helpers and wires up both a rotating file handler and a console handler.
    """

    def __init__(self, name: str = "colony") -> None:
        self._logger = logging.getLogger(name)
        self._logger.setLevel(LOG_LEVEL)

        # Avoid adding duplicate handlers if the logger is somehow re-initialised
        if self._logger.handlers:
            return

        self._setup_handlers()

    # ── Setup ─────────────────────────────────────────────────────────────────

    def _setup_handlers(self) -> None:
        LOG_DIR.mkdir(parents=True, exist_ok=True)

        timestamp  = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file   = LOG_DIR / f"colony_{timestamp}.log"

        formatter = ColonyFormatter(
            fmt     = ColonyFormatter.BASE_FMT,
            datefmt = ColonyFormatter.DATE_FMT,
        )

        # ── Rotating file handler ──────────────────────────────────────────
        file_handler = logging.handlers.RotatingFileHandler(
            filename    = log_file,
            maxBytes    = MAX_BYTES,
            backupCount = LOG_BACKUP_COUNT,
            encoding    = "utf-8",
        )
        file_handler.setLevel(LOG_LEVEL)
        file_handler.setFormatter(formatter)

        # ── Console handler ────────────────────────────────────────────────
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(CONSOLE_LEVEL)
        console_handler.setFormatter(formatter)

        self._logger.addHandler(file_handler)
        self._logger.addHandler(console_handler)

        self._logger.info(
            "Logger initialised, writing to %s",
            log_file.resolve(),
        )

    # ── Standard log levels ───────────────────────────────────────────────────

    def debug(self, msg: str, *args, tick: Optional[int] = None, **kwargs) -> None:
        self._logger.debug(msg, *args, extra={"tick": tick}, **kwargs)

    def info(self, msg: str, *args, tick: Optional[int] = None, **kwargs) -> None:
        self._logger.info(msg, *args, extra={"tick": tick}, **kwargs)

    def warning(self, msg: str, *args, tick: Optional[int] = None, **kwargs) -> None:
        self._logger.warning(msg, *args, extra={"tick": tick}, **kwargs)

    def error(self, msg: str, *args, tick: Optional[int] = None, **kwargs) -> None:
        self._logger.error(msg, *args, extra={"tick": tick}, **kwargs)

    def exception(self, msg: str, *args, tick: Optional[int] = None, **kwargs) -> None:
        self._logger.exception(msg, *args, extra={"tick": tick}, **kwargs)

    # ── Planner-specific helpers ──────────────────────────────────────────────

    def plan_event(
        self,
        event_type: str,
        detail: str,
        tick: Optional[int] = None,
    ) -> None:
        """
        Log a significant named planning event (anchor chosen, pass finished, ...).

        Example:
            log.plan_event("ANCHOR", "(24, 19) score=12.40", tick=1280)
            log.plan_event("PASS_DONE", "W1N1 +87 structures", tick=1280)
        """
        self._logger.log(
            PLAN_EVENT_LEVEL,
            "%s | %s",
            event_type.upper(),
            detail,
            extra={"tick": tick},
        )

    def placement(
        self,
        stamp_name: str,
        anchor: object,
        added: int,
        duplicates: int,
        conflicts: int,
        locked: int = 0,
        tick: Optional[int] = None,
    ) -> None:
        """
        Log the outcome of one stamp placement.

        Example:
            log.placement("extension_field", (29, 19), added=8, duplicates=0, conflicts=0)
        """
        locked_str = f" locked={locked}" if locked else ""
        self._logger.log(
            PLACEMENT_LEVEL,
            "%s @ %s | +%d dup=%d conflict=%d%s",
            stamp_name,
            tuple(anchor),
            added,
            duplicates,
            conflicts,
            locked_str,
            extra={"tick": tick},
        )

    def population(self, targets: Mapping[str, int], tick: Optional[int] = None) -> None:
        """
        Log a population target snapshot at DEBUG level.

        Example (called once per recompute, not every tick):
            log.population({"miner": 2, "hauler": 3, "upgrader": 2, "builder": 1})
        """
        self._logger.debug(
            "Population | %s",
            " ".join(f"{role}={count}" for role, count in targets.items()),
            extra={"tick": tick},
        )
