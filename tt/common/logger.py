import logging
import os
from pathlib import Path
from logging.handlers import RotatingFileHandler
from tt.common.setup import PATHS
from datetime import datetime

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s:%(filename)s:%(lineno)d] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Library loggers that share our handlers. httpx logs every request at INFO, which would drown the timer log while
# polling, so only their warnings and errors are kept.
LIBRARY_LOGGERS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
}

# Set TASKTIMER_CONSOLE=1 to mirror the log to stderr when running from a terminal.
def console_requested():
    return os.environ.get("TASKTIMER_CONSOLE", "").strip().lower() in ("1", "true", "yes")

# Adds a handler under a stable name, unless the logger already has one by that name.
def _add_handler(logger, handler_name, build, level, fmt):
    if any(h.get_name() == handler_name for h in logger.handlers):
        return
    handler = build()
    handler.setLevel(level)
    handler.setFormatter(fmt)
    handler.set_name(handler_name)
    logger.addHandler(handler)

def get_logger(
        name = "tasktimer",
        level = logging.INFO,
        log_dir: Path | None = None,
        max_bytes = 5 * 1024 * 1024,
        backup_count = 5,
        persistent = True,
        console = False,
        historical_debugs: int = 10
) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.propagate = False
    logger.setLevel(level)

    log_dir = log_dir or PATHS.logs
    log_dir.mkdir(parents=True,exist_ok=True)
    fmt = logging.Formatter(LOG_FORMAT,LOG_DATE_FORMAT)

    # Rotating log kept across runs
    if persistent:
        _add_handler(logger, f"{name}:persistent", lambda: RotatingFileHandler(
            filename=log_dir / f"{name}.log",
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        ), level, fmt)

    # Only the current run, overwritten each start
    _add_handler(logger, f"{name}:latest", lambda: logging.FileHandler(
        filename=log_dir / "latest.log",
        mode="w",
        encoding="utf-8",
    ), level, fmt)

    # One debug file per run, so a session where the display drifted from the server can be dug up later
    if historical_debugs > 0:
        historical_debug_path = log_dir / "debug"
        historical_debug_path.mkdir(parents=True,exist_ok=True)
        run_log_path = historical_debug_path / f"{name}_{datetime.now():%Y-%m-%d_%H-%M-%S}.log"
        _add_handler(logger, f"{name}:historical_debug", lambda: logging.FileHandler(
            filename=run_log_path,
            encoding="utf-8",
        ), logging.DEBUG, fmt)

        # Prune oldest runs
        runs = sorted(historical_debug_path.glob(f"{name}_*.log"),key=lambda p: p.stat().st_mtime,reverse=True)
        for run in runs[historical_debugs:]:
            try: run.unlink()
            except OSError: pass

    if console:
        _add_handler(logger, f"{name}:console", logging.StreamHandler, level, fmt)

    return logger

# Sends the given library loggers through the same handlers as ``logger``, at their own thresholds.
def attach_library_loggers(logger, levels=None):
    for library_name, library_level in (LIBRARY_LOGGERS if levels is None else levels).items():
        library_logger = logging.getLogger(library_name)
        library_logger.setLevel(library_level)
        library_logger.propagate = False
        for handler in logger.handlers:
            if handler not in library_logger.handlers:
                library_logger.addHandler(handler)

log = get_logger(level=logging.DEBUG,console=console_requested(),historical_debugs=10)
attach_library_loggers(log)
log.info(f"=== TaskTimer session started, data folder '{PATHS.data}' ===")
