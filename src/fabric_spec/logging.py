import logging
import os
from typing import List, Optional


FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
DATEFMT = "%Y-%m-%d %H:%M:%S"

_handlers: Optional[List[logging.Handler]] = None


def level_from_env(value: Optional[str] = None) -> int:
    """Resolve LOG_LEVEL given as a name ("debug", "WARN") or a number; INFO otherwise."""
    raw = (value if value is not None else os.environ.get("LOG_LEVEL", "")).strip()
    if raw.isdigit():
        return int(raw)
    level = logging.getLevelName(raw.upper()) if raw else logging.INFO
    return level if isinstance(level, int) else logging.INFO


def _shared_handlers() -> List[logging.Handler]:
    # Shared by every fabric-spec logger; LOG_FILE is opened once.
    global _handlers
    if _handlers is not None:
        return _handlers
    formatter = logging.Formatter(fmt=FORMAT, datefmt=DATEFMT)
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    _handlers = [console]

    log_file = os.environ.get("LOG_FILE")
    if log_file:
        try:
            fh = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as exc:
            logging.getLogger(__name__).warning("LOG_FILE %r could not be opened (%s); logging to console only", log_file, exc)
        else:
            fh.setFormatter(formatter)
            _handlers.append(fh)
    return _handlers


def get_logger(name: str) -> logging.Logger:
    """Return the `fabric-spec-*` logger for a module, configured on first use.

    Level comes from LOG_LEVEL; output goes to the console and, when LOG_FILE
    is set, to that file as well.
    """
    logger = logging.getLogger(name)
    if getattr(logger, "_fabric_spec_configured", False):
        return logger
    logger.setLevel(level_from_env())
    for handler in _shared_handlers():
        logger.addHandler(handler)
    logger.propagate = False
    setattr(logger, "_fabric_spec_configured", True)
    return logger
