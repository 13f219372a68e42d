import json
import logging
import os
from logging.handlers import RotatingFileHandler

EVENTS_LEVEL_NUM = 38
DEFAULT_LOG_BACKUP_COUNT = 10
EVENTS_LOGGER_NAME = "calibra.event"


# substrate-interface logs these on every websocket reconnect / keep-alive
_SUBSTRATE_NOISE_SUBSTRS = (
    "Websocket connection closed",
    "Reconnecting to",
    "Unexpected header key encountered",
)


class _SubstrateNoiseFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except Exception:
            return True
        return not any(s in message for s in _SUBSTRATE_NOISE_SUBSTRS)


_substrate_noise_filter = _SubstrateNoiseFilter()


def suppress_substrate_noise() -> None:
    targets = (
        "bittensor",
        "substrateinterface",
        "substrateinterface.base",
        "websocket",
    )
    for name in targets:
        logging.getLogger(name).addFilter(_substrate_noise_filter)


def setup_events_logger(full_path, events_retention_size):
    """Audit logger writing one EVENT line per terminal commit/resolve result."""
    logging.addLevelName(EVENTS_LEVEL_NUM, "EVENT")

    logger = logging.getLogger(EVENTS_LOGGER_NAME)
    logger.setLevel(EVENTS_LEVEL_NUM)
    logger.propagate = False

    def event(self, message, *args, **kws):
        if self.isEnabledFor(EVENTS_LEVEL_NUM):
            self._log(EVENTS_LEVEL_NUM, message, args, **kws)

    logging.Logger.event = event

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    os.makedirs(full_path, exist_ok=True)
    path = os.path.join(full_path, "events.log")
    for handler in logger.handlers:
        if isinstance(handler, RotatingFileHandler) and handler.baseFilename == os.path.abspath(path):
            return logger

    file_handler = RotatingFileHandler(
        path,
        maxBytes=events_retention_size,
        backupCount=DEFAULT_LOG_BACKUP_COUNT,
    )
    file_handler.setFormatter(formatter)
    file_handler.setLevel(EVENTS_LEVEL_NUM)
    logger.addHandler(file_handler)

    return logger


def log_event(logger, event: str, payload: dict) -> None:
    """Write a single JSON line at EVENT level. No-op when logger is None."""
    if logger is None:
        return
    line = json.dumps({"event": event, **payload}, sort_keys=True, default=str)
    logger.event(line)


__all__ = [
    "EVENTS_LEVEL_NUM",
    "DEFAULT_LOG_BACKUP_COUNT",
    "EVENTS_LOGGER_NAME",
    "suppress_substrate_noise",
    "setup_events_logger",
    "log_event",
]
