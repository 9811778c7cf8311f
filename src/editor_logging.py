import json
import logging
import sys
from contextlib import contextmanager
from datetime import datetime

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(task_id)s] %(message)s"


class TaskIdFilter(logging.Filter):
    """Fill ``record.task_id``; records logged through a task adapter keep theirs."""

    def __init__(self, task_id=None):
        super().__init__()
        self._task_id = task_id or "-"

    def filter(self, record):
        if not getattr(record, "task_id", None):
            record.task_id = self._task_id
        return True


class JsonLineHandler(logging.Handler):
    def __init__(self, path, task_id=None):
        super().__init__()
        self._path = path
        self._task_id = task_id
        self._stream = open(path, "a", encoding="utf-8")
        self._exception_formatter = logging.Formatter()

    def emit(self, record):
        payload = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "task_id": getattr(record, "task_id", None) or self._task_id,
            "thread": record.threadName,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        event = getattr(record, "event", None)
        if event is not None:
            payload["event"] = event
        if record.exc_info:
            payload["exception"] = self._exception_formatter.formatException(record.exc_info)
        if record.stack_info:
            payload["stack_info"] = record.stack_info
        try:
            self.acquire()
            self._stream.write(json.dumps(payload, ensure_ascii=False) + "\n")
            self._stream.flush()
        finally:
            self.release()

    def close(self):
        try:
            if self._stream:
                self._stream.close()
        finally:
            self._stream = None
            super().close()


def setup_logging(log_path=None, verbose=False, task_id=None, event_log_path=None, stream=None):
    log_level = logging.DEBUG if verbose else logging.INFO
    root_logger = logging.getLogger()
    if root_logger.handlers:
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)
            handler.close()
    task_id_filter = TaskIdFilter(task_id)
    handlers = []
    stream_handler = logging.StreamHandler(stream or sys.stderr)
    stream_handler.addFilter(task_id_filter)
    handlers.append(stream_handler)
    if log_path:
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.addFilter(task_id_filter)
        handlers.append(file_handler)
    if event_log_path:
        event_handler = JsonLineHandler(event_log_path, task_id=task_id)
        event_handler.addFilter(task_id_filter)
        handlers.append(event_handler)
    logging.basicConfig(level=log_level, format=LOG_FORMAT, handlers=handlers, force=True)
    return handlers


def setup_logging_from_config(logging_config, task_id=None, stream=None):
    """Configure logging from an ``app_config.LoggingConfig`` section."""
    return setup_logging(
        logging_config.log_file,
        logging_config.verbose,
        task_id=task_id,
        event_log_path=logging_config.event_log_file,
        stream=stream,
    )


@contextmanager
def setup_logging_context(log_path=None, verbose=False, task_id=None, event_log_path=None, stream=None):
    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    original_level = root_logger.level
    for handler in original_handlers:
        root_logger.removeHandler(handler)
    installed = setup_logging(
        log_path,
        verbose,
        task_id=task_id,
        event_log_path=event_log_path,
        stream=stream,
    )
    try:
        yield installed
    finally:
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)
            handler.close()
        for handler in original_handlers:
            root_logger.addHandler(handler)
        root_logger.setLevel(original_level)
