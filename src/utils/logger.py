# file: src/utils/logger.py
# Logger manager shared by every component: one named logger per manager/store,
# console handler always, optional rotating file under <project_root>/logs.

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Dict, Optional

#patch: httpx logs every request at INFO, we log transport events ourselves.
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


class Logger:
    """Creates and tracks named loggers so they can all be closed on shutdown."""

    def __init__(self, project_root: Optional[str] = None, log_to_file: bool = False,
                 log_file_name: str = "console.log"):
        self.project_root = project_root or os.getcwd()
        self.log_to_file = log_to_file
        self.log_file_name = log_file_name
        self._loggers: Dict[str, logging.Logger] = {}
        self._formatter = logging.Formatter(_FORMAT)

    def create_logger(self, logger_name: str, logging_level: str = "INFO") -> logging.Logger:
        if logger_name in self._loggers:
            logger = self._loggers[logger_name]
            logger.setLevel(self._level(logging_level))
            return logger

        logger = logging.getLogger(logger_name)
        logger.setLevel(self._level(logging_level))
        # Own handlers only, keeps uvicorn's root config from doubling lines
        logger.propagate = False

        if not logger.handlers:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(self._formatter)
            logger.addHandler(console_handler)

            if self.log_to_file:
                logs_dir = os.path.join(self.project_root, "logs")
                os.makedirs(logs_dir, exist_ok=True)
                file_handler = RotatingFileHandler(
                    os.path.join(logs_dir, self.log_file_name),
                    maxBytes=5 * 1024 * 1024,
                    backupCount=3,
                )
                file_handler.setFormatter(self._formatter)
                logger.addHandler(file_handler)

        self._loggers[logger_name] = logger
        return logger

    def close_all_loggers(self) -> None:
        for logger in self._loggers.values():
            for handler in list(logger.handlers):
                handler.flush()
                handler.close()
                logger.removeHandler(handler)
        self._loggers.clear()

    @staticmethod
    def _level(logging_level) -> int:
        if isinstance(logging_level, int):
            return logging_level
        level = logging.getLevelName(str(logging_level).upper())
        # getLevelName returns "Level X" for unknown names
        return level if isinstance(level, int) else logging.INFO
