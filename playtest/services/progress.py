"""
Progress reporters - user-facing run progress, separate from logging
"""
import logging
from abc import ABC, abstractmethod


class ProgressReporter(ABC):
    """Receives short status lines as a run moves through its phases."""

    @abstractmethod
    def start(self, message: str):
        pass

    @abstractmethod
    def succeed(self, message: str):
        pass

    @abstractmethod
    def fail(self, message: str):
        pass

    @abstractmethod
    def warn(self, message: str):
        pass

    @abstractmethod
    def info(self, message: str):
        pass


class SilentProgressReporter(ProgressReporter):
    """Discards progress, for API runs and tests."""

    def start(self, message: str):
        pass

    def succeed(self, message: str):
        pass

    def fail(self, message: str):
        pass

    def warn(self, message: str):
        pass

    def info(self, message: str):
        pass


class LoggingProgressReporter(ProgressReporter):
    """Sends progress to the `playtest.progress` logger."""

    def __init__(self, logger_name: str = "playtest.progress"):
        self.logger = logging.getLogger(logger_name)

    def start(self, message: str):
        self.logger.info(f"... {message}")

    def succeed(self, message: str):
        self.logger.info(f"OK  {message}")

    def fail(self, message: str):
        self.logger.error(f"ERR {message}")

    def warn(self, message: str):
        self.logger.warning(f"!   {message}")

    def info(self, message: str):
        self.logger.info(message)
