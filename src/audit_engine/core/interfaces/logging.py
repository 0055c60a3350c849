from abc import ABC, abstractmethod


class LoggingPort(ABC):
    """Logger surface used by core code. Messages take printf-style args."""

    @abstractmethod
    def debug(self, msg: str, *args): ...

    @abstractmethod
    def info(self, msg: str, *args): ...

    @abstractmethod
    def warning(self, msg: str, *args): ...

    @abstractmethod
    def error(self, msg: str, *args): ...
