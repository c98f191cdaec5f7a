import logging
import sys
from typing import Protocol

from colorama import Fore, Style, init

_logger = logging.getLogger("expose-bridge")


class BridgeLogger(Protocol):
    """Minimal logging surface every pipeline component accepts."""

    def debug(self, msg: str) -> None: ...

    def info(self, msg: str) -> None: ...

    def warning(self, msg: str) -> None: ...

    def error(self, msg: str) -> None: ...


class ConsoleManager:
    """Manages console output, respecting quiet/verbose/color flags."""

    def __init__(self, level: int = logging.INFO, no_color: bool = False) -> None:
        self.level = level
        self.no_color = no_color
        if not no_color:
            init(autoreset=True)

    @classmethod
    def configure(cls, level: int, no_color: bool) -> "ConsoleManager":
        """Install a stderr handler on the root logger and return a manager."""
        logging.basicConfig(
            level=level,
            format="%(message)s",  # Handled by ConsoleManager
            handlers=[logging.StreamHandler(sys.stderr)],
        )
        return cls(level=level, no_color=no_color)

    def _log(
        self, msg: str, log_level: int, color: str = "", exc_info: bool = False
    ) -> None:
        if log_level < self.level:
            return

        if not self.no_color and color:
            msg = f"{color}{msg}{Style.RESET_ALL}"

        _logger.log(log_level, msg, exc_info=exc_info)

    def debug(self, msg: str) -> None:
        self._log(msg, logging.DEBUG, Style.DIM)

    def info(self, msg: str) -> None:
        self._log(msg, logging.INFO)

    def warning(self, msg: str) -> None:
        self._log(msg, logging.WARNING, Fore.YELLOW)

    def error(self, msg: str) -> None:
        self._log(msg, logging.ERROR, Fore.RED)

    def critical(self, msg: str, exc_info: bool = False) -> None:
        self._log(msg, logging.CRITICAL, Fore.RED + Style.BRIGHT, exc_info)


class PrefixedLogger:
    """Prepends a run tag such as ``[expose-bridge:watch:3]`` to every message."""

    def __init__(self, inner: BridgeLogger, prefix: str) -> None:
        self._inner = inner
        self._prefix = prefix

    def debug(self, msg: str) -> None:
        self._inner.debug(f"[{self._prefix}]: {msg}")

    def info(self, msg: str) -> None:
        self._inner.info(f"[{self._prefix}]: {msg}")

    def warning(self, msg: str) -> None:
        self._inner.warning(f"[{self._prefix}]: {msg}")

    def error(self, msg: str) -> None:
        self._inner.error(f"[{self._prefix}]: {msg}")
