"""
Shared fixtures: a logger that records messages and a helper that writes a
small Python project into ``tmp_path``.
"""

import textwrap
from pathlib import Path
from typing import Callable

import pytest

from exposebridge.config import BridgeOptions
from exposebridge.pipeline import BridgeGenerator


class RecordingLogger:
    """Collects messages per level instead of printing them."""

    def __init__(self) -> None:
        self.debugs: list[str] = []
        self.infos: list[str] = []
        self.warnings: list[str] = []
        self.errors: list[str] = []

    def debug(self, msg: str) -> None:
        self.debugs.append(msg)

    def info(self, msg: str) -> None:
        self.infos.append(msg)

    def warning(self, msg: str) -> None:
        self.warnings.append(msg)

    def error(self, msg: str) -> None:
        self.errors.append(msg)

    def critical(self, msg: str, exc_info: bool = False) -> None:
        self.errors.append(msg)


ProjectWriter = Callable[[dict[str, str]], Path]


@pytest.fixture
def logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def write_project(tmp_path: Path) -> ProjectWriter:
    """Write ``{relative path: source}`` under ``tmp_path`` and return the root."""

    def _write(files: dict[str, str]) -> Path:
        for rel, text in files.items():
            path = tmp_path / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(text).lstrip("\n"), encoding="utf-8")
        return tmp_path.resolve()

    return _write


@pytest.fixture
def options(tmp_path: Path) -> BridgeOptions:
    return BridgeOptions(base_dir=str(tmp_path), concurrency=2)


@pytest.fixture
def generator(options: BridgeOptions, logger: RecordingLogger) -> BridgeGenerator:
    return BridgeGenerator(options, logger)


USER_PROJECT = {
    "app/__init__.py": "",
    "app/models.py": """
        from dataclasses import dataclass


        @dataclass
        class User:
            id: int
            name: str
        """,
    "app/services.py": """
        from .models import User


        class UserService:
            # @decorator expose userAPI
            async def getUser(self, id: int) -> User:
                return User(id=id, name="Ada")


        # @decorator expose
        async def getUptime() -> float:
            return 1.0
        """,
}


@pytest.fixture
def user_project(write_project: ProjectWriter) -> Path:
    return write_project(USER_PROJECT)
