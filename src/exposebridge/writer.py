from __future__ import annotations

import os
import uuid
from dataclasses import dataclass
from pathlib import Path

from .errors import ArtifactWriteError
from .shared.console import BridgeLogger


@dataclass(slots=True, frozen=True)
class WriteOutcome:
    path: Path
    changed: bool


class ArtifactWriter:
    """
    Writes generated text atomically and only when it differs from what is
    already on disk, so unchanged runs leave files (and their mtimes) alone.
    """

    def __init__(self, logger: BridgeLogger) -> None:
        self._logger = logger

    def write(self, path: Path, content: str) -> WriteOutcome:
        if self._is_current(path, content):
            self._logger.debug(f"Unchanged: {path}")
            return WriteOutcome(path=path, changed=False)

        tmp = path.parent / f".{path.name}.{uuid.uuid4().hex}.tmp"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8", newline="\n") as f:
                f.write(content)
            os.replace(tmp, path)
        except OSError as e:
            self._cleanup(tmp)
            raise ArtifactWriteError(str(path), e) from e

        self._logger.debug(f"Wrote {len(content)} bytes to {path}")
        return WriteOutcome(path=path, changed=True)

    @staticmethod
    def _is_current(path: Path, content: str) -> bool:
        try:
            with open(path, "r", encoding="utf-8", newline="") as f:
                return f.read() == content
        except (OSError, UnicodeDecodeError):
            return False

    def _cleanup(self, tmp: Path) -> None:
        try:
            tmp.unlink(missing_ok=True)
        except OSError as e:
            self._logger.debug(f"Could not remove temp file {tmp}: {e}")
