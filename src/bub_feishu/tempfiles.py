"""Scratch file paths for streaming uploads and downloads."""

from __future__ import annotations

import contextlib
import re
import tempfile
import uuid
from collections.abc import Iterator
from pathlib import Path

from loguru import logger

_UNSAFE_CHARS = re.compile(r'[/\\:*?"<>|]')


def sanitize_component(value: str) -> str:
    """Make a key or file name safe to embed in a scratch file name."""
    return _UNSAFE_CHARS.sub("_", value).replace("..", "_")


class TempPathBroker:
    """Issue process-unique scratch paths under one directory."""

    def __init__(self, scratch_dir: Path | str | None = None) -> None:
        self.scratch_dir = Path(scratch_dir) if scratch_dir is not None else Path(tempfile.gettempdir())

    def make_path(self, prefix: str, suffix: str) -> Path:
        """Return a fresh path. The file is not created."""
        return self.scratch_dir / f"{prefix}_{uuid.uuid4().hex}_{sanitize_component(suffix)}"

    @contextlib.contextmanager
    def scratch_path(self, prefix: str, suffix: str) -> Iterator[Path]:
        """Yield a fresh path and delete whatever was written there on exit."""
        path = self.make_path(prefix, suffix)
        try:
            yield path
        finally:
            release(path)


def release(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.debug("feishu.tempfile.release_failed path={} error={}", path, exc)
