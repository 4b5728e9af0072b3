"""Local filesystem sink for captured diagnostics."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union


@dataclass
class LocalStorage:
    """Writes artifacts below `base_dir` using relative keys (e.g. `scan-7/job.yaml`)."""

    base_dir: str = "./job-diagnostics"

    def __post_init__(self) -> None:
        """Ensure base directory exists."""
        self.base_dir = os.path.abspath(self.base_dir)
        Path(self.base_dir).mkdir(parents=True, exist_ok=True)

    def _path(self, rel_key: str) -> Path:
        """Convert relative key to absolute file path."""
        rel_key = rel_key.lstrip("/")
        return Path(self.base_dir) / rel_key

    def path(self, rel_key: str) -> str:
        return str(self._path(rel_key))

    def exists(self, rel_key: str) -> bool:
        """Return True if the file or directory exists."""
        return self._path(rel_key).exists()

    def ensure_dir(self, rel_key: str) -> str:
        """Create a directory (idempotent) and return its absolute path."""
        path = self._path(rel_key)
        path.mkdir(parents=True, exist_ok=True)
        return str(path)

    def put_text(self, rel_key: str, body: str) -> None:
        path = self._path(rel_key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(body or "", encoding="utf-8")

    def put_bytes(self, rel_key: str, body: Union[bytes, bytearray]) -> None:
        path = self._path(rel_key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(bytes(body or b""))
