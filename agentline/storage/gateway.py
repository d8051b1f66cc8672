"""PersistenceGateway — best-effort file storage for server state.

Documents are indent-formatted JSON written atomically (temp file, then
replace). A gateway bound to no directory stores nothing and loads nothing,
which is how servers run purely in memory.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import orjson

_logger = logging.getLogger(__name__)


class PersistenceGateway:
    """Stateless serializer bound to an optional base directory.

    Writes never raise: failures are logged and reported as ``False`` so a
    full disk cannot take a server down.
    """

    def __init__(self, base_dir: Path | str | None = None) -> None:
        self.base_dir = Path(base_dir) if base_dir is not None else None

    @property
    def enabled(self) -> bool:
        return self.base_dir is not None

    def path_for(self, name: str) -> Path | None:
        if self.base_dir is None:
            return None
        return self.base_dir / name

    # ── JSON documents ───────────────────────────────────────────

    async def save_document(self, name: str, document: Any) -> bool:
        if self.base_dir is None:
            return False
        try:
            data = orjson.dumps(document, option=orjson.OPT_INDENT_2)
        except TypeError:
            _logger.exception("Cannot serialize %s", name)
            return False
        return self._write_atomic(name, data)

    async def load_document(self, name: str) -> Any | None:
        data = self._read(name)
        if data is None:
            return None
        try:
            return orjson.loads(data)
        except orjson.JSONDecodeError:
            _logger.warning("Ignoring corrupt document %s", name)
            return None

    # ── Text files ───────────────────────────────────────────────

    async def save_text(self, name: str, text: str) -> bool:
        if self.base_dir is None:
            return False
        return self._write_atomic(name, text.encode("utf-8"))

    async def load_text(self, name: str) -> str | None:
        data = self._read(name)
        if data is None:
            return None
        return data.decode("utf-8", errors="replace")

    async def list_names(self, subdir: str = "", suffix: str = "") -> list[str]:
        """Names (relative to ``subdir``) of stored files, sorted."""
        if self.base_dir is None:
            return []
        folder = self.base_dir / subdir
        if not folder.is_dir():
            return []
        return sorted(p.name for p in folder.iterdir() if p.is_file() and p.name.endswith(suffix))

    # ── Internals ────────────────────────────────────────────────

    def _read(self, name: str) -> bytes | None:
        path = self.path_for(name)
        if path is None or not path.exists():
            return None
        try:
            return path.read_bytes()
        except OSError:
            _logger.exception("Failed to read %s", path)
            return None

    def _write_atomic(self, name: str, data: bytes) -> bool:
        path = self.path_for(name)
        assert path is not None
        tmp = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(data)
            os.replace(tmp, path)
            return True
        except OSError:
            _logger.exception("Failed to write %s", path)
            return False
