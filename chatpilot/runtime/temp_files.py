"""One-shot temporary media files served back to the messaging platform."""

from __future__ import annotations

import re
import uuid
from pathlib import Path

from loguru import logger

from chatpilot.utils.atomic_io import AtomicFileWriter
from chatpilot.utils.helpers import ensure_dir

_NAME_RE = re.compile(r"^[a-f0-9]{32}\.[a-z0-9]{1,5}$")


class TempFileStore:
    """
    Stores generated audio under a random name until it is fetched once.

    The serving boundary calls :meth:`claim`, which moves the file to a
    reserved name so a second request for the same name finds nothing, and
    :meth:`release` once it has been streamed out.
    """

    def __init__(self, directory: Path) -> None:
        self.directory = ensure_dir(directory)
        self._writer = AtomicFileWriter()

    async def save(self, content: bytes, ext: str = "mp3") -> str | None:
        """Persist *content* and return its file name, or None on failure."""
        name = f"{uuid.uuid4().hex}.{ext}"
        ok = await self._writer.write_bytes(self.directory / name, content)
        if not ok:
            return None
        logger.debug(f"Temp file stored: {name} ({len(content)} bytes)")
        return name

    def claim(self, name: str) -> Path | None:
        """Reserve a stored file for a single read; None if unknown or already claimed."""
        if not _NAME_RE.match(name):
            return None
        stem, ext = name.split(".", 1)
        claimed = self.directory / f"{stem}.claimed.{ext}"
        try:
            (self.directory / name).rename(claimed)
        except FileNotFoundError:
            return None
        return claimed

    def release(self, path: Path) -> None:
        path.unlink(missing_ok=True)

    def discard(self, name: str) -> None:
        (self.directory / name).unlink(missing_ok=True)
