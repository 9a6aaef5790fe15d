"""Atomic file writes for temporary media artifacts.

Content goes to a temp file in the target directory and is renamed into
place, so the file server never streams a partially written voice note.
"""

import os
import tempfile
from pathlib import Path

from loguru import logger


class AtomicFileWriter:
    """Temp-and-rename writer.

    Usage::

        writer = AtomicFileWriter()
        await writer.write_bytes(path, data)
    """

    async def write_bytes(self, path: Path, content: bytes) -> bool:
        """Atomically write *content* to *path*.

        Returns ``True`` on success, ``False`` on failure.
        """
        temp_path: str | None = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(
                dir=path.parent,
                prefix=f".{path.name}.",
                suffix=".tmp",
            )
            try:
                os.write(fd, content)
            finally:
                os.close(fd)

            Path(temp_path).replace(path)
            return True
        except OSError as exc:
            logger.error(f"Atomic write failed for {path}: {exc}")
            if temp_path:
                Path(temp_path).unlink(missing_ok=True)
            return False
