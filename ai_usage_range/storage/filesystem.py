"""
File system access for persistence.

Provides the read/write/mkdir primitives used by the daily cache so they
can be swapped out in tests.
"""

import os
import tempfile
from pathlib import Path


class LocalFileSystem:
    """Local disk primitives with atomic whole-file replacement."""

    def exists(self, path: Path) -> bool:
        return Path(path).exists()

    def read_text(self, path: Path) -> str:
        return Path(path).read_text(encoding="utf-8")

    def mkdir(self, path: Path) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)

    def write_text(self, path: Path, data: str) -> None:
        """Write data to a temp file in the target directory, then rename.

        A concurrent reader sees either the old or the new complete file,
        never a partial one.

        Args:
            path: Destination file path
            data: Text content to write
        """
        path = Path(path)
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data)
            os.replace(tmp_path, path)
        except Exception:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
