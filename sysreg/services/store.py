"""
Atomic file writes.

Files are written to a temporary file in the target directory and renamed
into place, so a reader never observes a partially written file.
"""

import os
import tempfile
from pathlib import Path


def save_bytes(path: Path, content: bytes, mode: int = 0o600) -> None:
    """Atomically replace ``path`` with ``content``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "wb",
        dir=path.parent,
        prefix=f".{path.name}.new",
        delete=False,
    ) as tmp:
        try:
            os.chmod(tmp.name, mode)
            tmp.write(content)
            tmp.flush()
            os.fsync(tmp.fileno())
        except BaseException:
            Path(tmp.name).unlink(missing_ok=True)
            raise

    try:
        os.replace(tmp.name, path)
    finally:
        Path(tmp.name).unlink(missing_ok=True)


def save_text(path: Path, text: str, mode: int = 0o600) -> None:
    """Atomically replace ``path`` with UTF-8 encoded ``text``."""
    save_bytes(path, text.encode("utf-8"), mode)
