"""
Crash-safe file replacement.

Write to a temp file in the target directory, fsync, then os.replace over
the target. Readers see either the old or the new content, never a mix.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional


def atomic_write_text(path: Path, text: str, mode: Optional[int] = None) -> None:
    """
    Atomically replace path with text.

    Args:
        path: Target file
        text: UTF-8 content
        mode: Optional permission bits applied before the rename

    Raises:
        OSError: On any filesystem failure (temp file is cleaned up)
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        if mode is not None:
            os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.remove(tmp_path)
        except OSError:
            pass
        raise

    _fsync_dir(path.parent)


def _fsync_dir(directory: Path) -> None:
    # Persists the rename itself; not supported on every platform.
    try:
        dir_fd = os.open(str(directory), os.O_RDONLY)
    except OSError:
        return
    try:
        os.fsync(dir_fd)
    except OSError:
        pass
    finally:
        os.close(dir_fd)
