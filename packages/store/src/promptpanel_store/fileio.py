"""File helpers shared by every writer that rewrites a file in place.

Both the audit partitions (update_outcome) and the weights config (adapt
--apply) follow a read-all, mutate, write-all pattern. Two rules keep that
safe within a process:

- hold path_lock(path) for the whole read-modify-write;
- write through atomic_write_text() or atomic_write_bytes() so readers see
  either the old file or the new one, never a truncated mix.
"""

from __future__ import annotations

import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path

_registry_lock = threading.Lock()
_path_locks: dict[str, threading.RLock] = {}


@contextmanager
def path_lock(path):
    """Serialise access to one file path across threads of this process."""
    key = os.path.abspath(os.fspath(path))
    with _registry_lock:
        lock = _path_locks.setdefault(key, threading.RLock())
    with lock:
        yield


def atomic_write_text(path, text: str) -> None:
    """Write UTF-8 text to path; see atomic_write_bytes()."""
    atomic_write_bytes(path, text.encode("utf-8"))


def atomic_write_bytes(path, data: bytes) -> None:
    """Write bytes to path via a sibling temp file and os.replace().

    Raises OSError on failure; the original file is left untouched.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, target)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
