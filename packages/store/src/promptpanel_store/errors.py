"""Exceptions raised by the store layer.

Integrity failures are not exceptions: verify() returns a Verification value
so callers can count and skip tampered records without try/except noise.
"""

from __future__ import annotations


class MalformedRecord(ValueError):
    """A log line that cannot be decoded into a trusted record."""


class PersistenceFailure(RuntimeError):
    """A primary write (e.g. the weights config) did not reach disk.

    Only raised where a silent failure would leave the caller believing a
    change was made. Secondary logs report failures via WriteResult instead.
    """

    def __init__(self, path, cause: BaseException | None = None):
        self.path = str(path)
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"could not write {self.path}{detail}")
