from __future__ import annotations

import logging
import os
import tempfile
import typing as tp
from pathlib import Path

logger = logging.getLogger("refcache.storages")

TEMP_PREFIX = ".tmp-"


class BaseFileManager:
    def write_to(self, path: Path, data: bytes, mtime: tp.Optional[float] = None) -> None:
        raise NotImplementedError()

    def touch(self, path: Path, timestamp: float) -> None:
        raise NotImplementedError()


class FileManager(BaseFileManager):
    """
    Atomically replaces whole files and their timestamps.

    A write goes to a freshly named temporary file in the destination
    directory and is then renamed over the destination, so readers only ever
    see the previous file or the complete new one. When the temporary file
    cannot be written or renamed it is removed and the error is re-raised,
    leaving the destination untouched.
    """

    def write_to(self, path: Path, data: bytes, mtime: tp.Optional[float] = None) -> None:
        fd, tmp_path = tempfile.mkstemp(prefix=TEMP_PREFIX, dir=path.parent)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            if mtime is not None:
                os.utime(tmp_path, (mtime, mtime))
            self._replace(tmp_path, path)
        except BaseException:
            self._discard(tmp_path)
            raise

    def touch(self, path: Path, timestamp: float) -> None:
        os.utime(path, (timestamp, timestamp))

    def _replace(self, src: str, dst: Path) -> None:
        os.replace(src, dst)

    def _discard(self, tmp_path: str) -> None:
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass
        except OSError as exc:  # pragma: no cover
            logger.debug(f"Could not remove temporary file {tmp_path}: {exc}")
