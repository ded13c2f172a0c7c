from __future__ import annotations

import logging
import os
import typing as tp
from dataclasses import replace
from pathlib import Path

from refcache._core.models import CacheRecord
from refcache._exceptions import ConfigurationError, CorruptRecordError, StorageError
from refcache._files import FileManager
from refcache._serializers import BaseSerializer, LegacySerializer, ZipSerializer
from refcache._utils import BaseClock, Clock, ensure_cache_dir

logger = logging.getLogger("refcache.storages")

__all__ = (
    "BaseStorage",
    "FileStorage",
    "InMemoryStorage",
)


class BaseStorage:
    def __init__(
        self,
        serializer: tp.Optional[BaseSerializer] = None,
        clock: tp.Optional[BaseClock] = None,
    ) -> None:
        self._serializer = serializer or ZipSerializer()
        if not self._serializer.is_writable:
            raise ConfigurationError(f"{type(self._serializer).__name__} cannot write records")
        self._clock = clock if clock is not None else Clock()

    def store(self, key: str, record: CacheRecord) -> CacheRecord:
        raise NotImplementedError()

    def retrieve(self, key: str, with_payload: bool = True) -> tp.Optional[CacheRecord]:
        raise NotImplementedError()

    def fetched_at(self, key: str) -> tp.Optional[float]:
        raise NotImplementedError()

    def touch(self, key: str) -> float:
        raise NotImplementedError()

    def close(self) -> None:
        raise NotImplementedError()


class FileStorage(BaseStorage):
    """
    Keeps one record file per cache key in a flat directory.

    Records are named `<key>.<extension>` and replaced atomically; the file
    modification time is the record's `fetched_at`. When no current-format
    record exists, a bare payload file from the older cache generation
    (`<key>.xml`) is read as a Success record. That format is never written.

    :param base_path: Directory holding the records, created on the first write
    :type base_path: tp.Optional[Path], optional
    :param serializer: Codec for the current record format, defaults to ZipSerializer
    :type serializer: tp.Optional[BaseSerializer], optional
    :param legacy_serializer: Read-only codec for the older format, defaults to LegacySerializer;
        pass `False` to ignore legacy files
    :type legacy_serializer: tp.Union[BaseSerializer, bool, None], optional
    :param clock: Source of the timestamps written as file modification times
    :type clock: tp.Optional[BaseClock], optional
    """

    def __init__(
        self,
        base_path: tp.Optional[Path] = None,
        serializer: tp.Optional[BaseSerializer] = None,
        legacy_serializer: tp.Union[BaseSerializer, bool, None] = None,
        clock: tp.Optional[BaseClock] = None,
    ) -> None:
        super().__init__(serializer, clock)

        self._base_path = Path(base_path) if base_path is not None else Path(".cachingXMLReferenceResolver")
        if legacy_serializer is None or legacy_serializer is True:
            self._legacy_serializer: tp.Optional[BaseSerializer] = LegacySerializer()
        elif legacy_serializer is False:
            self._legacy_serializer = None
        else:
            self._legacy_serializer = legacy_serializer
        self._file_manager = FileManager()

    @property
    def base_path(self) -> Path:
        return self._base_path

    def path_for(self, key: str) -> Path:
        return self._base_path / f"{key}.{self._serializer.extension}"

    def legacy_path_for(self, key: str) -> tp.Optional[Path]:
        if self._legacy_serializer is None:
            return None
        return self._base_path / f"{key}.{self._legacy_serializer.extension}"

    def store(self, key: str, record: CacheRecord) -> CacheRecord:
        """
        Writes the record, replacing any previous one.

        :param key: Cache key of the URI
        :type key: str
        :param record: The record to write; its `fetched_at` is ignored
        :type record: CacheRecord
        :return: The record as stored, carrying its new `fetched_at`
        :rtype: CacheRecord
        :raises StorageError: The directory could not be created or the file could not be replaced
        """
        data = self._serializer.dumps(record)
        now = self._clock.now()
        path = self.path_for(key)

        try:
            ensure_cache_dir(self._base_path)
            self._file_manager.write_to(path, data, mtime=now)
        except OSError as exc:
            raise StorageError(f"could not write {path}: {exc}") from exc

        logger.debug(f"Stored record with status {record.status} at {path}")
        return replace(record, fetched_at=now)

    def retrieve(self, key: str, with_payload: bool = True) -> tp.Optional[CacheRecord]:
        """
        Reads the record for a key.

        :param key: Cache key of the URI
        :type key: str
        :param with_payload: Whether to load the payload, defaults to True
        :type with_payload: bool
        :return: The record, or None when there is none
        :rtype: tp.Optional[CacheRecord]
        :raises CorruptRecordError: A record file exists but cannot be decoded
        """
        path = self.path_for(key)
        loaded = self._load(path, self._serializer, with_payload)
        if loaded is not None:
            return loaded

        legacy_path = self.legacy_path_for(key)
        if legacy_path is not None and self._legacy_serializer is not None:
            return self._load(legacy_path, self._legacy_serializer, with_payload)
        return None

    def fetched_at(self, key: str) -> tp.Optional[float]:
        for path in self._candidate_paths(key):
            try:
                return path.stat().st_mtime
            except (FileNotFoundError, NotADirectoryError):
                continue
        return None

    def touch(self, key: str) -> float:
        """
        Marks the stored record as fetched now without rewriting it.

        :raises StorageError: There is no record to touch or its timestamp cannot be changed
        """
        now = self._clock.now()
        for path in self._candidate_paths(key):
            if not path.is_file():
                continue
            try:
                self._file_manager.touch(path, now)
            except OSError as exc:
                raise StorageError(f"could not refresh {path}: {exc}") from exc
            logger.debug(f"Refreshed timestamp of {path}")
            return now
        raise StorageError(f"no record to refresh for key {key}")

    def close(self) -> None:  # pragma: no cover
        return

    def _candidate_paths(self, key: str) -> tp.List[Path]:
        paths = [self.path_for(key)]
        legacy_path = self.legacy_path_for(key)
        if legacy_path is not None:
            paths.append(legacy_path)
        return paths

    def _load(self, path: Path, serializer: BaseSerializer, with_payload: bool) -> tp.Optional[CacheRecord]:
        try:
            with open(path, "rb") as f:
                mtime = os.fstat(f.fileno()).st_mtime
                return serializer.loads(f, fetched_at=mtime, with_payload=with_payload)
        except (FileNotFoundError, NotADirectoryError):
            return None
        except CorruptRecordError as exc:
            raise CorruptRecordError(f"{path}: {exc}") from exc
        except OSError as exc:
            raise CorruptRecordError(f"could not read {path}: {exc}") from exc


class InMemoryStorage(BaseStorage):
    """
    Keeps serialized records in a dictionary.

    Records still go through the serializer, so the stored form is the same
    as on disk.
    """

    def __init__(
        self,
        serializer: tp.Optional[BaseSerializer] = None,
        clock: tp.Optional[BaseClock] = None,
    ) -> None:
        super().__init__(serializer, clock)
        self._records: tp.Dict[str, tp.Tuple[bytes, float]] = {}

    def store(self, key: str, record: CacheRecord) -> CacheRecord:
        now = self._clock.now()
        self._records[key] = (self._serializer.dumps(record), now)
        return replace(record, fetched_at=now)

    def retrieve(self, key: str, with_payload: bool = True) -> tp.Optional[CacheRecord]:
        stored = self._records.get(key)
        if stored is None:
            return None
        data, fetched_at = stored
        return self._serializer.loads(data, fetched_at=fetched_at, with_payload=with_payload)

    def fetched_at(self, key: str) -> tp.Optional[float]:
        stored = self._records.get(key)
        return stored[1] if stored is not None else None

    def touch(self, key: str) -> float:
        if key not in self._records:
            raise StorageError(f"no record to refresh for key {key}")
        now = self._clock.now()
        self._records[key] = (self._records[key][0], now)
        return now

    def close(self) -> None:  # pragma: no cover
        return
