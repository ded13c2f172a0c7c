from __future__ import annotations

import io
import typing as tp
import zipfile
import zlib

from refcache._core.models import CacheRecord
from refcache._exceptions import CorruptRecordError

FIELD_ENCODING = "utf-8"

STATUS = "status"
VALIDATOR = "validator.field"
LOCATION = "location.field"
PAYLOAD = "payload"

# Part name used by the first container generation for the ETag.
LEGACY_VALIDATOR = "field.etag"

__all__ = ("BaseSerializer", "ZipSerializer", "LegacySerializer")

Source = tp.Union[bytes, tp.BinaryIO]


class BaseSerializer:
    extension: str

    def dumps(self, record: CacheRecord) -> bytes:
        raise NotImplementedError()

    def loads(self, source: Source, fetched_at: tp.Optional[float] = None, with_payload: bool = True) -> CacheRecord:
        raise NotImplementedError()

    @property
    def is_writable(self) -> bool:
        return True


class ZipSerializer(BaseSerializer):
    """
    Stores a record as a zip archive with one member per field.

    Members are `status` (decimal string), `validator.field`, `location.field`
    and `payload`; all but `status` are optional. The status can be read
    without inflating the payload.
    """

    extension = "zip"

    def dumps(self, record: CacheRecord) -> bytes:
        """
        Dumps the record into a zip container.

        :param record: The record to serialize; `fetched_at` is not stored, the file mtime carries it
        :type record: CacheRecord
        :return: The archive bytes
        :rtype: bytes
        """
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            archive.writestr(STATUS, str(record.status).encode(FIELD_ENCODING))
            if record.validator is not None:
                archive.writestr(VALIDATOR, record.validator.encode(FIELD_ENCODING))
            if record.location is not None:
                archive.writestr(LOCATION, record.location.encode(FIELD_ENCODING))
            if record.payload is not None:
                archive.writestr(PAYLOAD, record.payload)
        return buffer.getvalue()

    def loads(self, source: Source, fetched_at: tp.Optional[float] = None, with_payload: bool = True) -> CacheRecord:
        """
        Loads a record from a zip container.

        Missing optional members come back as `None`. Anything that prevents
        reading the container or its status raises `CorruptRecordError`.

        :param source: Archive bytes or a binary file object positioned at its start
        :type source: tp.Union[bytes, tp.BinaryIO]
        :param fetched_at: Timestamp to attach to the record, usually the file mtime
        :type fetched_at: tp.Optional[float]
        :param with_payload: Whether to inflate the payload member
        :type with_payload: bool
        :rtype: CacheRecord
        """
        if isinstance(source, bytes):
            source = io.BytesIO(source)

        try:
            with zipfile.ZipFile(source) as archive:
                names = set(archive.namelist())
                if STATUS not in names:
                    raise CorruptRecordError("container has no status part")
                status_text = archive.read(STATUS).decode(FIELD_ENCODING).strip()
                if not (status_text.isascii() and status_text.isdigit()):
                    raise CorruptRecordError(f"status part is not a decimal number: {status_text!r}")
                status = int(status_text)

                validator = self._read_text(archive, names, VALIDATOR)
                if validator is None:
                    validator = self._read_text(archive, names, LEGACY_VALIDATOR)
                location = self._read_text(archive, names, LOCATION)
                payload = archive.read(PAYLOAD) if with_payload and PAYLOAD in names else None
        except CorruptRecordError:
            raise
        except (zipfile.BadZipFile, zlib.error, UnicodeDecodeError, EOFError, OSError, RuntimeError) as exc:
            raise CorruptRecordError(str(exc)) from exc

        return CacheRecord(
            status=status,
            validator=validator,
            location=location,
            payload=payload,
            fetched_at=fetched_at,
        )

    def _read_text(self, archive: zipfile.ZipFile, names: tp.Set[str], name: str) -> tp.Optional[str]:
        if name not in names:
            return None
        return archive.read(name).decode(FIELD_ENCODING)


class LegacySerializer(BaseSerializer):
    """
    Reads the older cache generation, where a file held nothing but the payload.

    Such a file can only have come from a successful fetch, so it loads as a
    200 record without a validator. This format is never written.
    """

    extension = "xml"

    def dumps(self, record: CacheRecord) -> bytes:
        raise NotImplementedError("The legacy cache format is read-only")

    def loads(self, source: Source, fetched_at: tp.Optional[float] = None, with_payload: bool = True) -> CacheRecord:
        payload: tp.Optional[bytes] = None
        if with_payload:
            try:
                payload = source if isinstance(source, bytes) else source.read()
            except OSError as exc:
                raise CorruptRecordError(str(exc)) from exc
        return CacheRecord(status=200, payload=payload, fetched_at=fetched_at)

    @property
    def is_writable(self) -> bool:
        return False
