from __future__ import annotations

import logging
import types
import typing as tp

import httpx

from refcache._core._spec import ResolverOptions, resolve_location
from refcache._core.models import (
    PERMANENT_REDIRECT_CODES,
    TEMPORARY_REDIRECT_CODES,
    CacheRecord,
    Fetched,
    Revalidated,
)
from refcache._exceptions import InvalidLocationError, MissingLocationError, TransportError
from refcache._utils import generate_key

from ._storages import BaseStorage

if tp.TYPE_CHECKING:  # pragma: no cover
    from typing_extensions import Self

__all__ = ("Fetcher", "FetchOutcome")

logger = logging.getLogger("refcache.fetcher")

REDIRECT_CODES = PERMANENT_REDIRECT_CODES | TEMPORARY_REDIRECT_CODES

FetchOutcome = tp.Union[Fetched, Revalidated]


class Fetcher:
    """
    Performs one GET per call and persists what came back.

    Redirects are never followed here; they are stored as data so the
    resolver can cache and bound them. Every completed exchange replaces the
    record for the URI. Transport failures write nothing.

    :param storage: Storage the outcomes are written to
    :type storage: BaseStorage
    :param options: Resolver options supplying the connect timeout and user agent, defaults to None
    :type options: tp.Optional[ResolverOptions], optional
    :param transport: Transport for the underlying `httpx.Client`, defaults to None
    :type transport: tp.Optional[httpx.BaseTransport], optional
    """

    def __init__(
        self,
        storage: BaseStorage,
        options: tp.Optional[ResolverOptions] = None,
        transport: tp.Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._storage = storage
        self._options = options if options is not None else ResolverOptions()
        self._client = httpx.Client(
            transport=transport,
            follow_redirects=False,
            timeout=httpx.Timeout(None, connect=self._options.connect_timeout),
            headers={"User-Agent": self._options.user_agent},
        )

    def fetch(self, uri: str, validator: tp.Optional[str] = None) -> FetchOutcome:
        """
        Fetches a URI and writes the outcome to storage.

        :param uri: The absolute URI to GET
        :type uri: str
        :param validator: ETag of the stored record; when given the request is conditional
        :type validator: tp.Optional[str]
        :return: `Fetched` with the written record, or `Revalidated` after a 304
        :rtype: FetchOutcome
        :raises TransportError: The exchange did not complete
        :raises MissingLocationError: A redirect came without a Location header
        :raises InvalidLocationError: A redirect pointed at something that is not a URL
        :raises StorageError: The record could not be written
        """
        key = generate_key(uri)
        response = self._send(uri, validator)
        status = response.status_code

        if status == 304 and validator:
            logger.debug(f"GET on {uri} was not modified")
            return Revalidated(key=key, fetched_at=self._storage.touch(key))

        record = self._to_record(uri, response)
        previous_fetched_at = self._storage.fetched_at(key)
        stored = self._storage.store(key, record)
        return Fetched(key=key, record=stored, previous_fetched_at=previous_fetched_at)

    def _send(self, uri: str, validator: tp.Optional[str]) -> httpx.Response:
        headers = {"If-None-Match": validator} if validator else {}
        logger.debug(f"GET {uri}" + (f" with If-None-Match {validator}" if validator else ""))
        try:
            return self._client.get(uri, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            raise TransportError(f"GET on {uri} failed: {exc}") from exc

    def _to_record(self, uri: str, response: httpx.Response) -> CacheRecord:
        status = response.status_code

        if status == 200:
            etag = (response.headers.get("etag") or "").strip()
            return CacheRecord.success(response.content, validator=etag or None)

        if status in REDIRECT_CODES:
            location = (response.headers.get("location") or "").strip()
            if not location:
                raise MissingLocationError(f"GET on {uri} redirects with status code {status}, no location header field")
            try:
                resolve_location(uri, location)
            except ValueError as exc:
                raise InvalidLocationError(
                    f"GET on {uri} redirects with status code {status} to {location!r}: {exc}"
                ) from exc
            logger.debug(f"GET on {uri} redirects with status code {status} to {location}")
            return CacheRecord.redirect(status, location)

        if status == 404:
            return CacheRecord.not_found()

        logger.debug(f"GET on {uri} failed with status code {status}")
        return CacheRecord(status=status)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "Self":
        return self

    def __exit__(
        self,
        exc_type: tp.Optional[tp.Type[BaseException]] = None,
        exc_value: tp.Optional[BaseException] = None,
        traceback: tp.Optional[types.TracebackType] = None,
    ) -> None:
        self.close()
