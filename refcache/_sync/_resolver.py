from __future__ import annotations

import logging
import types
import typing as tp

import httpx
from typing_extensions import assert_never

from refcache._core._spec import (
    Admission,
    AnyState,
    FollowRedirect,
    GiveUp,
    Lookup,
    NeedFetch,
    Reject,
    ResolverOptions,
    Serve,
)
from refcache._core.models import (
    NotHandled,
    NotResolvable,
    Resolution,
    ResolvedEntity,
    Revalidated,
)
from refcache._diagnostics import BaseDiagnosticSink, Diagnostic, DiagnosticKind, LoggingSink
from refcache._exceptions import CorruptRecordError, ResolverError
from refcache._utils import BaseClock, Clock, format_age, generate_key

from ._fetcher import Fetcher
from ._storages import BaseStorage, FileStorage

if tp.TYPE_CHECKING:  # pragma: no cover
    from typing_extensions import Self

__all__ = ("EntityResolver",)

logger = logging.getLogger("refcache.resolver")

# Transitions a single hop can take: Admission, Lookup, NeedFetch, Lookup, FollowRedirect.
PASSES_PER_HOP = 5


class EntityResolver:
    """
    Resolves external references by URI through an on-disk cache.

    Network URIs that pass the inclusion filter are served from the cache
    while their record is fresh, and fetched (conditionally, when a validator
    is known) otherwise. Failures never escape: a stale record is served when
    there is one, and a `NotResolvable` result is returned when there is not.

    :param options: Resolver configuration, defaults to `ResolverOptions()`
    :type options: tp.Optional[ResolverOptions], optional
    :param storage: Record storage, defaults to a `FileStorage` in `options.cache_dir`
    :type storage: tp.Optional[BaseStorage], optional
    :param transport: Transport for the fetcher's `httpx.Client`, defaults to None
    :type transport: tp.Optional[httpx.BaseTransport], optional
    :param sink: Receiver of diagnostics, defaults to a `LoggingSink`
    :type sink: tp.Optional[BaseDiagnosticSink], optional
    :param clock: Time source for freshness decisions and record timestamps
    :type clock: tp.Optional[BaseClock], optional
    :param fetcher: Fetch layer to use instead of building one, defaults to None
    :type fetcher: tp.Optional[Fetcher], optional
    """

    def __init__(
        self,
        options: tp.Optional[ResolverOptions] = None,
        storage: tp.Optional[BaseStorage] = None,
        transport: tp.Optional[httpx.BaseTransport] = None,
        sink: tp.Optional[BaseDiagnosticSink] = None,
        clock: tp.Optional[BaseClock] = None,
        fetcher: tp.Optional[Fetcher] = None,
    ) -> None:
        self.options = options if options is not None else ResolverOptions()
        self._clock = clock if clock is not None else Clock()
        self.storage = (
            storage if storage is not None else FileStorage(base_path=self.options.cache_dir, clock=self._clock)
        )
        self.fetcher = fetcher if fetcher is not None else Fetcher(self.storage, self.options, transport=transport)
        self.sink = sink if sink is not None else LoggingSink()

    def resolve(self, identifier_hint: tp.Any, uri: str) -> Resolution:
        """
        Resolves a reference for a document parser.

        :param identifier_hint: Opaque value handed back unchanged with the content (a public id, for XML)
        :type identifier_hint: tp.Any
        :param uri: The reference's URI
        :type uri: str
        :return: `ResolvedEntity` with the bytes, `NotHandled` when the caller should resolve
            the reference itself, or `NotResolvable`
        :rtype: Resolution
        """
        return self._resolve(identifier_hint, uri, allow_stale=False, redirect_budget=self.options.redirect_budget)

    def resolve_uri(
        self,
        uri: str,
        allow_stale: bool = False,
        redirect_budget: tp.Optional[int] = None,
    ) -> tp.Optional[bytes]:
        """
        Returns the bytes for a URI, or None when it is not handled or not resolvable.

        `allow_stale` serves an expired Success or Redirect record without
        asking the network; `redirect_budget` defaults to the configured one.
        """
        budget = self.options.redirect_budget if redirect_budget is None else redirect_budget
        result = self._resolve(None, uri, allow_stale=allow_stale, redirect_budget=budget)
        if isinstance(result, ResolvedEntity):
            return result.content
        return None

    def _resolve(self, identifier_hint: tp.Any, uri: str, allow_stale: bool, redirect_budget: int) -> Resolution:
        state: AnyState = Admission(
            options=self.options,
            uri=uri,
            allow_stale=allow_stale,
            redirect_budget=redirect_budget,
        )

        for _ in range(PASSES_PER_HOP * (max(redirect_budget, 0) + 1) + 1):
            logger.debug(f"Handling state: {state.__class__.__name__}")
            if isinstance(state, Admission):
                state = state.next()
            elif isinstance(state, Lookup):
                state = self._handle_lookup(state)
            elif isinstance(state, NeedFetch):
                state = self._handle_fetch(state)
            elif isinstance(state, FollowRedirect):
                self._emit(
                    DiagnosticKind.REDIRECT,
                    state.uri,
                    f"cached redirect ({state.status}) for {state.uri}, continuing with {state.target}",
                )
                state = state.next()
            elif isinstance(state, Serve):
                return self._handle_serve(state, identifier_hint, uri)
            elif isinstance(state, Reject):
                return self._handle_reject(state, uri)
            elif isinstance(state, GiveUp):
                return self._handle_give_up(state, uri)
            else:
                assert_never(state)

        raise RuntimeError("Unreachable")

    def _handle_lookup(self, state: Lookup) -> AnyState:
        try:
            record = self.storage.retrieve(generate_key(state.uri))
        except CorruptRecordError as exc:
            self._emit(DiagnosticKind.CORRUPT, state.uri, f"unreadable cache entry for {state.uri} - {exc}")
            record = None
        return state.next(record, self._clock.now())

    def _handle_fetch(self, state: NeedFetch) -> AnyState:
        if state.has_record:
            self._emit(DiagnosticKind.MISS, state.uri, f"cache entry for {state.uri} is not current, fetching")
        else:
            self._emit(DiagnosticKind.MISS, state.uri, f"no cache entry for {state.uri}, fetching")

        try:
            outcome = self.fetcher.fetch(state.uri, state.validator)
        except ResolverError as exc:
            self._emit(DiagnosticKind.FETCH_FAILED, state.uri, f"error for {state.uri} - {exc}")
            return state.next(succeeded=False, error=exc)

        if isinstance(outcome, Revalidated):
            self._emit(DiagnosticKind.REVALIDATED, state.uri, f"entry for {state.uri} not modified, kept it")
        elif outcome.previous_fetched_at is not None:
            age = format_age(self._clock.now() - outcome.previous_fetched_at)
            self._emit(DiagnosticKind.WRITE, state.uri, f"replaced {age} old entry for {state.uri}")
        else:
            self._emit(DiagnosticKind.WRITE, state.uri, f"created entry for {state.uri}")
        return state.next(succeeded=True)

    def _handle_serve(self, state: Serve, identifier_hint: tp.Any, uri: str) -> ResolvedEntity:
        if state.stale:
            self._emit(DiagnosticKind.STALE, state.uri, f"using old entry ({format_age(state.age)}) for {state.uri}")
        assert state.record.payload is not None
        return ResolvedEntity(
            content=state.record.payload,
            identifier_hint=identifier_hint,
            uri=uri,
            final_uri=state.uri,
            stale=state.stale,
        )

    def _handle_reject(self, state: Reject, uri: str) -> NotHandled:
        if state.malformed:
            self._emit(DiagnosticKind.NOT_A_URI, state.uri, f"not a URI: {state.uri}")
        if state.uri != uri:
            return NotHandled(uri=uri, reason=f"redirect target {state.uri}: {state.reason}")
        return NotHandled(uri=uri, reason=state.reason)

    def _handle_give_up(self, state: GiveUp, uri: str) -> NotResolvable:
        if state.malformed_target is not None:
            self._emit(DiagnosticKind.NOT_A_URI, state.uri, f"not a URI: {state.malformed_target}")
        if state.budget_exhausted:
            self._emit(DiagnosticKind.BUDGET_EXHAUSTED, state.uri, f"too many redirects for {uri}: {state.reason}")
        logger.debug(f"Could not resolve {uri}: {state.reason}")
        return NotResolvable(uri=uri, reason=state.reason)

    def _emit(self, kind: DiagnosticKind, uri: str, message: str) -> None:
        self.sink.emit(Diagnostic(kind=kind, uri=uri, message=message))

    def close(self) -> None:
        self.fetcher.close()
        self.storage.close()

    def __enter__(self) -> "Self":
        return self

    def __exit__(
        self,
        exc_type: tp.Optional[tp.Type[BaseException]] = None,
        exc_value: tp.Optional[BaseException] = None,
        traceback: tp.Optional[types.TracebackType] = None,
    ) -> None:
        self.close()
