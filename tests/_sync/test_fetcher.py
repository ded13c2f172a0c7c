import httpx
import pytest

import refcache
from refcache import CacheRecord, Fetched, Revalidated, generate_key

URI = "http://example.com/reference.X.xml"


@pytest.fixture
def storage(clock):
    return refcache.InMemoryStorage(clock=clock)


def make_fetcher(storage, responses, **options):
    transport = refcache.MockTransport(responses)
    fetcher = refcache.Fetcher(storage, refcache.ResolverOptions(**options), transport=transport)
    return fetcher, transport


def test_fetch_success_stores_payload_and_etag(storage, clock):
    fetcher, transport = make_fetcher(storage, [httpx.Response(200, headers={"ETag": ' "abc" '}, content=b"B")])

    with fetcher:
        outcome = fetcher.fetch(URI)

    assert isinstance(outcome, Fetched)
    assert not outcome.replaced
    assert outcome.record == CacheRecord(status=200, validator='"abc"', payload=b"B", fetched_at=clock.now())
    assert storage.retrieve(generate_key(URI)) == outcome.record

    [request] = transport.requests
    assert request.method == "GET"
    assert request.headers["User-Agent"] == "refcache/0.1.0"
    assert "If-None-Match" not in request.headers


def test_fetch_sends_configured_user_agent(storage):
    fetcher, transport = make_fetcher(storage, [httpx.Response(200, content=b"B")], user_agent="my-tool/1.0")

    fetcher.fetch(URI)

    assert transport.requests[0].headers["User-Agent"] == "my-tool/1.0"


def test_fetch_without_etag(storage):
    fetcher, _ = make_fetcher(storage, [httpx.Response(200, content=b"B")])

    outcome = fetcher.fetch(URI)

    assert isinstance(outcome, Fetched)
    assert outcome.record.validator is None


def test_conditional_fetch_not_modified(storage, clock):
    key = generate_key(URI)
    storage.store(key, CacheRecord.success(b"B", validator='"abc"'))
    clock.advance(86400)
    fetcher, transport = make_fetcher(storage, [httpx.Response(304)])

    outcome = fetcher.fetch(URI, validator='"abc"')

    assert outcome == Revalidated(key=key, fetched_at=clock.now())
    assert transport.requests[0].headers["If-None-Match"] == '"abc"'
    record = storage.retrieve(key)
    assert record is not None
    assert record.payload == b"B"
    assert record.validator == '"abc"'
    assert record.fetched_at == clock.now()


def test_conditional_fetch_modified_replaces_record(storage, clock):
    key = generate_key(URI)
    storage.store(key, CacheRecord.success(b"B", validator='"abc"'))
    written_at = clock.now()
    clock.advance(86400)
    fetcher, _ = make_fetcher(storage, [httpx.Response(200, headers={"ETag": '"def"'}, content=b"C")])

    outcome = fetcher.fetch(URI, validator='"abc"')

    assert isinstance(outcome, Fetched)
    assert outcome.replaced
    assert outcome.previous_fetched_at == written_at
    assert storage.retrieve(key) == CacheRecord(status=200, validator='"def"', payload=b"C", fetched_at=clock.now())


def test_unsolicited_not_modified_is_stored_as_other(storage):
    fetcher, _ = make_fetcher(storage, [httpx.Response(304)])

    outcome = fetcher.fetch(URI)

    assert isinstance(outcome, Fetched)
    assert outcome.record.status == 304
    assert outcome.record.kind is refcache.StatusKind.OTHER


@pytest.mark.parametrize("status", [301, 302, 307, 308])
def test_redirect_is_stored_not_followed(storage, status):
    fetcher, transport = make_fetcher(
        storage,
        [
            httpx.Response(status, headers={"Location": "https://example.com/reference.X.xml"}),
            httpx.Response(200, content=b"never fetched"),
        ],
    )

    outcome = fetcher.fetch(URI)

    assert isinstance(outcome, Fetched)
    assert outcome.record.status == status
    assert outcome.record.location == "https://example.com/reference.X.xml"
    assert outcome.record.payload is None
    assert len(transport.requests) == 1


def test_redirect_without_location_fails(storage):
    fetcher, _ = make_fetcher(storage, [httpx.Response(302)])

    with pytest.raises(refcache.MissingLocationError):
        fetcher.fetch(URI)

    assert storage.retrieve(generate_key(URI)) is None


@pytest.mark.parametrize("location", ["http://[bad/reference.Y.xml", "http://[::1/reference.Y.xml"])
def test_redirect_to_unparseable_location_fails(storage, location):
    fetcher, _ = make_fetcher(storage, [httpx.Response(301, headers={"Location": location})])

    with pytest.raises(refcache.InvalidLocationError):
        fetcher.fetch(URI)

    assert storage.retrieve(generate_key(URI)) is None


def test_not_found_is_stored(storage):
    fetcher, _ = make_fetcher(storage, [httpx.Response(404, content=b"nope")])

    outcome = fetcher.fetch(URI)

    assert isinstance(outcome, Fetched)
    assert outcome.record == CacheRecord(status=404, fetched_at=outcome.record.fetched_at)


def test_other_status_is_stored(storage):
    fetcher, _ = make_fetcher(storage, [httpx.Response(503, content=b"busy")])

    outcome = fetcher.fetch(URI)

    assert isinstance(outcome, Fetched)
    assert outcome.record.status == 503
    assert outcome.record.payload is None


@pytest.mark.parametrize(
    "error",
    [
        httpx.ConnectError("connection refused"),
        httpx.ConnectTimeout("timed out"),
        httpx.ReadError("connection reset"),
    ],
)
def test_transport_failure_writes_nothing(storage, error):
    key = generate_key(URI)
    storage.store(key, CacheRecord.success(b"old"))
    before = storage.retrieve(key)
    fetcher, _ = make_fetcher(storage, [error])

    with pytest.raises(refcache.TransportError):
        fetcher.fetch(URI, validator=None)

    assert storage.retrieve(key) == before


def test_unsupported_scheme_is_a_transport_failure(storage):
    fetcher = refcache.Fetcher(storage)

    with pytest.raises(refcache.TransportError):
        fetcher.fetch("gopher://example.com/reference.X.xml")

    fetcher.close()


def test_connect_timeout_is_configured(storage):
    fetcher = refcache.Fetcher(storage, refcache.ResolverOptions(connect_timeout=0.5))

    assert fetcher._client.timeout.connect == 0.5
    assert fetcher._client.timeout.read is None
    assert not fetcher._client.follow_redirects

    fetcher.close()


def test_malformed_host_is_a_transport_failure(storage):
    fetcher, transport = make_fetcher(storage, [httpx.Response(200, content=b"B")])

    with pytest.raises(refcache.TransportError):
        fetcher.fetch("http://xn--/reference.X.xml")

    assert transport.requests == []
    assert storage.retrieve(generate_key("http://xn--/reference.X.xml")) is None
