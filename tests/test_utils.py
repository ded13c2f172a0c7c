import string

import pytest
from freezegun import freeze_time

from refcache._utils import Clock, ensure_cache_dir, format_age, generate_key


def test_generate_key_is_deterministic():
    uri = "http://xml2rfc.tools.ietf.org/public/rfc/bibxml/reference.RFC.2616.xml"

    assert generate_key(uri) == generate_key(uri)
    assert generate_key(uri) == generate_key("".join(list(uri)))


def test_generate_key_is_hex_sha1():
    key = generate_key("http://example.com/reference.X.xml")

    assert len(key) == 40
    assert set(key) <= set(string.hexdigits.lower())


def test_generate_key_known_digest():
    # sha1 of the empty string
    assert generate_key("") == "da39a3ee5e6b4b0d3255bfef95601890afd80709"


def test_generate_key_differs_across_uris():
    uris = [
        "http://example.com/reference.X.xml",
        "https://example.com/reference.X.xml",
        "http://example.com/reference.X.xml?",
        "http://example.com/reference.X.xml#top",
        "http://example.com/reference.x.xml",
        "http://example.com:8080/reference.X.xml",
        "http://example.com/bibxml/reference.RFC.2616.xml",
        "http://example.com/bibxml/reference.RFC.2617.xml",
        "http://example.com/bibxml3/reference.I-D.draft-ietf-httpbis-cache.xml",
    ] + [f"http://example.com/reference.RFC.{number}.xml" for number in range(1000)]

    keys = {generate_key(uri) for uri in uris}

    assert len(keys) == len(uris)


@pytest.mark.parametrize(
    "seconds, expected",
    [
        (0, "0 seconds"),
        (119, "119 seconds"),
        (120, "2 minutes"),
        (7199, "119 minutes"),
        (7200, "2 hours"),
        (172799, "47 hours"),
        (172800, "2 days"),
        (-5, "0 seconds"),
    ],
)
def test_format_age(seconds, expected):
    assert format_age(seconds) == expected


def test_ensure_cache_dir_creates_gitignore(tmp_path):
    base_path = tmp_path / "nested" / "cache"

    assert ensure_cache_dir(base_path) == base_path
    assert base_path.is_dir()
    assert (base_path / ".gitignore").read_text(encoding="utf-8").endswith("*")


def test_ensure_cache_dir_keeps_existing_gitignore(tmp_path):
    (tmp_path / ".gitignore").write_text("custom", encoding="utf-8")

    ensure_cache_dir(tmp_path)

    assert (tmp_path / ".gitignore").read_text(encoding="utf-8") == "custom"


@freeze_time("2015-08-25 12:00:00")
def test_clock_uses_wall_time():
    assert Clock().now() == 1440504000.0
