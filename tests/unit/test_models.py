"""
Unit tests for the data model.

Tests canonical keys, URL resolution, responses, cache entry serialization
and generation naming.
"""

from datetime import datetime, timezone

from stashgate.core.models import (
    CacheEntry,
    GenerationNames,
    RequestDescriptor,
    Response,
    canonical_key,
)


class TestCanonicalKey:
    """Test canonical request identity."""

    def test_method_and_url(self):
        assert canonical_key("http://app.test/api/materials") == "GET http://app.test/api/materials"

    def test_fragment_is_dropped(self):
        assert canonical_key("http://app.test/page#section") == "GET http://app.test/page"

    def test_query_is_kept(self):
        assert canonical_key("http://app.test/api?q=1") == "GET http://app.test/api?q=1"

    def test_method_is_uppercased(self):
        assert canonical_key("http://app.test/", "get") == "GET http://app.test/"

    def test_request_cache_key(self):
        request = RequestDescriptor(url="http://app.test/icons/icon-192.png")
        assert request.cache_key == "GET http://app.test/icons/icon-192.png"


class TestResolve:
    """Test resolution of relative URLs against the origin."""

    def test_relative_path(self):
        request = RequestDescriptor(url="/api/materials").resolve("http://app.test")
        assert request.url == "http://app.test/api/materials"

    def test_root(self):
        assert RequestDescriptor(url="/").resolve("http://app.test/").url == "http://app.test/"

    def test_absolute_unchanged(self):
        request = RequestDescriptor(url="https://cdn.test/font.woff2")
        assert request.resolve("http://app.test") is request

    def test_resolve_keeps_other_fields(self):
        request = RequestDescriptor(url="/", navigation=True, headers={"Accept": "text/html"})
        resolved = request.resolve("http://app.test")
        assert resolved.navigation is True
        assert resolved.headers == {"Accept": "text/html"}


class TestResponse:
    """Test response helpers."""

    def test_ok_range(self):
        assert Response(status=200).ok
        assert Response(status=204).ok
        assert not Response(status=304).ok
        assert not Response(status=500).ok

    def test_header_lookup_is_case_insensitive(self):
        response = Response(status=200, headers={"Content-Type": "text/plain"})
        assert response.header("content-type") == "text/plain"
        assert response.header("X-Missing") is None

    def test_copy_is_independent(self):
        original = Response(status=200, headers={"A": "1"}, body=b"x")
        copied = original.copy()
        copied.headers["A"] = "2"
        assert original.headers["A"] == "1"
        assert copied == Response(status=200, headers={"A": "2"}, body=b"x")


class TestCacheEntrySerialization:
    """Test dictionary conversion used by the file backend."""

    def test_binary_body_and_header_order_survive(self):
        entry = CacheEntry(
            key="GET http://app.test/icons/icon-192.png",
            response=Response(
                status=200,
                headers={"Content-Type": "image/png", "Cache-Control": "max-age=60", "ETag": '"abc"'},
                body=bytes(range(256)),
                url="http://app.test/icons/icon-192.png",
            ),
            stored_at=datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        )

        restored = CacheEntry.from_dict(entry.to_dict())

        assert restored.key == entry.key
        assert restored.response == entry.response
        assert list(restored.response.headers) == ["Content-Type", "Cache-Control", "ETag"]
        assert restored.stored_at == entry.stored_at

    def test_stored_at_is_timezone_aware(self):
        entry = CacheEntry(key="GET http://app.test/", response=Response(status=200))

        assert entry.stored_at.tzinfo is not None
        assert entry.stored_at.utcoffset().total_seconds() == 0

    def test_legacy_zulu_timestamp_is_read_as_utc(self):
        data = CacheEntry(key="GET http://app.test/", response=Response(status=200)).to_dict()
        data["stored_at"] = "2026-01-02T03:04:05Z"

        restored = CacheEntry.from_dict(data)

        assert restored.stored_at == datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


class TestGenerationNames:
    """Test generation naming scheme."""

    def test_names(self):
        names = GenerationNames("material-collector", "v1")
        assert names.static == "material-collector-static-v1"
        assert names.dynamic == "material-collector-dynamic-v1"
        assert names.umbrella == "material-collector-v1"

    def test_current(self):
        names = GenerationNames("app", "v3")
        assert names.current() == {"app-static-v3", "app-dynamic-v3", "app-v3"}
        assert names.is_current("app-static-v3")
        assert not names.is_current("app-static-v2")
