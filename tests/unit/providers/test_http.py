"""Unit tests for the HTTP provider using httpx.MockTransport."""

import threading
from pathlib import Path

import httpx
import pytest
from bpm.core.errors import CancelledError, ContractError, NotFoundError, TransportError
from bpm.models.version import Version
from bpm.providers import HttpProvider

BASE = "https://packages.example.com/repo"

INDEX = {
    "packages": {
        "foo": {
            "versions": {
                "1.0.0": {"filename": "foo_1.0.0.bpm"},
                "2.0.0": {"filename": "foo-2.0.0.bpm", "uri": "mirror/foo-2.0.0.bpm"},
            },
            "channels": {"stable": ["1.0.0"]},
        }
    }
}


def make_provider(routes: dict[str, httpx.Response]) -> tuple[HttpProvider, list[str]]:
    """Build a provider whose client answers from ``routes`` keyed by URL path."""
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return routes.get(request.url.path, httpx.Response(404))

    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpProvider("remote", BASE, client=client), seen


class TestHttpScan:
    """Tests for HttpProvider.scan."""

    def test_scan_index(self) -> None:
        """The index is parsed and locations become absolute URLs."""
        provider, seen = make_provider({"/repo/index.json": httpx.Response(200, json=INDEX)})

        result = provider.scan()

        assert seen == ["/repo/index.json"]
        foo = result.get("foo")
        assert foo is not None
        assert foo.versions["1.0.0"].uri == f"{BASE}/foo/foo_1.0.0.bpm"
        assert foo.versions["2.0.0"].uri == f"{BASE}/mirror/foo-2.0.0.bpm"
        assert foo.versions["2.0.0"].provider == "remote"
        assert foo.channels == {"stable": {"1.0.0"}}

    def test_server_error(self) -> None:
        """HTTP errors are transport failures."""
        provider, _ = make_provider({"/repo/index.json": httpx.Response(503)})
        with pytest.raises(TransportError, match="503"):
            provider.scan()

    def test_connection_error(self) -> None:
        """Network errors are transport failures."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = httpx.Client(transport=httpx.MockTransport(handler))
        provider = HttpProvider("remote", BASE, client=client)
        with pytest.raises(TransportError, match="cannot reach"):
            provider.scan()
        assert not provider.is_available()

    @pytest.mark.parametrize(
        "body",
        [
            b"not json",
            b"[]",
            b'{"packages": 3}',
            b'{"packages": {"foo": {"versions": {"1.0.0": {"uri": 5}}}}}',
            b'{"packages": {"foo": {"versions": {"1.0.0": {"filename": ["x"]}}}}}',
            b'{"packages": {"../foo": {"versions": ["1.0.0"]}}}',
        ],
    )
    def test_malformed_index(self, body: bytes) -> None:
        """An index of the wrong shape is a contract failure."""
        provider, _ = make_provider({"/repo/index.json": httpx.Response(200, content=body)})
        with pytest.raises(ContractError, match="malformed index"):
            provider.scan()


class TestHttpFetch:
    """Tests for HttpProvider.fetch."""

    def test_fetch_default_location(self, tmp_path: Path) -> None:
        """Without a location the canonical file name under the package is used."""
        payload = b"x" * 200_000
        provider, seen = make_provider(
            {"/repo/foo/foo_1.0.0.bpm": httpx.Response(200, content=payload)}
        )
        dest = tmp_path / "out.bpm"

        size = provider.fetch("foo", Version.parse("1.0.0"), dest)

        assert size == len(payload)
        assert dest.read_bytes() == payload
        assert seen == ["/repo/foo/foo_1.0.0.bpm"]

    def test_fetch_absolute_location(self, tmp_path: Path) -> None:
        """Absolute locations from the scan are used as is."""
        provider, seen = make_provider({"/repo/mirror/a.bpm": httpx.Response(200, content=b"a")})

        provider.fetch(
            "foo", Version.parse("2.0.0"), tmp_path / "out", location=f"{BASE}/mirror/a.bpm"
        )

        assert seen == ["/repo/mirror/a.bpm"]

    def test_fetch_not_found(self, tmp_path: Path) -> None:
        """404 responses raise NotFoundError."""
        provider, _ = make_provider({})
        with pytest.raises(NotFoundError):
            provider.fetch("foo", Version.parse("1.0.0"), tmp_path / "out")

    def test_fetch_cancelled(self, tmp_path: Path) -> None:
        """A set cancel event aborts the download."""
        provider, _ = make_provider(
            {"/repo/foo/foo_1.0.0.bpm": httpx.Response(200, content=b"x" * 10)}
        )
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(CancelledError):
            provider.fetch("foo", Version.parse("1.0.0"), tmp_path / "out", cancel=cancel)


class TestHttpClientLifecycle:
    """Tests for client ownership."""

    def test_close_keeps_shared_client(self) -> None:
        """A client passed in is not closed by the provider."""
        client = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        provider = HttpProvider("remote", BASE, client=client)
        provider.close()
        assert not client.is_closed
        client.close()
