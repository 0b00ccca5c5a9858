"""Unit tests for concurrent provider scanning."""

import threading
import time
from pathlib import Path

import httpx
from bpm.core.aggregator import ProviderFilter, scan_providers
from bpm.core.errors import ContractError, FailureKind, TransportError
from bpm.models.scan_result import ScanResult, VersionInfo
from bpm.models.version import Version
from bpm.providers import FilesystemProvider, HttpProvider
from bpm.providers.base import Provider, ProviderKind


class StaticProvider(Provider):
    """Provider serving a fixed list of foo versions."""

    def __init__(
        self,
        name: str,
        versions: list[str],
        delay: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        super().__init__(name)
        self.versions = versions
        self.delay = delay
        self.error = error

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.FILESYSTEM

    @property
    def uri(self) -> str:
        return f"static://{self.name}"

    def is_available(self) -> bool:
        return self.error is None

    def scan(self, timeout: float | None = None) -> ScanResult:
        time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        result = ScanResult()
        for raw in self.versions:
            result.add_version(
                "foo",
                VersionInfo(version=Version.parse(raw), provider=self.name, filename=f"foo_{raw}"),
            )
        return result

    def fetch(
        self,
        name: str,
        version: Version,
        dest: Path,
        *,
        location: str | None = None,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> int:
        raise NotImplementedError


class TestScanProviders:
    """Tests for scan_providers."""

    def test_priority_independent_of_completion_order(self) -> None:
        """Configuration order decides provenance, not which scan finishes first."""
        for slow_first in (True, False):
            providers = [
                StaticProvider("first", ["1.0.0"], delay=0.05 if slow_first else 0.0),
                StaticProvider("second", ["1.0.0", "2.0.0"], delay=0.0 if slow_first else 0.05),
            ]
            report = scan_providers(providers)

            foo = report.result.get("foo")
            assert foo is not None
            assert foo.versions["1.0.0"].provider == "first"
            assert foo.versions["2.0.0"].provider == "second"
            assert report.scanned == ["first", "second"]

    def test_failure_does_not_abort_others(self) -> None:
        """A failing provider is reported; the others still contribute."""
        providers = [
            StaticProvider("broken", [], error=TransportError("unreachable")),
            StaticProvider("bad-index", [], error=ContractError("malformed")),
            StaticProvider("good", ["1.0.0"]),
        ]

        report = scan_providers(providers, threads=1)

        assert not report.ok
        assert "foo" in report.result
        assert [(f.provider, f.kind) for f in report.failures] == [
            ("broken", FailureKind.TRANSPORT),
            ("bad-index", FailureKind.CONTRACT),
        ]

    def test_malformed_http_index_does_not_abort_scan(
        self, tmp_path: Path, make_artifact
    ) -> None:
        """A remote index with wrongly typed fields fails only its own provider."""
        make_artifact(tmp_path / "repo", "foo", "1.0.0")
        index = {"packages": {"bar": {"versions": {"1.0.0": {"uri": 5}}}}}

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=index)

        client = httpx.Client(transport=httpx.MockTransport(handler))
        providers = [
            FilesystemProvider("local", tmp_path / "repo"),
            HttpProvider("remote", "https://packages.example.com", client=client),
        ]

        report = scan_providers(providers)

        assert "foo" in report.result
        assert "bar" not in report.result
        assert [(f.provider, f.kind) for f in report.failures] == [
            ("remote", FailureKind.CONTRACT)
        ]

    def test_no_providers(self) -> None:
        """Scanning nothing yields an empty, successful report."""
        report = scan_providers([])
        assert report.ok
        assert len(report.result) == 0


class TestProviderFilter:
    """Tests for ProviderFilter."""

    def test_empty_includes_all(self) -> None:
        """An empty filter includes every provider."""
        assert ProviderFilter.from_names(None).includes("anything")

    def test_include_and_exclude(self) -> None:
        """Plain names include, !names exclude."""
        providers = [StaticProvider(n, []) for n in ("a", "b", "c")]
        assert [p.name for p in ProviderFilter.from_names(["b", "a"]).apply(providers)] == [
            "a",
            "b",
        ]
        assert [p.name for p in ProviderFilter.from_names(["!b"]).apply(providers)] == ["a", "c"]
