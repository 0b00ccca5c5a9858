"""Parallel scanning of providers and merging of their results.

Every provider is scanned in its own worker. Results are merged in
configuration order once all workers have finished, so provenance never
depends on which provider answered first.
"""

import logging
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field

from bpm.core.errors import BpmError, FailureKind
from bpm.models.scan_result import ScanResult
from bpm.providers.base import Provider

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ProviderFailure:
    """A provider whose scan failed.

    Attributes:
        provider: Provider name.
        kind: Failure category.
        message: Error detail.
    """

    provider: str
    kind: FailureKind
    message: str


@dataclass(slots=True)
class ScanReport:
    """Merged availability plus the providers that failed to scan.

    Attributes:
        result: Merged availability index.
        failures: Failed providers, in configuration order.
        scanned: Names of providers that were scanned successfully.
    """

    result: ScanResult = field(default_factory=ScanResult)
    failures: list[ProviderFailure] = field(default_factory=list)
    scanned: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Check if every provider was scanned successfully."""
        return not self.failures


@dataclass(frozen=True, slots=True)
class ProviderFilter:
    """Selection of providers by name.

    Names prefixed with ``!`` are excluded. When at least one plain name is
    given only those providers are included; an empty filter includes all.

    Example:
        >>> f = ProviderFilter.from_names(["!slow"])
        >>> f.includes("local"), f.includes("slow")
        (True, False)
    """

    include: frozenset[str] = frozenset()
    exclude: frozenset[str] = frozenset()

    @classmethod
    def from_names(cls, names: Iterable[str] | None) -> "ProviderFilter":
        """Build a filter from names, ``!name`` meaning exclusion."""
        include: set[str] = set()
        exclude: set[str] = set()
        for raw in names or ():
            name = raw.strip()
            if name.startswith("!"):
                exclude.add(name[1:])
            elif name:
                include.add(name)
        return cls(include=frozenset(include), exclude=frozenset(exclude))

    def includes(self, name: str) -> bool:
        """Check if a provider name passes the filter."""
        if name in self.exclude:
            return False
        return not self.include or name in self.include

    def apply(self, providers: Sequence[Provider]) -> list[Provider]:
        """Return the providers passing the filter, keeping their order."""
        return [p for p in providers if self.includes(p.name)]


def scan_providers(
    providers: Sequence[Provider],
    threads: int = 0,
    timeout: float | None = None,
) -> ScanReport:
    """Scan providers concurrently and merge their results.

    Args:
        providers: Providers in priority (configuration) order.
        threads: Maximum concurrent scans; 0 means one worker per provider.
        timeout: Per-provider network timeout in seconds.

    Returns:
        ScanReport with the merged result and per-provider failures.
    """
    report = ScanReport()
    if not providers:
        return report

    max_workers = threads if threads > 0 else len(providers)
    results: dict[int, ScanResult] = {}
    errors: dict[int, ProviderFailure] = {}
    futures = {}

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="bpm-scan") as executor:
        for index, provider in enumerate(providers):
            futures[executor.submit(provider.scan, timeout)] = (index, provider)

        for future in as_completed(futures):
            index, provider = futures[future]
            try:
                results[index] = future.result()
            except BpmError as e:
                logger.warning("Scan of provider %s failed: %s", provider.name, e)
                errors[index] = ProviderFailure(provider=provider.name, kind=e.kind, message=str(e))

    for index, provider in enumerate(providers):
        if index in results:
            report.result.merge(results[index])
            report.scanned.append(provider.name)
        elif index in errors:
            report.failures.append(errors[index])

    logger.debug(
        "Scanned %d provider(s): %d package(s), %d failure(s)",
        len(providers),
        len(report.result),
        len(report.failures),
    )
    return report
