"""Version parsing and ordering.

Version strings are parsed as semantic versions when they conform to the
semantic versioning grammar, and are kept as opaque token sequences
otherwise. Parsing never fails; the original text is always preserved
for display.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import IntEnum

# https://semver.org/#is-there-a-suggested-regular-expression-regex-to-check-a-semver-string
_SEMVER_PATTERN = re.compile(
    r"^(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<pre>(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
    r"(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+(?P<build>[0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)

_SEGMENT_PATTERN = re.compile(r"\d+|\D+")


class Ordering(IntEnum):
    """Result of comparing two versions."""

    LESS = -1
    EQUAL = 0
    GREATER = 1

    @classmethod
    def of(cls, a: object, b: object) -> Ordering:
        """Order two mutually comparable values."""
        if a < b:  # type: ignore[operator]
            return cls.LESS
        if b < a:  # type: ignore[operator]
            return cls.GREATER
        return cls.EQUAL

    def invert(self) -> Ordering:
        """Return the ordering seen from the other operand."""
        return Ordering(-self.value)


@dataclass(frozen=True, slots=True)
class SemVer:
    """Parsed semantic version fields.

    Attributes:
        major: Major version number.
        minor: Minor version number.
        patch: Patch version number.
        pre: Dot-separated pre-release identifiers (empty for a release).
        build: Dot-separated build metadata identifiers.
    """

    major: int
    minor: int
    patch: int
    pre: tuple[str, ...] = ()
    build: tuple[str, ...] = ()

    @classmethod
    def parse(cls, text: str) -> SemVer | None:
        """Parse a semantic version string, returning None if it does not conform."""
        match = _SEMVER_PATTERN.match(text)
        if match is None:
            return None
        pre = match.group("pre")
        build = match.group("build")
        return cls(
            major=int(match.group("major")),
            minor=int(match.group("minor")),
            patch=int(match.group("patch")),
            pre=tuple(pre.split(".")) if pre else (),
            build=tuple(build.split(".")) if build else (),
        )


def _compare_pre_identifier(a: str, b: str) -> Ordering:
    a_num = a.isdecimal()
    b_num = b.isdecimal()
    if a_num and b_num:
        return Ordering.of(int(a), int(b))
    # Numeric identifiers always have lower precedence than alphanumeric ones
    if a_num:
        return Ordering.LESS
    if b_num:
        return Ordering.GREATER
    return Ordering.of(a, b)


def _compare_semver(a: SemVer, b: SemVer) -> Ordering:
    core = Ordering.of((a.major, a.minor, a.patch), (b.major, b.minor, b.patch))
    if core != Ordering.EQUAL:
        return core

    # A pre-release is lower than the associated normal release
    if a.pre and not b.pre:
        return Ordering.LESS
    if b.pre and not a.pre:
        return Ordering.GREATER

    for left, right in zip(a.pre, b.pre, strict=False):
        result = _compare_pre_identifier(left, right)
        if result != Ordering.EQUAL:
            return result
    return Ordering.of(len(a.pre), len(b.pre))


def split_segments(text: str) -> tuple[str, ...]:
    """Split text into alternating numeric and non-numeric segments.

    Example:
        >>> split_segments("1.10rc2")
        ('1', '.', '10', 'rc', '2')
    """
    return tuple(_SEGMENT_PATTERN.findall(text))


def _compare_segments(a: tuple[str, ...], b: tuple[str, ...]) -> Ordering:
    for left, right in zip(a, b, strict=False):
        if left.isdecimal() and right.isdecimal():
            result = Ordering.of(int(left), int(right))
        else:
            result = Ordering.of(left, right)
        if result != Ordering.EQUAL:
            return result
    return Ordering.of(len(a), len(b))


@dataclass(frozen=True, slots=True, eq=False)
class Version:
    """A package version, semantic or opaque.

    Two versions are equal only when their original text is identical.
    Versions that have equal precedence but different text (for example
    differing build metadata, or ``1.02`` versus ``1.2``) are ordered by
    their raw text so that ordering stays total.

    Attributes:
        raw: The original version text.
        semver: Parsed semantic version, or None for opaque versions.
    """

    raw: str
    semver: SemVer | None = field(default=None)

    @classmethod
    def parse(cls, text: str) -> Version:
        """Parse a version string. Never fails."""
        text = text.strip()
        return cls(raw=text, semver=SemVer.parse(text))

    @property
    def is_semver(self) -> bool:
        """Check if this version follows semantic versioning."""
        return self.semver is not None

    @property
    def is_prerelease(self) -> bool:
        """Check if this is a semantic pre-release version."""
        return self.semver is not None and bool(self.semver.pre)

    @property
    def segments(self) -> tuple[str, ...]:
        """Alternating numeric/non-numeric segments of the raw text."""
        return split_segments(self.raw)

    def compare(self, other: Version) -> Ordering:
        """Compare with another version."""
        return compare(self, other)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.raw == other.raw

    def __hash__(self) -> int:
        return hash(self.raw)

    def __lt__(self, other: Version) -> bool:
        return compare(self, other) == Ordering.LESS

    def __le__(self, other: Version) -> bool:
        return compare(self, other) != Ordering.GREATER

    def __gt__(self, other: Version) -> bool:
        return compare(self, other) == Ordering.GREATER

    def __ge__(self, other: Version) -> bool:
        return compare(self, other) != Ordering.LESS

    def __str__(self) -> str:
        return self.raw


def compare(a: Version, b: Version) -> Ordering:
    """Compare two versions.

    Semantic versions compare by precedence. Opaque versions compare
    segment-wise, numerically where both segments are numeric. A semantic
    version compared with an opaque one falls back to raw text comparison.

    Args:
        a: Left-hand version.
        b: Right-hand version.

    Returns:
        Ordering of ``a`` relative to ``b``.
    """
    if a.raw == b.raw:
        return Ordering.EQUAL

    if a.semver is not None and b.semver is not None:
        result = _compare_semver(a.semver, b.semver)
    elif a.semver is None and b.semver is None:
        result = _compare_segments(a.segments, b.segments)
    else:
        result = Ordering.EQUAL

    if result != Ordering.EQUAL:
        return result
    return Ordering.of(a.raw, b.raw)

