"""Unit tests for version parsing and ordering."""

import itertools

import pytest
from bpm.models.version import Ordering, SemVer, Version, compare, split_segments

SAMPLE = [
    "1.0.0",
    "1.0.1",
    "1.1.0",
    "2.0.0",
    "1.0.0-alpha",
    "1.0.0-alpha.1",
    "1.0.0-beta",
    "1.0.0-rc.1",
    "1.0.0+build.5",
    "1.2",
    "1.10",
    "1.02",
    "2024.01",
    "r17",
    "1.2rc1",
]


def v(text: str) -> Version:
    return Version.parse(text)


class TestParse:
    """Tests for Version.parse."""

    def test_semver_fields(self) -> None:
        """Conforming strings are parsed into semantic fields."""
        version = v("1.2.3-rc.1+linux.x64")
        assert version.semver == SemVer(1, 2, 3, ("rc", "1"), ("linux", "x64"))
        assert version.is_semver
        assert version.is_prerelease

    def test_opaque_version(self) -> None:
        """Non-conforming strings are kept as opaque versions."""
        version = v("1.10")
        assert not version.is_semver
        assert version.segments == ("1", ".", "10")

    def test_leading_zero_is_not_semver(self) -> None:
        """Numeric fields with leading zeros do not conform."""
        assert not v("01.2.3").is_semver

    def test_never_fails(self) -> None:
        """Parsing accepts any text and preserves it."""
        for text in ["", "???", "1..2", "v1.0.0"]:
            assert v(text).raw == text

    def test_strips_whitespace(self) -> None:
        """Surrounding whitespace is not part of the version."""
        assert v("  1.0.0\n").raw == "1.0.0"

    def test_str_is_raw_text(self) -> None:
        """str() returns the original text."""
        assert str(v("1.0.0+meta")) == "1.0.0+meta"


class TestSemanticOrdering:
    """Tests for semantic version precedence."""

    def test_release_chain(self) -> None:
        """Numeric fields compare numerically."""
        assert v("1.0.0") < v("1.0.1") < v("1.1.0") < v("2.0.0")
        assert v("1.9.0") < v("1.10.0")

    def test_prerelease_below_release(self) -> None:
        """A pre-release is lower than its normal release."""
        assert v("1.0.0-beta") < v("1.0.0")

    def test_prerelease_precedence(self) -> None:
        """Pre-release identifiers follow semantic versioning precedence."""
        chain = [
            "1.0.0-alpha",
            "1.0.0-alpha.1",
            "1.0.0-alpha.beta",
            "1.0.0-beta",
            "1.0.0-beta.2",
            "1.0.0-beta.11",
            "1.0.0-rc.1",
            "1.0.0",
        ]
        for lower, higher in itertools.pairwise(chain):
            assert compare(v(lower), v(higher)) == Ordering.LESS

    def test_build_metadata_tiebreak(self) -> None:
        """Build metadata does not affect precedence but keeps the order total."""
        a, b = v("1.0.0+a"), v("1.0.0+b")
        assert a != b
        assert compare(a, b) == Ordering.LESS
        assert v("1.0.0+zzz") < v("1.0.1")


class TestOpaqueOrdering:
    """Tests for segment-wise comparison of opaque versions."""

    def test_numeric_segments(self) -> None:
        """Numeric segments compare as numbers."""
        assert v("1.2") < v("1.10")

    def test_shorter_sorts_first(self) -> None:
        """A sequence sorts before a longer sequence it prefixes."""
        assert v("1.2") < v("1.2.1")

    def test_split_segments(self) -> None:
        """Text splits into alternating numeric and non-numeric runs."""
        assert split_segments("1.10rc2") == ("1", ".", "10", "rc", "2")

    def test_equal_value_different_text(self) -> None:
        """Equal segment values with different text are still ordered."""
        assert v("1.02") != v("1.2")
        assert compare(v("1.02"), v("1.2")) != Ordering.EQUAL

    @pytest.mark.parametrize("text", ["1²", "1.²", "v³"])
    def test_non_decimal_digits_are_text(self, text: str) -> None:
        """Superscript digits compare as text against numeric segments."""
        for other in ("1", "1.2", "2", "v1"):
            assert compare(v(text), v(other)) == compare(v(other), v(text)).invert()


class TestOrderingProperties:
    """Totality, antisymmetry and transitivity over a mixed sample."""

    def test_equality_iff_same_text(self) -> None:
        """compare() returns EQUAL exactly for identical text."""
        for a, b in itertools.product(SAMPLE, repeat=2):
            assert (compare(v(a), v(b)) == Ordering.EQUAL) == (a == b)

    def test_antisymmetric(self) -> None:
        """Swapping operands inverts the result."""
        for a, b in itertools.product(SAMPLE, repeat=2):
            assert compare(v(a), v(b)) == compare(v(b), v(a)).invert()

    @pytest.mark.parametrize("scheme", ["semver", "opaque"])
    def test_transitive_within_scheme(self, scheme: str) -> None:
        """Ordering is transitive among versions of one scheme."""
        versions = [v(t) for t in SAMPLE if v(t).is_semver == (scheme == "semver")]
        for a, b, c in itertools.product(versions, repeat=3):
            if a < b and b < c:
                assert a < c

    def test_sorting_is_deterministic(self) -> None:
        """Sorting does not depend on input order."""
        versions = [v(t) for t in SAMPLE if v(t).is_semver]
        assert sorted(versions) == sorted(reversed(versions))

    def test_hash_matches_equality(self) -> None:
        """Equal versions hash equally."""
        assert {v("1.0.0"), v("1.0.0"), v("1.0")} == {v("1.0.0"), v("1.0")}
