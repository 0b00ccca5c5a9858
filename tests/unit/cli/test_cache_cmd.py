"""Unit tests for the cache commands."""

from pathlib import Path

from bpm.cli.main import app
from typer.testing import CliRunner

runner = CliRunner()


def invoke(config_file: Path, *args: str):
    return runner.invoke(app, ["--config", str(config_file), "cache", *args])


class TestCacheCommands:
    """Tests for bpm cache."""

    def test_list_empty(self, config_file: Path) -> None:
        """An empty cache is reported as such."""
        result = invoke(config_file, "list")
        assert result.exit_code == 0
        assert "Cache is empty" in result.stdout

    def test_fetch_then_list(self, config_file: Path, repo_dir: Path, make_artifact) -> None:
        """Fetched artifacts show up in the cache listing."""
        make_artifact(repo_dir, "foo", "1.0.0")

        fetched = invoke(config_file, "fetch", "foo")
        listed = invoke(config_file, "list")

        assert fetched.exit_code == 0, fetched.output
        assert "cached" in fetched.stdout
        assert "foo" in listed.stdout
        assert "1 artifact(s)" in listed.stdout

    def test_fetch_unknown(self, config_file: Path) -> None:
        """Fetching an unknown package exits with status 1."""
        result = invoke(config_file, "fetch", "nope")
        assert result.exit_code == 1

    def test_clear_keeps_installed(
        self, config_file: Path, repo_dir: Path, make_artifact
    ) -> None:
        """clear keeps artifacts of installed packages unless --all is given."""
        make_artifact(repo_dir, "foo", "1.0.0")
        runner.invoke(app, ["--config", str(config_file), "install", "foo"])

        kept = invoke(config_file, "clear")
        assert "Nothing to remove" in kept.stdout

        removed = invoke(config_file, "clear", "--all")
        assert "Removed 1 artifact(s)" in removed.stdout

    def test_evict(self, config_file: Path, repo_dir: Path, make_artifact) -> None:
        """evict removes one package's artifacts."""
        make_artifact(repo_dir, "foo", "1.0.0")
        invoke(config_file, "fetch", "foo")

        result = invoke(config_file, "evict", "foo@1.0.0")

        assert result.exit_code == 0
        assert "Removed 1 artifact(s)" in result.stdout

    def test_touch(self, config_file: Path, repo_dir: Path, make_artifact) -> None:
        """touch sets a retention override on matching artifacts."""
        make_artifact(repo_dir, "foo", "1.0.0")
        invoke(config_file, "fetch", "foo")

        result = invoke(config_file, "touch", "foo", "--retention", "90d")
        missing = invoke(config_file, "touch", "bar")
        invalid = invoke(config_file, "touch", "foo", "--retention", "soon")

        assert result.exit_code == 0
        assert "Touched 1 artifact(s)" in result.stdout
        assert missing.exit_code == 1
        assert invalid.exit_code == 1

    def test_clean(self, config_file: Path) -> None:
        """clean with nothing expired removes nothing."""
        result = invoke(config_file, "clean")
        assert result.exit_code == 0
        assert "Nothing to remove" in result.stdout
