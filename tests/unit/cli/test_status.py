"""Unit tests for the verify, query and pin commands."""

from pathlib import Path

import pytest
from bpm.cli.main import app
from typer.testing import CliRunner

runner = CliRunner()


@pytest.fixture
def installed(config_file: Path, repo_dir: Path, make_artifact) -> Path:
    """Config file of a setup with foo 1.0.0 installed."""
    make_artifact(repo_dir, "foo", "1.0.0")
    result = runner.invoke(app, ["--config", str(config_file), "install", "foo"])
    assert result.exit_code == 0, result.output
    return config_file


class TestVerifyCommand:
    """Tests for bpm verify."""

    def test_clean(self, installed: Path) -> None:
        """An untouched install verifies OK."""
        result = runner.invoke(app, ["--config", str(installed), "verify"])
        assert result.exit_code == 0
        assert "OK" in result.stdout

    def test_modified_then_restored(self, installed: Path, target_dir: Path) -> None:
        """Modified files fail verification until restored."""
        (target_dir / "bin" / "foo").write_bytes(b"tampered")

        failed = runner.invoke(app, ["--config", str(installed), "verify", "foo"])
        assert failed.exit_code == 1
        assert "modified" in failed.stdout

        restored = runner.invoke(app, ["--config", str(installed), "verify", "foo", "--restore"])
        assert restored.exit_code == 0
        assert "restored" in restored.stdout
        assert (target_dir / "bin" / "foo").read_bytes() == b"foo 1.0.0"

    def test_unknown_package(self, installed: Path) -> None:
        """Verifying a package that is not installed is an error."""
        result = runner.invoke(app, ["--config", str(installed), "verify", "bar"])
        assert result.exit_code == 1
        assert "not installed" in result.output


class TestQueryCommands:
    """Tests for bpm query."""

    def test_owner(self, installed: Path, target_dir: Path) -> None:
        """query owner names the owning package."""
        path = target_dir / "bin" / "foo"
        result = runner.invoke(app, ["--config", str(installed), "query", "owner", str(path)])
        assert result.exit_code == 0
        assert "foo 1.0.0 bin/foo" in result.stdout

    def test_owner_unowned(self, installed: Path, tmp_path: Path) -> None:
        """query owner exits with status 1 for unowned paths."""
        path = tmp_path / "elsewhere"
        result = runner.invoke(app, ["--config", str(installed), "query", "owner", str(path)])
        assert result.exit_code == 1

    def test_files(self, installed: Path, target_dir: Path) -> None:
        """query files prints one absolute path per line."""
        result = runner.invoke(app, ["--config", str(installed), "query", "files", "foo"])
        assert result.exit_code == 0
        assert result.stdout.splitlines() == [
            str(target_dir / "bin"),
            str(target_dir / "bin" / "foo"),
        ]


class TestPinCommands:
    """Tests for bpm pin and bpm unpin."""

    def test_pin_version(self, installed: Path) -> None:
        """pin without options pins the installed version."""
        result = runner.invoke(app, ["--config", str(installed), "pin", "foo"])
        assert result.exit_code == 0
        assert "Pinned foo to 1.0.0" in result.stdout

    def test_pin_channel_and_unpin(self, installed: Path) -> None:
        """pin --channel follows a channel and unpin clears it."""
        pinned = runner.invoke(
            app, ["--config", str(installed), "pin", "foo", "--channel", "stable"]
        )
        assert "Pinned foo to stable" in pinned.stdout

        unpinned = runner.invoke(app, ["--config", str(installed), "unpin", "foo"])
        assert unpinned.exit_code == 0
        assert "Unpinned foo" in unpinned.stdout

    def test_pin_unknown(self, installed: Path) -> None:
        """Pinning a package that is not installed fails."""
        result = runner.invoke(app, ["--config", str(installed), "pin", "bar"])
        assert result.exit_code == 1
