"""Unit tests for the install, update, uninstall and list commands."""

import json
from pathlib import Path

from bpm.cli.main import app
from typer.testing import CliRunner

runner = CliRunner()


def invoke(config_file: Path, *args: str):
    return runner.invoke(app, ["--config", str(config_file), *args])


class TestInstallCommand:
    """Tests for bpm install."""

    def test_install_latest(
        self, config_file: Path, repo_dir: Path, target_dir: Path, make_artifact
    ) -> None:
        """Installing a package reports it and writes its files."""
        make_artifact(repo_dir, "foo", "1.0.0")
        make_artifact(repo_dir, "foo", "2.0.0")

        result = invoke(config_file, "install", "foo")

        assert result.exit_code == 0, result.output
        assert "installed" in result.stdout
        assert (target_dir / "bin" / "foo").read_bytes() == b"foo 2.0.0"

    def test_install_unknown_fails(self, config_file: Path) -> None:
        """A package no provider offers exits with status 1."""
        result = invoke(config_file, "install", "nope")
        assert result.exit_code == 1
        assert "not found" in result.stdout

    def test_install_invalid_request(self, config_file: Path) -> None:
        """Malformed requests are rejected before anything runs."""
        result = invoke(config_file, "install", "foo@")
        assert result.exit_code == 1
        assert "Empty version or channel" in result.output

    def test_install_local_file(
        self, config_file: Path, tmp_path: Path, target_dir: Path, make_artifact
    ) -> None:
        """A path to an artifact file installs that file."""
        path = make_artifact(tmp_path / "downloads", "foo", "3.0")

        result = invoke(config_file, "install", str(path))

        assert result.exit_code == 0, result.output
        assert (target_dir / "bin" / "foo").read_bytes() == b"foo 3.0"

    def test_install_target_option(
        self, config_file: Path, repo_dir: Path, tmp_path: Path, make_artifact
    ) -> None:
        """--target installs into another mount point."""
        make_artifact(repo_dir, "foo", "1.0.0")

        result = invoke(config_file, "install", "foo", "--target", "docs")

        assert result.exit_code == 0, result.output
        assert (tmp_path / "docs" / "bin" / "foo").exists()

    def test_partial_failure(self, config_file: Path, repo_dir: Path, make_artifact) -> None:
        """Other requests still run when one fails, but the exit status is 1."""
        make_artifact(repo_dir, "foo", "1.0.0")

        result = invoke(config_file, "install", "nope", "foo")

        assert result.exit_code == 1
        assert "installed" in result.stdout


class TestListAndUninstall:
    """Tests for bpm list and bpm uninstall."""

    def test_list_empty(self, config_file: Path) -> None:
        """An empty database lists nothing."""
        result = invoke(config_file, "list")
        assert result.exit_code == 0
        assert "No packages installed" in result.stdout

    def test_list_json(self, config_file: Path, repo_dir: Path, make_artifact) -> None:
        """--json prints installed records without file listings."""
        make_artifact(repo_dir, "foo", "1.0.0")
        invoke(config_file, "install", "foo")

        result = invoke(config_file, "list", "--json")

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [item["name"] for item in data] == ["foo"]
        assert data[0]["version"] == "1.0.0"
        assert "files" not in data[0]

    def test_list_table(self, config_file: Path, repo_dir: Path, make_artifact) -> None:
        """Installed packages are shown in a table."""
        make_artifact(repo_dir, "foo", "1.0.0")
        invoke(config_file, "install", "foo@1.0.0")

        result = invoke(config_file, "list")

        assert "foo" in result.stdout
        assert "pinned" in result.stdout

    def test_uninstall(
        self, config_file: Path, repo_dir: Path, target_dir: Path, make_artifact
    ) -> None:
        """Uninstalling removes files; uninstalling again fails softly."""
        make_artifact(repo_dir, "foo", "1.0.0")
        invoke(config_file, "install", "foo")

        first = invoke(config_file, "uninstall", "foo")
        second = invoke(config_file, "uninstall", "foo")

        assert first.exit_code == 0
        assert "removed" in first.stdout
        assert not (target_dir / "bin").exists()
        assert second.exit_code == 0
        assert "not_installed" in second.stdout


class TestUpdateCommand:
    """Tests for bpm update."""

    def test_update_all(self, config_file: Path, repo_dir: Path, make_artifact) -> None:
        """Without arguments every installed package is updated."""
        make_artifact(repo_dir, "foo", "1.0.0")
        invoke(config_file, "install", "foo")
        make_artifact(repo_dir, "foo", "2.0.0")

        result = invoke(config_file, "update")

        assert result.exit_code == 0, result.output
        assert "1.0.0 -> 2.0.0" in result.stdout

    def test_update_nothing_installed(self, config_file: Path) -> None:
        """Updating with nothing installed is not an error."""
        result = invoke(config_file, "update")
        assert result.exit_code == 0
        assert "No packages installed" in result.stdout
