"""Typer command-line interface for bpm."""

from bpm.cli.main import app

__all__ = ["app"]
