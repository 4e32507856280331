"""Command line interface for Stashgate."""

from stashgate.cli.main import cli

__all__ = ["cli"]
