"""Command line interface for Privacy Gaps."""

from privacy_gaps.cli.main import cli, main

__all__ = ["cli", "main"]
