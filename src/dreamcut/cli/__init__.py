"""Command-line interface for DreamCut Analyzer."""

from dreamcut.cli.main import cli, main

__all__ = ["cli", "main"]
