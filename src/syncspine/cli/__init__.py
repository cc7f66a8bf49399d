"""
CLI layer for syncspine.

Provides a Typer application whose commands delegate to ``Provider``.
This package handles only terminal transport: argument parsing, provider
loading and Rich output.

Entry point::

    syncspine --help
"""

from syncspine.cli.app import app

__all__ = ["app"]
