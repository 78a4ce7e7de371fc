"""ctxman command-line interface."""

from ctxman.cli.main import cli

__all__ = ["cli"]
