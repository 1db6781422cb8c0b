"""Command line interface."""

from cartpilot.cli.app import app, main

__all__ = ["app", "main"]
