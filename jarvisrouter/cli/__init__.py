"""Command-line interface for JARVIS Router."""

from .main import cli, main

__all__ = ["cli", "main"]
