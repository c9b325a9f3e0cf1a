"""Shared utilities for buildrelay CLI commands."""

from rich.console import Console

console = Console()
