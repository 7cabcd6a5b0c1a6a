"""Shared rich console for user-facing status output."""

from rich.console import Console

console = Console()
