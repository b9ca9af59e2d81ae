"""
Interface layer package.

Contains the typer CLI and the rich console renderer.
"""

from autocapcheck.interface.cli import app, main

__all__ = ["app", "main"]
