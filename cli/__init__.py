"""
SCRIPTORIUM - Command Line Interface

Inspect and transform IR snapshots from the shell.
"""
from cli.main import app, main

__all__ = ["app", "main"]
