"""
Command-line todo manager package.

The Typer application lives in todo_cli.cli; run it with the `todo` console
script or `python -m todo_cli`.
"""

__version__ = "0.1.0"
