"""CLI command handlers."""

from .diagnostics import run_diagnostics
from .publish import run_publish
from .run import run_uploader
from .setup import run_setup

__all__ = ["run_diagnostics", "run_publish", "run_setup", "run_uploader"]
