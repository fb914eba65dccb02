"""ai-cli UI - Rich terminal interface."""

from aicli.ui.console import AICliConsole

__all__ = ["AICliConsole"]
