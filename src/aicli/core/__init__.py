"""ai-cli core modules."""

from aicli.core.config import Settings, load_settings

__all__ = ["Settings", "load_settings"]
