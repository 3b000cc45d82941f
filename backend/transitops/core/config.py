"""
Configuration access point.

Modules import ``settings`` from here rather than constructing Settings
themselves, so every caller shares the cached instance.
"""
from transitops.core.settings import Settings, get_settings, settings

__all__ = ["Settings", "get_settings", "settings"]
