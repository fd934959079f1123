"""
Core module initialization.
Exports configuration, logging utilities and domain exceptions.
"""

from tableside.core.config import get_settings, setup_logging, Settings, EnvironmentMode
from tableside.core.exceptions import TablesideError

__all__ = ["get_settings", "setup_logging", "Settings", "EnvironmentMode", "TablesideError"]
