"""
System components for studentmath.

Configuration and the HTTP service.
"""

from studentmath.components.config import Config, ConfigManager
