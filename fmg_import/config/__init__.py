"""
Configuration for map imports.
"""

from .config import Settings, settings

__all__ = ['Settings', 'settings']
