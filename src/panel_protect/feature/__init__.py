"""
Panel Protect Feature Module.

Content of the feature being installed.
"""

__all__ = ["menu_protection"]

from panel_protect.feature import menu_protection
