"""
Modules package for home-dashboard.

Modules are the pieces a session wires together.
"""

from home_dashboard.modules.base import SessionModule

__all__ = ["SessionModule"]
