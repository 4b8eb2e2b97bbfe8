"""Stall payment transactions"""

from .router import router

__all__ = ["router"]
