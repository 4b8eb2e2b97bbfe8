"""Stall application state manager"""

from .router import router

__all__ = ["router"]
