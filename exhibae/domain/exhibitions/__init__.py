"""Exhibitions, stall types, stall instances and maintenance"""

from .router import router

__all__ = ["router"]
