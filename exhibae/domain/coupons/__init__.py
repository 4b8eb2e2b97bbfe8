"""Organiser discount coupons"""

from .router import router

__all__ = ["router"]
