"""Email domain - logged sends, templates and the retry queue"""

from .router import router

__all__ = ["router"]
