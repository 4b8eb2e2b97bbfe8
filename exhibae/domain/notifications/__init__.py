"""In-app notifications and the email fan-out"""

from .router import router

__all__ = ["router"]
