"""Brand/organiser conversations and support tickets"""

from .router import router

__all__ = ["router"]
