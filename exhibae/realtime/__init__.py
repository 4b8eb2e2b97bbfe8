"""Realtime change feed: commit-time capture, scoped channels and client cache."""

from . import capture  # noqa: F401 - registers session listeners
from .broker import Binding, Channel, ChangeBroker, broker
from .cache import ChangeCache
from .events import ChangeEvent

__all__ = ["Binding", "Channel", "ChangeBroker", "ChangeCache", "ChangeEvent", "broker"]
