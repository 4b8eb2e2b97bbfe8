"""Ownership checks shared across domains"""

import logging

from ..errors import PermissionDeniedError
from ..models import Exhibition, Profile

logger = logging.getLogger(__name__)


def is_manager(user: Profile) -> bool:
    return user.role == "manager"


def can_manage_exhibition(user: Profile, exhibition: Exhibition) -> bool:
    """Organisers manage their own exhibitions; managers manage all of them"""
    return is_manager(user) or (user.role == "organiser" and exhibition.organiser_id == user.id)


def ensure_can_manage_exhibition(user: Profile, exhibition: Exhibition) -> None:
    if not can_manage_exhibition(user, exhibition):
        logger.warning(f"⚠️ User {user.id} denied access to exhibition {exhibition.id}")
        raise PermissionDeniedError("You do not manage this exhibition")


def ensure_role(user: Profile, *roles: str) -> None:
    if user.role not in roles:
        raise PermissionDeniedError(f"This action requires one of the roles: {', '.join(roles)}")
