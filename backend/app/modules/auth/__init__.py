# Authentication module

from app.modules.auth.dependencies import (
    get_current_user,
    get_current_owner,
    get_current_staff,
    get_current_vet,
    get_current_admin,
    require_roles,
)

__all__ = [
    "get_current_user",
    "get_current_owner",
    "get_current_staff",
    "get_current_vet",
    "get_current_admin",
    "require_roles",
]
