"""Authentication helpers for the API layer."""

from .jwt import (
    authenticate_user,
    create_access_token,
    current_actor_id,
    get_current_user,
    get_user_profile,
    require_actor,
    verify_token,
)

__all__ = [
    "authenticate_user",
    "create_access_token",
    "current_actor_id",
    "get_current_user",
    "get_user_profile",
    "require_actor",
    "verify_token",
]
