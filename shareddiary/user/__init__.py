"""User profile store."""

from .models import User
from .services import UserService

__all__ = ["User", "UserService"]
