from .models import RegisterUserRequest, User, UserProfile
from .service import AccountService

__all__ = [
    "RegisterUserRequest",
    "User",
    "UserProfile",
    "AccountService",
]
