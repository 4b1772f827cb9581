from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from api.deps import get_identity, get_services
from core.collaborators import Identity
from core.container import Services
from core.errors import NotFoundError, UnauthorizedError

from .models import RegisterUserRequest, User, UserProfile
from .passwords import hash_password, verify_password

router = APIRouter(tags=["Users"])


class RegisterBody(BaseModel):
    name: str = Field(..., min_length=3)
    email: str
    password: str = Field(..., min_length=6)
    referred_by: Optional[str] = None


class LoginBody(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    token: str
    user: User


@router.post("/users", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register(body: RegisterBody, services: Services = Depends(get_services)) -> TokenResponse:
    user = services.accounts.register_user(RegisterUserRequest(
        name=body.name,
        email=body.email,
        password_hash=hash_password(body.password),
        referred_by=body.referred_by,
    ))
    return TokenResponse(token=services.identity.issue(user.id, user.role), user=user)


@router.post("/auth/login", response_model=TokenResponse)
def login(body: LoginBody, services: Services = Depends(get_services)) -> TokenResponse:
    try:
        user = services.accounts.get_user_by_email(body.email)
    except NotFoundError:
        raise UnauthorizedError("Invalid email or password") from None
    if not verify_password(body.password, user.password_hash):
        raise UnauthorizedError("Invalid email or password")
    return TokenResponse(token=services.identity.issue(user.id, user.role), user=user)


@router.get("/users/me", response_model=UserProfile)
def me(identity: Identity = Depends(get_identity), services: Services = Depends(get_services)) -> UserProfile:
    return services.accounts.get_profile(identity.user_id)


@router.get("/activities")
def list_activities(
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
) -> list[dict]:
    if not hasattr(services.notifier, "list_activities"):
        return []
    return services.notifier.list_activities(None if identity.is_admin else identity.user_id)
