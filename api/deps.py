from functools import lru_cache

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.collaborators import Identity, require_admin
from core.container import Services, build_services
from core.errors import UnauthorizedError

security = HTTPBearer(auto_error=False)


@lru_cache
def get_services() -> Services:
    return build_services()


def get_identity(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    services: Services = Depends(get_services),
) -> Identity:
    if not credentials or not credentials.credentials:
        raise UnauthorizedError("Not authenticated")
    return services.identity.resolve(credentials.credentials.strip())


def get_admin(identity: Identity = Depends(get_identity)) -> Identity:
    require_admin(identity)
    return identity


def require_self_or_admin(identity: Identity, user_id) -> None:
    if identity.user_id != user_id:
        require_admin(identity)
