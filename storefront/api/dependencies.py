from fastapi import Depends, Request
from sqlalchemy.orm import Session

from shared.core import set_request_context
from storefront.application.auth_service import AuthService
from storefront.domain.errors import AuthenticationFailed, Forbidden
from storefront.domain.models import User
from storefront.infrastructure.db import get_db

BEARER_PREFIX = "Bearer "


def resolve_bearer_user(request: Request, db: Session = Depends(get_db)) -> User:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith(BEARER_PREFIX):
        raise AuthenticationFailed("Missing token")
    return AuthService(db).resolve_token(auth_header[len(BEARER_PREFIX):])


async def get_current_user(user: User = Depends(resolve_bearer_user)) -> User:
    # Must run in the request task, not a threadpool copy of its context, for
    # the user id to reach records logged by the endpoint.
    set_request_context(user_id=str(user.id))
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise Forbidden("Admin role required")
    return user
