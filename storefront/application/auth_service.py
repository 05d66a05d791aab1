import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shared.core import get_logger
from storefront.domain.errors import AuthenticationFailed, Forbidden, InvalidRequest
from storefront.domain.models import Role, User, utcnow
from storefront.infrastructure.db import atomic
from storefront.infrastructure.repositories import UserRepository
from storefront.infrastructure.security import create_access_token, decode_access_token, hash_password, verify_password
from .schemas import AuthResponse, LoginRequest, RegisterRequest

logger = get_logger(__name__)


def _auth_response(user: User) -> AuthResponse:
    return AuthResponse(
        access_token=create_access_token(str(user.id), user.role.value),
        user_id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
    )


class AuthService:
    def __init__(self, db: Session):
        self.db = db
        self.users = UserRepository(db)

    def register(self, data: RegisterRequest) -> AuthResponse:
        if data.role == Role.ADMIN:
            raise Forbidden("Admin accounts cannot be self-registered", {"field": "role"})
        email = data.email.lower()
        try:
            with atomic(self.db):
                if self.users.find_by_email(email) is not None:
                    raise InvalidRequest("Email is already in use", {"field": "email"})
                now = utcnow()
                user = User(
                    name=data.name,
                    email=email,
                    password_hash=hash_password(data.password),
                    role=Role.USER,
                    created_at=now,
                    updated_at=now,
                )
                self.users.save(user)
        except IntegrityError:
            # A concurrent registration claimed the email after our lookup
            raise InvalidRequest("Email is already in use", {"field": "email"}) from None
        logger.info(f"User {user.id} registered")
        return _auth_response(user)

    def login(self, data: LoginRequest) -> AuthResponse:
        user = self.users.find_by_email(data.email.lower())
        if user is None or not verify_password(data.password, user.password_hash):
            raise AuthenticationFailed("Invalid credentials")
        return _auth_response(user)

    def resolve_token(self, token: str) -> User:
        """Turn a bearer token into the user it was issued for."""
        claims = decode_access_token(token)
        if not claims or "sub" not in claims:
            raise AuthenticationFailed("Invalid token")
        try:
            user_id = uuid.UUID(claims["sub"])
        except ValueError:
            raise AuthenticationFailed("Invalid token") from None
        user = self.users.find_by_id(user_id)
        if user is None:
            raise AuthenticationFailed("Token subject no longer exists")
        return user
