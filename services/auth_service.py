import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

import bcrypt
from jose import JWTError, jwt
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.config import JWT_ALGORITHM, get_bcrypt_rounds, get_jwt_secret, get_token_expire_days
from core.errors import (
    DuplicateIdentity,
    InvalidCredentials,
    InvalidToken,
    PendingApproval,
    PrincipalGone,
    UserNotFound,
    ValidationFailed,
)
from models.user import ROLE_ADMIN, ROLE_DRIVER, ROLES, User
from schemas.user import AdminRegister

log = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes; longer secrets are rejected outright.
MAX_PASSWORD_BYTES = 72


def _encode_password(password: str) -> bytes:
    encoded = password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise ValidationFailed(errors=[{"field": "password", "message": "Password is too long"}])
    return encoded


class AuthService:
    """Credential store: accounts, password hashes and bearer tokens."""

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        """Verify plain password against hashed password."""
        try:
            return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
        except ValueError:
            # Over-long input or a corrupt stored hash never matches.
            return False

    @staticmethod
    def get_password_hash(password: str) -> str:
        """Hash a plain password with a fresh salt."""
        salt = bcrypt.gensalt(rounds=get_bcrypt_rounds())
        return bcrypt.hashpw(_encode_password(password), salt).decode("utf-8")

    @staticmethod
    def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
        """Create a JWT carrying the user id and role."""
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta or timedelta(days=get_token_expire_days()))
        to_encode = {
            "sub": str(user.id),
            "role": user.role,
            "iat": now,
            "exp": expire,
        }
        return jwt.encode(to_encode, get_jwt_secret(), algorithm=JWT_ALGORITHM)

    @staticmethod
    def verify_token(token: str) -> dict:
        """Verify JWT signature and expiry and return its payload."""
        secret = get_jwt_secret()
        try:
            payload = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
        except JWTError:
            raise InvalidToken()
        if not payload.get("sub"):
            raise InvalidToken("Invalid token: no subject claim")
        return payload

    @staticmethod
    def register_user(
        user_in: AdminRegister,
        role: str,
        db: Session,
        *,
        approved: bool = False,
        commit: bool = True,
    ) -> User:
        """Register a new account. Pass commit=False to join a larger transaction."""
        if role not in ROLES:
            raise ValidationFailed(errors=[{"field": "role", "message": f"Unknown role {role!r}"}])

        username = user_in.username.strip()
        email = str(user_in.email).strip().lower()

        existing = db.query(User).filter(
            or_(User.email == email, User.username == username)
        ).first()
        if existing:
            raise DuplicateIdentity()

        new_user = User(
            username=username,
            email=email,
            hashed_password=AuthService.get_password_hash(user_in.password),
            role=role,
            is_approved=approved,
        )
        db.add(new_user)

        if not commit:
            db.flush()
            return new_user

        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise DuplicateIdentity()
        db.refresh(new_user)
        log.info("Registered %s account %s", role, new_user.username)
        return new_user

    @staticmethod
    def authenticate_user(identity: str, password: str, db: Session, role: Optional[str] = None) -> User:
        """
        Authenticate by username or email.

        Unapproved drivers are refused even with the right password, so no token
        is ever issued to them.
        """
        lookup = (identity or "").strip()
        user = db.query(User).filter(
            or_(User.username == lookup, User.email == lookup.lower())
        ).first()

        if not user or (role is not None and user.role != role):
            raise InvalidCredentials()

        if not AuthService.verify_password(password, str(user.hashed_password)):
            raise InvalidCredentials()

        if user.role == ROLE_DRIVER and not user.is_approved:
            raise PendingApproval()
        return user

    @staticmethod
    def login(identity: str, password: str, db: Session, role: Optional[str] = None) -> tuple[str, User]:
        user = AuthService.authenticate_user(identity, password, db, role)
        return AuthService.create_access_token(user), user

    @staticmethod
    def get_user_from_token(token: str, db: Session) -> User:
        """Resolve a bearer token to its user."""
        payload = AuthService.verify_token(token)
        try:
            user_id = UUID(str(payload["sub"]))
        except ValueError:
            raise InvalidToken("Invalid token: malformed subject")

        user = db.get(User, user_id)
        if user is None:
            raise PrincipalGone()
        return user

    @staticmethod
    def get_user(user_id: UUID, db: Session) -> User:
        user = db.get(User, user_id)
        if not user:
            raise UserNotFound()
        return user

    @staticmethod
    def list_users(db: Session, role: Optional[str] = None, pending_only: bool = False) -> list[User]:
        query = db.query(User)
        if role:
            query = query.filter(User.role == role)
        if pending_only:
            query = query.filter(User.is_approved.is_(False))
        return query.order_by(User.created_at.desc()).all()

    @staticmethod
    def approve_user(user_id: UUID, db: Session) -> User:
        """Approve a driver account. Idempotent."""
        user = AuthService.get_user(user_id, db)
        if not user.is_approved:
            user.is_approved = True
            db.commit()
            db.refresh(user)
            log.info("Approved %s account %s", user.role, user.username)
        return user


__all__ = ["AuthService", "ROLE_ADMIN", "ROLE_DRIVER"]
