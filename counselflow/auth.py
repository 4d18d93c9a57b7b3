"""
Authorization Module with JWT Support
=====================================

Visibility rules for contracts and clients.

Roles (firm-wide):
- ADMIN, PARTNER: elevated - can see and act on every contract and client
- LAWYER, PARALEGAL, USER: only records they are the assigned lawyer of

Authorization Flow:
1. Verify the bearer token and read the user id from its ``sub`` claim
2. Load the user; unknown or inactive users are rejected
3. Build an AuthContext and pass it explicitly to every service call
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

import jwt
from sqlalchemy.orm import Session

from .config import Settings
from .db.models import User, UserRole, ELEVATED_ROLES, utc_now

logger = logging.getLogger(__name__)

# last_login is only rewritten once it is older than this
LAST_LOGIN_REFRESH = timedelta(minutes=5)


# =============================================================================
# ACCESS PREDICATE
# =============================================================================

def is_elevated(role: UserRole) -> bool:
    """True for roles that see every record"""
    return role in ELEVATED_ROLES


def can_access(caller_id: str, owner_id: Optional[str], caller_role: UserRole) -> bool:
    """
    Single visibility rule for contracts and clients.

    A caller may see/act on a record if they are its assigned lawyer, or if
    they hold an elevated role.
    """
    if is_elevated(caller_role):
        return True
    return owner_id is not None and owner_id == caller_id


# =============================================================================
# AUTH CONTEXT
# =============================================================================

@dataclass(frozen=True)
class AuthContext:
    """Authenticated caller for a request"""
    user_id: str
    email: str
    first_name: str
    last_name: str
    role: UserRole

    @property
    def is_elevated(self) -> bool:
        return is_elevated(self.role)

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def can_access(self, owner_id: Optional[str]) -> bool:
        return can_access(self.user_id, owner_id, self.role)


# =============================================================================
# JWT TOKEN HANDLING
# =============================================================================

def create_access_token(data: dict, settings: Settings, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed JWT access token (used by seeding and tests)"""
    to_encode = data.copy()
    expire = utc_now() + (expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes))
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> Optional[dict]:
    """Decode and validate a JWT token, returning None if it is not usable"""
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        logger.warning("Rejected expired JWT token")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid JWT token: {e}")
        return None

    if payload.get("type", "access") != "access":
        logger.warning("Rejected non-access JWT token")
        return None
    return payload


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token part of an ``Authorization: Bearer <token>`` header"""
    if not authorization or not authorization.lower().startswith("bearer "):
        return None
    token = authorization.split(" ", 1)[1].strip()
    return token or None


# =============================================================================
# AUTH SERVICE (SQLAlchemy-based)
# =============================================================================

class AuthService:
    """Builds auth contexts from the user table"""

    def __init__(self, db: Session):
        self.db = db

    def get_auth_context(self, user_id: str) -> Optional[AuthContext]:
        """
        Build auth context for a user.

        Args:
            user_id: User ID from the JWT ``sub`` claim

        Returns:
            AuthContext if user exists and is active, None otherwise
        """
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user or not user.is_active:
            logger.warning(f"Auth failed: user {user_id} not found or inactive")
            return None

        now = utc_now()
        if user.last_login is None or now - user.last_login >= LAST_LOGIN_REFRESH:
            user.last_login = now

        return AuthContext(
            user_id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role=user.role,
        )
