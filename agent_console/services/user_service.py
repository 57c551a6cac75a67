"""
User Service
Console users, password checks and tenant bootstrap
"""

import hashlib
import hmac
import secrets
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session

from agent_console.core.exceptions import Conflict, NotFound
from agent_console.core.logging import get_logger
from agent_console.db.models import Tenant, User, UserRole

logger = get_logger(__name__)

PBKDF2_ITERATIONS = 120_000


def hash_password(password: str, salt: Optional[str] = None) -> str:
    """Salted PBKDF2-SHA256, stored as iterations$salt$hexdigest"""
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), PBKDF2_ITERATIONS)
    return f"{PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    """Verify password against hash"""
    try:
        iterations, salt, expected = password_hash.split("$", 2)
        digest = hashlib.pbkdf2_hmac(
            "sha256", password.encode("utf-8"), salt.encode("utf-8"), int(iterations)
        )
    except ValueError:
        return False
    return hmac.compare_digest(digest.hex(), expected)


def session_claims(user: User) -> Dict[str, Any]:
    """Claims carried in session tokens"""
    return {
        "userId": user.id,
        "email": user.email,
        "role": user.role,
        "tenantId": user.tenant_id,
        "isGlobalUser": bool(user.is_global_user)
    }


class UserService:
    """
    Service for console users and tenants
    """

    def __init__(self, db: Session):
        self.db = db

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(
            User.email == email.lower(),
            User.is_active == True
        ).first()

    def authenticate(self, email: str, password: str) -> Optional[User]:
        """Return the user when the credentials match, otherwise None"""
        user = self.get_user_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            logger.warning("Failed login attempt", email=email)
            return None
        logger.info(f"User logged in: {user.id}")
        return user

    def create_tenant(self, name: str, slug: str) -> Tenant:
        if self.db.query(Tenant).filter(Tenant.slug == slug).first():
            raise Conflict(f"Tenant with slug '{slug}' already exists")

        tenant = Tenant(name=name, slug=slug)
        self.db.add(tenant)
        self.db.commit()
        self.db.refresh(tenant)

        logger.info(f"Created tenant: {tenant.id} ({tenant.name})")
        return tenant

    def create_user(
        self,
        email: str,
        password: str,
        role: str = UserRole.VIEWER.value,
        tenant_id: Optional[str] = None,
        is_global_user: bool = False,
        name: Optional[str] = None
    ) -> User:
        """
        Create a console user

        Raises:
            Conflict: Email already registered
            NotFound: Unknown tenant
        """
        email = email.lower()
        if self.db.query(User).filter(User.email == email).first():
            raise Conflict("A user with this email already exists")

        if tenant_id and not self.db.query(Tenant).filter(Tenant.id == tenant_id).first():
            raise NotFound("Tenant not found")

        user = User(
            email=email,
            name=name,
            password_hash=hash_password(password),
            role=UserRole(role).value,
            tenant_id=tenant_id,
            is_global_user=is_global_user
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)

        logger.info(f"Created user: {user.id}", role=user.role, tenant_id=tenant_id)
        return user
