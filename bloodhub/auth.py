from datetime import datetime, timedelta, timezone
import uuid
import jwt
import logging
from fastapi import Depends, Header, HTTPException, status
from passlib.context import CryptContext
from sqlalchemy.orm import Session
from .config import get_settings
from .database import get_db
from .models.user import User

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

ROLE_INHERITANCE = {
    "hospital_staff": {"hospital_staff"},
    "blood_bank_staff": {"blood_bank_staff"},
    "audit_viewer": {"audit_viewer"},
    "admin": {"admin", "hospital_staff", "blood_bank_staff", "audit_viewer"},
}


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def ensure_default_admin(db: Session) -> None:
    settings = get_settings()
    existing = db.query(User).filter(User.username == settings.DEV_ADMIN_USERNAME).first()
    if existing:
        return
    user = User(
        username=settings.DEV_ADMIN_USERNAME,
        role="admin",
        password_hash=hash_password(settings.DEV_ADMIN_PASSWORD),
        force_password_change=settings.DEV_ADMIN_FORCE_CHANGE,
    )
    db.add(user)
    db.commit()
    logger.info("Created default admin user %s", user.username)


def authenticate_dev_stub(db: Session, username: str, password: str) -> User | None:
    user = db.query(User).filter(User.username == username).first()
    if not user or not verify_password(password, user.password_hash):
        return None
    if pwd_context.needs_update(user.password_hash):
        user.password_hash = hash_password(password)
    user.last_login_at = datetime.now(timezone.utc)
    db.add(user)
    db.commit()
    return user


def create_access_token(user: User) -> str:
    settings = get_settings()
    if not settings.SECRET_KEY:
        raise RuntimeError("SECRET_KEY is not set")
    payload = {
        "sub": str(user.id),
        "role": user.role,
        "org": str(user.organization_id) if user.organization_id else None,
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.ACCESS_TOKEN_HOURS),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm="HS256")


def get_current_user(
    authorization: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    settings = get_settings()
    if settings.AUTH_MODE != "dev_stub":
        raise HTTPException(status_code=status.HTTP_501_NOT_IMPLEMENTED, detail="OIDC not wired")
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token")
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=["HS256"])
        user_id = uuid.UUID(payload["sub"])
    except (jwt.PyJWTError, KeyError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from None
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def role_allows(user_role: str, required_role: str) -> bool:
    return required_role in ROLE_INHERITANCE.get(user_role, set())


def require_role(*roles: str):
    """Allow the caller when their role covers any of ``roles``."""

    def dependency(user: User = Depends(get_current_user)) -> User:
        if not any(role_allows(user.role, role) for role in roles):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
        return user

    return dependency
