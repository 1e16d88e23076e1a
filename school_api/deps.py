from datetime import datetime, timedelta, timezone
from typing import Generator, Optional

from . import models
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from passlib.context import CryptContext
from pybreaker import CircuitBreaker
from sqlalchemy.orm import Session

from .config import Settings
from .logger import get_logger
from .repository import SchedulingRepository
from . import schemas

logger = get_logger("auth")


# ----- DB -----
def get_db(request: Request) -> Generator[Session, None, None]:
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()


def get_repository(db: Session = Depends(get_db)) -> SchedulingRepository:
    return SchedulingRepository(db)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_booking_breaker(request: Request) -> CircuitBreaker:
    return request.app.state.booking_breaker


# ----- Auth / JWT -----
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/login")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(settings: Settings, data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(settings: Settings, token: str) -> schemas.TokenData:
    """Raises ``JWTError`` for a bad signature, an expired token or a missing subject."""
    payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    username: Optional[str] = payload.get("sub")
    if username is None:
        raise JWTError("Token has no subject")
    return schemas.TokenData(username=username, role=payload.get("role"))


def get_user_by_login(db: Session, login: str) -> Optional[models.User]:
    """Look up an active user by username or email."""
    return (
        db.query(models.User)
        .filter(
            (models.User.username == login) | (models.User.email == login),
            models.User.status == "active",
        )
        .first()
    )


def authenticate_user(db: Session, login: str, password: str) -> Optional[models.User]:
    user = get_user_by_login(db, login)
    if not user:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> models.User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        token_data = decode_access_token(settings, token)
    except JWTError as exc:
        logger.warning("Token verification failed: %s", exc)
        raise credentials_exception

    user = get_user_by_login(db, token_data.username)
    if user is None:
        raise credentials_exception
    return user


def require_roles(*allowed_roles: str):
    """
    Usage: current_user: models.User = Depends(require_roles("admin"))
    """
    def role_checker(current_user: models.User = Depends(get_current_user)) -> models.User:
        if current_user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not enough permissions",
            )
        return current_user

    return role_checker
