from fastapi import APIRouter, Depends, HTTPException, status
from jose import JWTError
from sqlalchemy.orm import Session
from typing import List

from .. import schemas, models
from ..config import Settings
from ..deps import (
    get_db,
    get_app_settings,
    get_password_hash,
    verify_password,
    authenticate_user,
    create_access_token,
    decode_access_token,
    get_user_by_login,
    get_current_user,
    require_roles,
)
from ..exceptions import ConflictError, ValidationError
from ..logger import get_logger

router = APIRouter(prefix="/auth", tags=["auth"])

logger = get_logger("auth")


@router.post("/login", response_model=schemas.Token)
def login_for_access_token(
    credentials: schemas.LoginRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """
    Authenticate a user and return a JWT access token.

    ``username`` may be the account's username or its email. Inactive
    accounts cannot log in.

    Raises
    ------
    HTTPException
        - 401 if credentials are invalid.
    """
    user = authenticate_user(db, credentials.username, credentials.password)
    if not user:
        logger.warning("Failed login for %s", credentials.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )
    token = create_access_token(
        settings,
        {"sub": user.username, "role": user.role, "uid": user.id, "related_id": user.related_id},
    )
    logger.info("User logged in: %s (%s)", user.username, user.role)
    return {"access_token": token, "token_type": "bearer", "user": user}


@router.post("/verify", response_model=schemas.VerifyResponse)
def verify_token(
    body: schemas.VerifyRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Check a token and return the active account it belongs to."""
    try:
        token_data = decode_access_token(settings, body.token)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    user = get_user_by_login(db, token_data.username)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return {"valid": True, "user": user}


@router.get("/me", response_model=schemas.UserOut)
def read_current_user(current_user: models.User = Depends(get_current_user)):
    return current_user


@router.post("/change-password", response_model=schemas.Message)
def change_password(
    body: schemas.ChangePasswordRequest,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Change the caller's password.

    Raises
    ------
    ValidationError
        - 400 if the new password is shorter than 6 characters.
    HTTPException
        - 401 if the current password is wrong.
    """
    if len(body.new_password) < 6:
        raise ValidationError("New password must be at least 6 characters")
    if not verify_password(body.current_password, current_user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Current password is incorrect",
        )
    current_user.hashed_password = get_password_hash(body.new_password)
    db.commit()
    logger.info("Password changed for user: %s", current_user.username)
    return {"message": "Password changed successfully"}


@router.post("/users", response_model=schemas.UserOut, status_code=status.HTTP_201_CREATED)
def create_user(
    user_in: schemas.UserCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_roles("admin")),
):
    """
    Create an account. *(Admin)*

    ``related_id`` links a teacher or student account to its record.

    Raises
    ------
    ConflictError
        - 409 if the username or email already exists.
    """
    existing = db.query(models.User).filter(
        (models.User.username == user_in.username) | (models.User.email == user_in.email)
    ).first()
    if existing:
        raise ConflictError("Username or email already exists")

    user = models.User(
        username=user_in.username,
        email=user_in.email,
        hashed_password=get_password_hash(user_in.password),
        role=user_in.role,
        related_id=user_in.related_id,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("User created by admin: %s (%s)", user.username, user.role)
    return user


@router.get("/users", response_model=List[schemas.UserOut])
def list_users(
    db: Session = Depends(get_db),
    _: models.User = Depends(require_roles("admin")),
):
    return db.query(models.User).order_by(models.User.id.desc()).all()
