"""
Authentication routes for signup, login, and logout.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from haulbook.db.session import get_db
from haulbook.schemas.common import ApiResponse, MessageData
from haulbook.schemas.user import UserCreate, UserLogin, Token, UserResponse
from haulbook.models.audit_log import AuditAction
from haulbook.models.user import User
from haulbook.core.security import verify_password, get_password_hash, create_access_token
from haulbook.core.utils import format_response
from haulbook.api.dependencies import get_current_user
from haulbook.services.audit_service import record_audit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signup", response_model=ApiResponse[UserResponse], status_code=status.HTTP_201_CREATED)
async def signup(user_data: UserCreate, db: Session = Depends(get_db)):
    """Register a new back-office user."""
    existing_user = db.query(User).filter(User.username == user_data.username).first()
    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username already exists"
        )

    existing_email = db.query(User).filter(User.email == user_data.email).first()
    if existing_email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already exists"
        )

    new_user = User(
        username=user_data.username,
        email=user_data.email,
        name=user_data.name,
        hashed_password=get_password_hash(user_data.password)
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)
    logger.info(f"User registered: {new_user.username}")

    return format_response(UserResponse.model_validate(new_user))


@router.post("/login", response_model=ApiResponse[Token])
async def login(credentials: UserLogin, db: Session = Depends(get_db)):
    """Login and get a JWT bearer token."""
    user = db.query(User).filter(User.username == credentials.username).first()

    if not user or not verify_password(credentials.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password"
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive"
        )

    access_token = create_access_token(user.id, user.username)
    record_audit(db, user, AuditAction.LOGIN, "User", user.id)
    db.commit()

    return format_response({"access_token": access_token, "token_type": "bearer"})


@router.post("/logout", response_model=ApiResponse[MessageData])
async def logout(current_user: User = Depends(get_current_user)):
    """Tokens are stateless; the client discards its copy."""
    return format_response({"message": "Logged out successfully"})
