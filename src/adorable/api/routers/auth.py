"""Authentication router for login and registration.

Issues bearer JWT access tokens; passwords are bcrypt hashed.
"""

import logging
import uuid
from datetime import datetime

from fastapi import APIRouter, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from adorable.api.deps import CurrentUser, DBSession
from adorable.api.exceptions import ConflictError, UnauthorizedError
from adorable.core.security import create_access_token, hash_password, verify_password
from adorable.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Schemas
# =============================================================================


class RegisterRequest(BaseModel):
    """User registration request."""

    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    name: str | None = Field(None, max_length=255)


class LoginRequest(BaseModel):
    """User login request."""

    email: EmailStr
    password: str


class UserResponse(BaseModel):
    """User info response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str | None = None
    github_username: str | None = None
    created_at: datetime


class AuthResponse(BaseModel):
    success: bool = True
    user: UserResponse
    access_token: str
    token_type: str = "bearer"


class MeResponse(BaseModel):
    user: UserResponse


# =============================================================================
# Endpoints
# =============================================================================


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
)
async def register(request: RegisterRequest, db: DBSession) -> AuthResponse:
    """Create an account and return an access token."""
    email = request.email.lower()
    existing = await db.execute(select(User.id).where(User.email == email))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("Email already registered")

    user = User(
        id=str(uuid.uuid4()),
        email=email,
        password_hash=hash_password(request.password),
        name=request.name,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError("Email already registered") from e
    await db.refresh(user)

    logger.info(f"User {user.id} registered")
    return AuthResponse(
        user=UserResponse.model_validate(user),
        access_token=create_access_token(user.id),
    )


@router.post("/login", response_model=AuthResponse, summary="Log in")
async def login(request: LoginRequest, db: DBSession) -> AuthResponse:
    """Exchange email and password for an access token."""
    result = await db.execute(select(User).where(User.email == request.email.lower()))
    user = result.scalar_one_or_none()

    if user is None or not verify_password(request.password, user.password_hash):
        raise UnauthorizedError("Invalid email or password")
    if not user.is_active:
        raise UnauthorizedError("Account is disabled")

    return AuthResponse(
        user=UserResponse.model_validate(user),
        access_token=create_access_token(user.id),
    )


@router.get("/me", response_model=MeResponse, summary="Current user")
async def me(user: CurrentUser) -> MeResponse:
    return MeResponse(user=UserResponse.model_validate(user))
