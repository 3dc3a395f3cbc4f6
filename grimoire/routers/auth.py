"""
Authentication Router

Handles user authentication endpoints:
- Signup (email/password)
- Login (email/password → JWT access token)

Security:
=========
- Passwords are hashed with bcrypt before storage
- Plain text passwords are never logged or stored
- Login failures return the same error whether the email or the password
  was wrong
- Both endpoints have a strict rate limit against brute force
"""

import logging

from fastapi import APIRouter, Request, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from grimoire.config import get_settings
from grimoire.dependencies import DbSession
from grimoire.exceptions import EmailTakenError, InvalidCredentialsError
from grimoire.models import User
from grimoire.schemas import LoginRequest, LoginResponse, MessageResponse, SignupRequest
from grimoire.services.rate_limiter import limiter
from grimoire.services.security import create_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"],
    responses={
        400: {"description": "Bad request"},
        401: {"description": "Unauthorized"},
        409: {"description": "Conflict (email already exists)"},
    },
)


# -------------------------------------------------------------------------
# Signup Endpoint
# -------------------------------------------------------------------------
@router.post(
    "/signup",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
    description="""
    Create a new user account with email and password.

    **Password Requirements:**
    - Minimum 8 characters
    - At least 1 uppercase letter
    - At least 1 lowercase letter
    - At least 1 number
    - At least 1 special character
    """,
)
@limiter.limit(settings.rate_limit_auth)
def signup(
    request: Request,
    user_data: SignupRequest,
    db: DbSession,
) -> MessageResponse:
    stmt = select(User).where(User.email == user_data.email)
    if db.execute(stmt).scalar_one_or_none() is not None:
        raise EmailTakenError()

    user = User(
        email=user_data.email,
        hashed_password=hash_password(user_data.password),
    )

    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        # Concurrent signup with the same email
        db.rollback()
        raise EmailTakenError() from exc

    logger.info(f"New user registered: {user.email}")

    return MessageResponse(message="User created successfully")


# -------------------------------------------------------------------------
# Login Endpoint
# -------------------------------------------------------------------------
@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Login with email and password",
    description="""
    Authenticate with email and password.

    **Returns:** `userId` and `token`. Include the token in the
    Authorization header of protected requests:
    ```
    Authorization: Bearer <token>
    ```
    """,
)
@limiter.limit(settings.rate_limit_auth)
def login(
    request: Request,
    credentials: LoginRequest,
    db: DbSession,
) -> LoginResponse:
    stmt = select(User).where(User.email == credentials.email)
    user = db.execute(stmt).scalar_one_or_none()

    if user is None:
        logger.warning(f"Login failed: user not found for {credentials.email}")
        raise InvalidCredentialsError()

    if not verify_password(credentials.password, user.hashed_password):
        logger.warning(f"Login failed: incorrect password for {credentials.email}")
        raise InvalidCredentialsError()

    token = create_access_token({"sub": str(user.id)})

    logger.info(f"User logged in: {user.email}")

    return LoginResponse(user_id=user.id, token=token)
