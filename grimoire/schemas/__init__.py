"""
Pydantic Schemas Package

Schemas define exactly what the API accepts and returns, independently of
the SQLAlchemy models.

Schema Naming Convention:
- XxxPayload / XxxRequest / XxxCreate: Request bodies
- XxxResponse: Fields returned in API responses
"""

from grimoire.schemas.book import (
    BookCreatedResponse,
    BookCreatePayload,
    BookResponse,
    BookUpdatePayload,
    InitialRating,
    MessageResponse,
    RatingCreate,
    RatingResponse,
)
from grimoire.schemas.user import (
    LoginRequest,
    LoginResponse,
    SignupRequest,
)

__all__ = [
    "BookCreatedResponse",
    "BookCreatePayload",
    "BookResponse",
    "BookUpdatePayload",
    "InitialRating",
    "MessageResponse",
    "RatingCreate",
    "RatingResponse",
    "LoginRequest",
    "LoginResponse",
    "SignupRequest",
]
