"""
FastAPI Dependencies Module

Dependencies are reusable components injected into route handlers.
FastAPI's Depends() function manages their lifecycle, and tests replace
them through app.dependency_overrides.

Provided here:
- DbSession: per-request SQLAlchemy session
- Books: BookRepository bound to that session
- Images: the configured image store (disk or Cloudinary)
- CurrentUser: user resolved from the Bearer token
- Submission: book fields + optional image, from multipart or JSON
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile

from grimoire.config import get_settings
from grimoire.database import get_db
from grimoire.exceptions import InvalidTokenError, MissingTokenError
from grimoire.models import User
from grimoire.services.repository import BookRepository
from grimoire.services.security import get_token_subject
from grimoire.services.storage import ImageStore, ImageUpload, build_image_store
from grimoire.services.validation import load_json_object

# =============================================================================
# Database
# =============================================================================
# Instead of writing:
#   def get_books(db: Session = Depends(get_db)):
#
# You can write:
#   def get_books(db: DbSession):

DbSession = Annotated[Session, Depends(get_db)]


def get_book_repository(db: DbSession) -> BookRepository:
    return BookRepository(db)


Books = Annotated[BookRepository, Depends(get_book_repository)]


# =============================================================================
# Image Storage
# =============================================================================
@lru_cache
def get_image_store() -> ImageStore:
    """
    Image store selected by settings.image_storage.

    Cached: one store (and one HTTP client for Cloudinary) per process.
    """
    return build_image_store(get_settings())


Images = Annotated[ImageStore, Depends(get_image_store)]


# =============================================================================
# JWT Authentication
# =============================================================================
# auto_error=False: a missing header is reported as missing_token by
# get_current_user instead of FastAPI's generic 401.

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/api/auth/login",
    auto_error=False,
)


def get_current_user(
    db: DbSession,
    token: str | None = Depends(oauth2_scheme),
) -> User:
    """
    Resolve the authenticated user from the Authorization header.

    Raises:
        MissingTokenError: No Bearer token in the request
        InvalidTokenError: Token invalid, expired, or user no longer exists
    """
    if not token:
        raise MissingTokenError()

    user_id = get_token_subject(token)
    if user_id is None:
        raise InvalidTokenError()

    user = db.execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if user is None:
        raise InvalidTokenError()

    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


# =============================================================================
# Request Bodies
# =============================================================================
@dataclass
class BookSubmission:
    """
    Book data received on create/update.

    data is the decoded book object (None if nothing was sent) and image the
    uploaded file, already read into memory so sync routes can use it.
    """

    data: dict | None
    image: ImageUpload | None


FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


async def _read_text(value) -> str | None:
    if value is None:
        return None
    if isinstance(value, UploadFile):
        return (await value.read()).decode("utf-8", errors="replace")
    return value


async def _read_image(value) -> ImageUpload | None:
    if not isinstance(value, UploadFile):
        return None
    content = await value.read()
    return ImageUpload(
        filename=value.filename or "",
        content_type=value.content_type or "",
        content=content,
    )


async def read_book_submission(request: Request) -> BookSubmission:
    """
    Read a book submission in either format accepted by the API.

    - form data (multipart or urlencoded): "book" field holding JSON text,
      "image" file
    - application/json: the book object itself, no image

    Raises:
        InvalidInputError: If the book data is not a JSON object
    """
    content_type = request.headers.get("content-type", "")

    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        data = load_json_object(await _read_text(form.get("book")))
        image = await _read_image(form.get("image"))
        return BookSubmission(data=data, image=image)

    return BookSubmission(data=await read_json_body(request), image=None)


async def read_json_body(request: Request) -> dict | None:
    """
    Decode a JSON object body; None when the body is empty.

    Raises:
        InvalidInputError: If the body is not a JSON object
    """
    body = await request.body()
    return load_json_object(body.decode("utf-8", errors="replace"))


Submission = Annotated[BookSubmission, Depends(read_book_submission)]
JsonBody = Annotated[dict | None, Depends(read_json_body)]
