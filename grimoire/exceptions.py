"""
Application Exceptions

Every failure the services can report is a subclass of GrimoireError.
Each class carries:
- error: stable machine-readable code returned to clients
- status_code: HTTP status used by the exception handler in main.py
- message: default human-readable text (can be overridden per raise)

Services raise these exceptions; they never build HTTP responses
themselves. main.py turns them into:

    {"error": "<code>", "message": "<text>"}

Hierarchy:
    GrimoireError
    ├── InvalidInputError (400)
    │   ├── EmptyBodyError
    │   ├── MissingFieldsError
    │   ├── InvalidYearError
    │   ├── InvalidRatingError
    │   ├── MissingImageError
    │   └── InvalidFileTypeError
    ├── AuthenticationError (401)
    │   ├── MissingTokenError
    │   ├── InvalidTokenError
    │   └── InvalidCredentialsError
    ├── AuthorizationError (403)
    ├── NotFoundError (404)
    │   ├── BookNotFoundError
    │   ├── MalformedIdError
    │   └── NoBooksFoundError
    ├── ConflictError (409)
    │   ├── DuplicateRecordError
    │   ├── EmailTakenError
    │   └── AlreadyRatedError (400)
    ├── PersistenceError (500)
    │   └── ModificationFailedError
    └── ImageStorageError (500)
"""

from fastapi import status


class GrimoireError(Exception):
    """Base class for all errors surfaced to API clients."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error: str = "unexpected_error"
    message: str = "An unexpected error has occurred"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.error, "message": self.message}


# =============================================================================
# Validation Errors (400)
# =============================================================================
class InvalidInputError(GrimoireError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "validation_error"
    message = "The request contains invalid data"


class EmptyBodyError(InvalidInputError):
    error = "empty_body"
    message = "Request body is empty"


class MissingFieldsError(InvalidInputError):
    error = "missing_fields"
    message = "One of the following fields is missing: title, author, year, genre"


class InvalidYearError(InvalidInputError):
    error = "invalid_year"
    message = (
        "Year must be a positive 4-digit number "
        "and cannot be later than the current year"
    )


class InvalidRatingError(InvalidInputError):
    error = "invalid_rating"
    message = "Rating must be between 0 and 5"


class MissingImageError(InvalidInputError):
    error = "missing_image"
    message = "Picture is missing"


class InvalidFileTypeError(InvalidInputError):
    error = "invalid_file_type"
    message = "Accepted picture formats: jpg/jpeg and png"


# =============================================================================
# Authentication Errors (401)
# =============================================================================
class AuthenticationError(GrimoireError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "authentication_error"
    message = "Could not validate credentials"


class MissingTokenError(AuthenticationError):
    error = "missing_token"
    message = "JWT token is missing"


class InvalidTokenError(AuthenticationError):
    error = "invalid_token"
    message = "Invalid or expired token"


class InvalidCredentialsError(AuthenticationError):
    error = "invalid_credentials"
    message = "Wrong email and/or password"


# =============================================================================
# Authorization Errors (403)
# =============================================================================
class AuthorizationError(GrimoireError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "forbidden"
    message = "Unauthorized request"


# =============================================================================
# Not Found Errors (404)
# =============================================================================
class NotFoundError(GrimoireError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "not_found"
    message = "Resource not found"


class BookNotFoundError(NotFoundError):
    """A well-formed id that matches no stored book."""

    error = "book_not_found"
    message = "This book does not exist"


class MalformedIdError(NotFoundError):
    """An id the store cannot interpret at all (never looked up)."""

    error = "malformed_id"
    message = "This book does not exist"


class NoBooksFoundError(NotFoundError):
    error = "no_books"
    message = "There are no books"


# =============================================================================
# Conflict Errors
# =============================================================================
class ConflictError(GrimoireError):
    status_code = status.HTTP_409_CONFLICT
    error = "conflict"
    message = "The request conflicts with existing data"


class DuplicateRecordError(ConflictError):
    error = "duplicate_record"
    message = "A record with the same unique values already exists"


class EmailTakenError(ConflictError):
    error = "email_taken"
    message = "Email already registered"


class AlreadyRatedError(ConflictError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "already_rated"
    message = "You can rate a book only once"


# =============================================================================
# Persistence / Storage Errors (500)
# =============================================================================
class PersistenceError(GrimoireError):
    error = "persistence_error"
    message = "A database error occurred. Please try again later."


class ModificationFailedError(PersistenceError):
    error = "modification_failed"
    message = "An error has occurred while trying to update the book, or there was nothing to update"


class ImageStorageError(GrimoireError):
    error = "image_storage_error"
    message = "The image could not be stored"
