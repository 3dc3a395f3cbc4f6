"""
Book Pydantic Schemas

Request payloads and responses for the /books endpoints.

JSON keys are camelCase (userId, imageUrl, averageRating) to stay
compatible with the web client; Python attributes stay snake_case.
The alias generator does the translation in both directions.

Identity fields sent by clients (userId on a book or on a rating) are
not declared on the request schemas, so they are silently dropped: the
owner and the rater always come from the authenticated user.
"""

from datetime import date

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

MIN_GRADE = 0
MAX_GRADE = 5


def check_year(value: object) -> int:
    """
    Validate a publication year received as a number or a string.

    Rules:
    - Required (None or blank is reported as a missing field)
    - Exactly 4 digits, positive
    - Not later than the current calendar year
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise PydanticCustomError("missing_field", "Year is required")

    text = str(value).strip()
    if isinstance(value, bool) or not (text.isascii() and text.isdigit()) or len(text) != 4:
        raise PydanticCustomError("invalid_year", "Year must be a 4-digit number")

    year = int(text)
    if year < 1000 or year > date.today().year:
        raise PydanticCustomError(
            "invalid_year",
            "Year must be between 1000 and the current year",
        )
    return year


def reject_boolean_grade(value: object) -> object:
    """Booleans are not grades, even though float() accepts them."""
    if isinstance(value, bool):
        raise PydanticCustomError("invalid_rating", "Rating must be a number")
    return value


def check_grade(value: float) -> float:
    """Validate that a grade is within [MIN_GRADE, MAX_GRADE]."""
    if not MIN_GRADE <= value <= MAX_GRADE:
        raise PydanticCustomError(
            "invalid_rating",
            "Rating must be between {min} and {max}",
            {"min": MIN_GRADE, "max": MAX_GRADE},
        )
    return value


class CamelModel(BaseModel):
    """Base for schemas exchanged with the web client."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )


# =============================================================================
# Request Payloads
# =============================================================================
class InitialRating(CamelModel):
    """A rating sent together with a new book."""

    grade: float = Field(..., description="Grade from 0 to 5 (0 means no rating)")

    @field_validator("grade", mode="before")
    @classmethod
    def grade_is_number(cls, v: object) -> object:
        return reject_boolean_grade(v)

    @field_validator("grade")
    @classmethod
    def grade_in_range(cls, v: float) -> float:
        return check_grade(v)


class BookCreatePayload(CamelModel):
    """
    Book fields required to create a book.

    Sent as JSON text in the "book" field of a multipart request:
    {
        "title": "Dune",
        "author": "Frank Herbert",
        "year": "1965",
        "genre": "Science Fiction",
        "ratings": [{"grade": 4}]
    }
    """

    title: str = Field(..., min_length=1, max_length=500)
    author: str = Field(..., min_length=1, max_length=255)
    genre: str = Field(..., min_length=1, max_length=100)
    year: int = Field(..., description="Publication year (4 digits)")
    ratings: list[InitialRating] = Field(default_factory=list)

    @field_validator("year", mode="before")
    @classmethod
    def validate_year(cls, v: object) -> int:
        return check_year(v)


class BookUpdatePayload(CamelModel):
    """
    Book fields accepted on update.

    All fields are optional; only the ones present are merged into the
    stored book. Ratings are not accepted here: they only change through
    POST /books/{id}/rating.
    """

    title: str | None = Field(default=None, min_length=1, max_length=500)
    author: str | None = Field(default=None, min_length=1, max_length=255)
    genre: str | None = Field(default=None, min_length=1, max_length=100)
    year: int | None = Field(default=None)

    @field_validator("title", "author", "genre", mode="before")
    @classmethod
    def not_null(cls, v: object, info: ValidationInfo) -> object:
        # Omitting a field keeps it; sending null would erase it.
        if v is None:
            raise PydanticCustomError(
                "missing_field",
                "{field} is required",
                {"field": info.field_name.capitalize()},
            )
        return v

    @field_validator("year", mode="before")
    @classmethod
    def validate_year(cls, v: object) -> int:
        return check_year(v)


class RatingCreate(CamelModel):
    """
    Body of POST /books/{id}/rating.

    The range is checked by the rating service, not here, so that an out
    of range grade is reported as invalid_rating.
    """

    rating: float = Field(..., description="Grade from 0 to 5", examples=[4])

    @field_validator("rating", mode="before")
    @classmethod
    def rating_is_number(cls, v: object) -> object:
        return reject_boolean_grade(v)


# =============================================================================
# Responses
# =============================================================================
class RatingResponse(CamelModel):
    user_id: int
    grade: float

    model_config = ConfigDict(from_attributes=True)


class BookResponse(CamelModel):
    """
    Book as returned by the API.

    average_rating is 0 when the book has no ratings.
    """

    id: int = Field(..., description="Unique identifier")
    user_id: int = Field(..., description="Owner of the book")
    title: str
    author: str
    year: int
    genre: str
    image_url: str
    ratings: list[RatingResponse] = Field(default_factory=list)
    average_rating: float = Field(default=0.0)

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": 1,
                "userId": 1,
                "title": "Dune",
                "author": "Frank Herbert",
                "year": 1965,
                "genre": "Science Fiction",
                "imageUrl": "http://localhost:4000/images/frank-herbert_dune_1965_1700000000000.png",
                "ratings": [{"userId": 1, "grade": 4}],
                "averageRating": 4,
            }
        },
    )


class MessageResponse(BaseModel):
    message: str


class BookCreatedResponse(MessageResponse):
    id: int
