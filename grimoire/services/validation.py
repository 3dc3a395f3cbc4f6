"""
Request Validation Helpers

Book and rating payloads are parsed with the Pydantic schemas, then the
Pydantic errors are translated into the application's error kinds so that
clients get a stable code (missing_fields, invalid_year, ...) instead of a
raw list of validation errors.

Priority when several problems exist: missing fields, then year, then
rating.
"""

import json
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from grimoire.exceptions import (
    EmptyBodyError,
    GrimoireError,
    InvalidInputError,
    InvalidRatingError,
    InvalidYearError,
    MissingFieldsError,
)

ModelT = TypeVar("ModelT", bound=BaseModel)

REQUIRED_BOOK_FIELDS = {"title", "author", "genre", "year"}
MISSING_ERROR_TYPES = {"missing", "missing_field", "string_too_short", "string_type"}
RATING_FIELDS = {"ratings", "rating", "grade"}


def classify_errors(exc: ValidationError) -> GrimoireError:
    """Map Pydantic errors to the most relevant application error."""
    errors = exc.errors()
    fields = [(error["loc"][0] if error["loc"] else None, error["type"]) for error in errors]

    if any(f in REQUIRED_BOOK_FIELDS and t in MISSING_ERROR_TYPES for f, t in fields):
        return MissingFieldsError()
    if any(f == "year" for f, _ in fields):
        return InvalidYearError()
    if any(f in RATING_FIELDS for f, _ in fields):
        return InvalidRatingError()

    first = errors[0]
    location = ".".join(str(part) for part in first["loc"])
    return InvalidInputError(f"{location}: {first['msg']}" if location else first["msg"])


def parse_payload(model: type[ModelT], data: dict | None) -> ModelT:
    """
    Validate a request payload against a schema.

    Raises:
        EmptyBodyError: If there is no payload at all
        InvalidInputError (or a subclass): If validation fails
    """
    if not data:
        raise EmptyBodyError()
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise classify_errors(exc) from exc


def load_json_object(text: str | None) -> dict | None:
    """
    Decode JSON text sent by a client (a multipart "book" field or a raw
    request body).

    Returns None for missing or blank text.

    Raises:
        InvalidInputError: If the text is not a JSON object
    """
    if text is None or not text.strip():
        return None
    try:
        value = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidInputError("Request data is not valid JSON") from exc
    if not isinstance(value, dict):
        raise InvalidInputError("Request data must be a JSON object")
    return value
