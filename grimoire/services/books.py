"""
Book Mutation Service

Orchestrates create, update and delete of books:

    received -> parsed -> (image stored) -> authorized -> persisted

Rules enforced here:
- The owner is always the authenticated user; any userId sent by the
  client is ignored.
- Update and delete check ownership before touching the repository.
- An image stored during a request that later fails (not found,
  forbidden, nothing modified, database error) is removed again before
  the error propagates. Removal is best-effort: if it fails the original
  error still wins.
- An initial rating of 0 on create means "no rating" and is dropped.

No retries: every failure is raised to the caller as a GrimoireError.
"""

import logging

from grimoire.exceptions import GrimoireError, ModificationFailedError, PersistenceError
from grimoire.models import Book, BookRating
from grimoire.schemas.book import BookCreatePayload, BookUpdatePayload
from grimoire.services.authorization import ensure_owner
from grimoire.services.ratings import compute_average
from grimoire.services.repository import BookRepository
from grimoire.services.storage import (
    ImageNameParts,
    ImageStore,
    ImageUpload,
    discard_image,
    validate_image,
)
from grimoire.services.validation import parse_payload

logger = logging.getLogger(__name__)


def initial_ratings(payload: BookCreatePayload, owner_id: int) -> list[BookRating]:
    """
    Ratings stored with a new book.

    Only the first rating is considered and it is attributed to the owner.
    A grade of 0 is what the web form sends when no rating was chosen.
    """
    if not payload.ratings:
        return []
    grade = payload.ratings[0].grade
    if grade == 0:
        return []
    return [BookRating(user_id=owner_id, grade=grade)]


def create_book(
    repository: BookRepository,
    store: ImageStore,
    owner_id: int,
    data: dict | None,
    image: ImageUpload | None,
) -> Book:
    """
    Create a book owned by owner_id.

    The payload is validated before the image is stored, so an invalid
    request never leaves a file behind.

    Raises:
        EmptyBodyError, MissingFieldsError, InvalidYearError,
        InvalidRatingError, MissingImageError, InvalidFileTypeError,
        ImageStorageError, PersistenceError
    """
    payload = parse_payload(BookCreatePayload, data)
    upload = validate_image(image)

    image_url = store.store(upload, ImageNameParts(payload.author, payload.title, payload.year))

    ratings = initial_ratings(payload, owner_id)
    book = Book(
        user_id=owner_id,
        title=payload.title,
        author=payload.author,
        genre=payload.genre,
        year=payload.year,
        image_url=image_url,
        ratings=ratings,
        average_rating=compute_average(rating.grade for rating in ratings),
    )

    try:
        book = repository.insert(book)
    except GrimoireError:
        discard_image(store, image_url)
        raise

    logger.info(f"Book {book.id} created by user {owner_id}: {book.title}")
    return book


def update_book(
    repository: BookRepository,
    store: ImageStore,
    requester_id: int,
    book_id: str | int,
    data: dict | None,
    image: ImageUpload | None,
) -> Book:
    """
    Merge the payload into an existing book owned by requester_id.

    Without a new image the current image_url is kept. With a new image,
    the image is stored before the ownership check and removed again if
    the check or the update fails; on success the old image is removed.

    Raises:
        EmptyBodyError, MissingFieldsError, InvalidYearError,
        MissingImageError, InvalidFileTypeError, MalformedIdError,
        BookNotFoundError, AuthorizationError, ModificationFailedError,
        ImageStorageError, PersistenceError
    """
    payload = parse_payload(BookUpdatePayload, data)
    upload = validate_image(image) if image is not None else None

    book = repository.find_by_id(book_id)
    changes = payload.model_dump(exclude_unset=True)

    new_image_url = None
    if upload is not None:
        parts = ImageNameParts(
            author=changes.get("author", book.author),
            title=changes.get("title", book.title),
            year=changes.get("year", book.year),
        )
        new_image_url = store.store(upload, parts)
        changes["image_url"] = new_image_url

    old_image_url = book.image_url
    try:
        ensure_owner(book, requester_id)
        modified = repository.update(book.id, changes)
        if not modified:
            raise ModificationFailedError()
    except GrimoireError:
        discard_image(store, new_image_url)
        raise

    if new_image_url is not None:
        discard_image(store, old_image_url)

    logger.info(f"Book {book.id} modified by user {requester_id}: {sorted(changes)}")
    return repository.find_by_id(book.id)


def delete_book(
    repository: BookRepository,
    store: ImageStore,
    requester_id: int,
    book_id: str | int,
) -> None:
    """
    Delete a book owned by requester_id, then remove its image.

    Raises:
        MalformedIdError, BookNotFoundError, AuthorizationError,
        PersistenceError
    """
    book = repository.find_by_id(book_id)
    ensure_owner(book, requester_id)

    image_url = book.image_url
    book_pk = book.id
    if not repository.delete(book_pk):
        raise PersistenceError("An error has occurred while trying to delete the book")

    discard_image(store, image_url)
    logger.info(f"Book {book_pk} deleted by user {requester_id}")
