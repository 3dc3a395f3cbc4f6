"""
Book Repository

Persistence boundary for book records. Services never build SQLAlchemy
statements themselves; they go through this class, which:

- Loads ratings with the book (selectinload) to avoid N+1 queries
- Tells a malformed id (MalformedIdError) apart from a missing book
  (BookNotFoundError); both end up as 404 but come from different places
- Rolls back the session and raises PersistenceError when the store
  fails, so the caller never sees driver error text

Usage:
    repository = BookRepository(db)
    book = repository.find_by_id("12")
"""

import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from grimoire.exceptions import (
    BookNotFoundError,
    DuplicateRecordError,
    MalformedIdError,
    PersistenceError,
)
from grimoire.models import Book

logger = logging.getLogger(__name__)


def parse_book_id(raw_id: str | int) -> int:
    """
    Convert an id received from a client into a primary key.

    Raises:
        MalformedIdError: If the id is not a positive integer
    """
    if isinstance(raw_id, bool):
        raise MalformedIdError()
    if isinstance(raw_id, int):
        book_id = raw_id
    else:
        text = str(raw_id).strip()
        if not (text.isascii() and text.isdigit()):
            raise MalformedIdError()
        book_id = int(text)

    if book_id < 1:
        raise MalformedIdError()
    return book_id


class BookRepository:
    """CRUD access to books for one database session."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------
    def find(self) -> list[Book]:
        """Return every book in insertion order."""
        stmt = select(Book).options(selectinload(Book.ratings)).order_by(Book.id)
        return list(self.db.execute(stmt).scalars().all())

    def find_by_id(self, raw_id: str | int) -> Book:
        """
        Return the book with the given id.

        Raises:
            MalformedIdError: The id is not in the store's id format
            BookNotFoundError: No book has this id
        """
        book_id = parse_book_id(raw_id)
        stmt = (
            select(Book)
            .options(selectinload(Book.ratings))
            .where(Book.id == book_id)
        )
        book = self.db.execute(stmt).scalar_one_or_none()

        if book is None:
            raise BookNotFoundError()
        return book

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------
    def insert(self, book: Book) -> Book:
        """Store a new book and return it with its id assigned."""
        self.db.add(book)
        self._commit()
        self.db.refresh(book)
        return book

    def save(self, book: Book) -> Book:
        """Persist changes made to a loaded book (used for new ratings)."""
        self.db.add(book)
        self._commit()
        self.db.refresh(book)
        return book

    def update(self, raw_id: str | int, changes: dict) -> bool:
        """
        Apply a partial update.

        Fields whose new value equals the stored one are skipped, so an
        update that would leave the book as it is counts as no change.

        Returns:
            True if exactly one book was changed, False otherwise
        """
        book_id = parse_book_id(raw_id)
        book = self.db.get(Book, book_id)
        if book is None:
            return False

        changes = {key: value for key, value in changes.items() if getattr(book, key) != value}
        if not changes:
            return False

        stmt = update(Book).where(Book.id == book_id).values(**changes)
        try:
            result = self.db.execute(stmt)
        except SQLAlchemyError as exc:
            self._rollback_and_raise(exc)
        self._commit()
        return result.rowcount == 1

    def delete(self, raw_id: str | int) -> bool:
        """
        Delete a book and its ratings.

        Returns:
            True if a book was deleted, False if there was nothing to delete
        """
        book_id = parse_book_id(raw_id)
        book = self.db.get(Book, book_id)
        if book is None:
            return False

        self.db.delete(book)
        self._commit()
        return True

    # -------------------------------------------------------------------------
    # Transaction helpers
    # -------------------------------------------------------------------------
    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self._rollback_and_raise(exc)

    def _rollback_and_raise(self, exc: SQLAlchemyError) -> None:
        self.db.rollback()
        if isinstance(exc, IntegrityError):
            logger.warning(f"Integrity error on books: {exc.orig}")
            raise DuplicateRecordError() from exc
        logger.error(f"Database error on books: {exc}")
        raise PersistenceError() from exc
