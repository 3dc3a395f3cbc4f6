"""
Ratings Service

Adds ratings to books and keeps the denormalized average_rating in sync.

Business Rules:
- A grade is a number in [0, 5]
- A user can rate a given book only once
- average_rating is the mean of all grades, recomputed on every new rating
  (0 for a book without ratings)

This is the only module that appends to Book.ratings after creation.
"""

import logging
from collections.abc import Iterable

from grimoire.exceptions import AlreadyRatedError, DuplicateRecordError, InvalidRatingError
from grimoire.models import Book, BookRating
from grimoire.schemas.book import MAX_GRADE, MIN_GRADE
from grimoire.services.repository import BookRepository

logger = logging.getLogger(__name__)


def compute_average(grades: Iterable[float]) -> float:
    """
    Arithmetic mean of the given grades.

    Returns:
        The mean, or 0.0 when there are no grades
    """
    grades = list(grades)
    if not grades:
        return 0.0
    return sum(grades) / len(grades)


def has_rated(book: Book, user_id: int) -> bool:
    """Check whether a user already rated a book (exact id match)."""
    return any(rating.user_id == user_id for rating in book.ratings)


def rate_book(
    repository: BookRepository,
    book: Book,
    user_id: int,
    grade: float,
) -> Book:
    """
    Record a user's grade for a book and recompute its average.

    Args:
        repository: Repository used to persist the book
        book: Book being rated (with its ratings loaded)
        user_id: Authenticated user giving the grade
        grade: Grade from 0 to 5

    Returns:
        The updated book

    Raises:
        InvalidRatingError: If grade is outside [0, 5]; ratings are untouched
        AlreadyRatedError: If user_id already rated this book
    """
    if not MIN_GRADE <= grade <= MAX_GRADE:
        raise InvalidRatingError()

    if has_rated(book, user_id):
        raise AlreadyRatedError()

    book.ratings.append(BookRating(user_id=user_id, grade=grade))
    # Count includes the rating just appended, so it is never zero
    book.average_rating = compute_average(rating.grade for rating in book.ratings)

    try:
        book = repository.save(book)
    except DuplicateRecordError as exc:
        # Another request from the same user won the race on the unique constraint
        raise AlreadyRatedError() from exc

    logger.info(
        f"Book {book.id} rated {grade} by user {user_id} "
        f"(average {book.average_rating:.2f}, {len(book.ratings)} ratings)"
    )
    return book
