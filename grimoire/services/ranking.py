"""
Ranking Service

Selects the best-rated books of the catalog.

Ordering:
1. average_rating, highest first (unrated books count as 0, so they come
   after every book with a positive average)
2. Ties: the most recently added book first. Book ids are assigned in
   insertion order, so the id is used as the secondary key. This gives a
   total, deterministic order whatever order the store returns rows in.
"""

from collections.abc import Sequence

from grimoire.exceptions import NoBooksFoundError
from grimoire.models import Book
from grimoire.services.repository import BookRepository

DEFAULT_BEST_RATED_LIMIT = 3


def ranking_key(book: Book) -> tuple[float, int]:
    return (book.average_rating or 0.0, book.id)


def rank_books(books: Sequence[Book]) -> list[Book]:
    """Sort books from best to worst rated with the tie-break above."""
    return sorted(books, key=ranking_key, reverse=True)


def best_rated(repository: BookRepository, n: int = DEFAULT_BEST_RATED_LIMIT) -> list[Book]:
    """
    Return the n best-rated books.

    Returns all books when the catalog holds fewer than n.

    Raises:
        NoBooksFoundError: If the catalog is empty
        ValueError: If n is not positive
    """
    if n < 1:
        raise ValueError("n must be a positive integer")

    books = repository.find()
    if not books:
        raise NoBooksFoundError()

    return rank_books(books)[:n]
