"""
Ownership Authorization

Only the user who created a book may update or delete it. The requester id
always comes from the verified access token, never from the request body.
"""

import logging

from grimoire.exceptions import AuthorizationError
from grimoire.models import Book

logger = logging.getLogger(__name__)


def is_owner(book: Book, requester_id: int) -> bool:
    """Strict equality between the book owner and the requester."""
    return book.user_id == requester_id


def ensure_owner(book: Book, requester_id: int) -> None:
    """
    Raise AuthorizationError unless requester_id owns the book.

    Must be called before any mutating persistence call.
    """
    if not is_owner(book, requester_id):
        logger.warning(f"User {requester_id} denied on book {book.id} owned by {book.user_id}")
        raise AuthorizationError()
