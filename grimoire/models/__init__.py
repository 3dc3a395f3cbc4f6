"""
SQLAlchemy Models Package

Model Relationships:
- User -> Book: One-to-Many (a user owns the books they created)
- Book -> BookRating: One-to-Many (ratings in the order they were added)

Import all models here to:
1. Make them available as: from grimoire.models import Book, User
2. Ensure Base.metadata knows every table before create_tables() runs
"""

# The order matters for SQLAlchemy to resolve relationships
from grimoire.models.user import User
from grimoire.models.book import Book, BookRating

__all__ = [
    "User",
    "Book",
    "BookRating",
]
