"""
API Routers Package

Router Structure:
- auth.py: /api/auth/* endpoints (signup, login)
- books.py: /api/books/* endpoints (catalog, ranking, ratings, CRUD)

Each router is imported and registered in main.py.
"""

from grimoire.routers.auth import router as auth_router
from grimoire.routers.books import router as books_router

__all__ = [
    "auth_router",
    "books_router",
]
