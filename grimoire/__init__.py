"""
Grimoire Books API

A FastAPI application for a shared book catalog: users sign up, log in,
publish books with a cover image, rate each other's books and browse the
best-rated ones.

Package Structure:
- config.py: Application settings (pydantic-settings)
- database.py: SQLAlchemy engine and session management
- dependencies.py: FastAPI dependencies (auth, repositories, request bodies)
- exceptions.py: Error taxonomy shared by services and routers
- models/: SQLAlchemy ORM models
- schemas/: Pydantic request/response schemas
- services/: Business logic (ratings, ranking, ownership, book pipeline)
- routers/: API endpoint definitions
"""

__version__ = "1.0.0"
