"""
User Model

Represents an account that can log in, publish books and rate them.
Users are created at signup and are not modified afterwards.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from grimoire.database import Base

if TYPE_CHECKING:
    from grimoire.models.book import Book


class User(Base):
    """
    User model representing registered users.

    Table: users

    Indexes:
    - Primary key on id (automatic)
    - email: Unique index for login lookups

    Example:
        user = User(
            email="john@example.com",
            hashed_password=hash_password("Secret123!"),
        )
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
        comment="User's email address (used for login)"
    )

    # Never serialized: no response schema declares it
    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Bcrypt hashed password"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        comment="When the user signed up"
    )

    books: Mapped[list["Book"]] = relationship(
        "Book",
        back_populates="owner",
    )

    def __repr__(self) -> str:
        return f"User(id={self.id}, email='{self.email}')"
