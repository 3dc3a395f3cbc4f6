"""
Book Models

The central models of the Grimoire API.

- Book: a catalog entry owned by the user who created it
- BookRating: one grade given to a book by one user

WHY a separate ratings table?
=============================
Ratings are an ordered list attached to a book. Storing them as rows lets
the database enforce the "one rating per user per book" rule with a unique
constraint, and the rating id keeps the chronological order.

average_rating is denormalized on Book: it is recomputed by the rating
service every time a rating is added, so listings and the best-rated
ranking never have to aggregate ratings on the fly.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from grimoire.database import Base

if TYPE_CHECKING:
    from grimoire.models.user import User


class Book(Base):
    """
    Book model representing entries of the shared catalog.

    Table: books

    Fields:
    - user_id: Owner (the user who created the book), never changes
    - title, author, genre: Non-empty text
    - year: Publication year (4 digits, not in the future)
    - image_url: Reference returned by the image store
    - average_rating: Mean of ratings[*].grade, 0 when there are no ratings

    Example:
        book = Book(
            user_id=1,
            title="Dune",
            author="Frank Herbert",
            genre="Science Fiction",
            year=1965,
            image_url="http://localhost:4000/images/dune.png",
        )
    """

    __tablename__ = "books"

    # -------------------------------------------------------------------------
    # Primary Key
    # -------------------------------------------------------------------------
    # Ids are assigned in insertion order; ranking uses them to break ties
    id: Mapped[int] = mapped_column(primary_key=True)

    # -------------------------------------------------------------------------
    # Ownership
    # -------------------------------------------------------------------------
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id"),
        nullable=False,
        index=True,
        comment="Owner of the book"
    )

    # -------------------------------------------------------------------------
    # Basic Fields
    # -------------------------------------------------------------------------
    title: Mapped[str] = mapped_column(
        String(500),
        index=True,
        nullable=False,
        comment="Book title"
    )

    author: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Author name"
    )

    genre: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Literary genre"
    )

    year: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Publication year"
    )

    image_url: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Cover image reference"
    )

    average_rating: Mapped[float] = mapped_column(
        Float,
        default=0.0,
        nullable=False,
        comment="Mean grade of all ratings (0 when unrated)"
    )

    # -------------------------------------------------------------------------
    # Timestamps
    # -------------------------------------------------------------------------
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # -------------------------------------------------------------------------
    # Relationships
    # -------------------------------------------------------------------------
    owner: Mapped["User"] = relationship(
        "User",
        back_populates="books",
    )

    ratings: Mapped[list["BookRating"]] = relationship(
        "BookRating",
        back_populates="book",
        cascade="all, delete-orphan",
        order_by="BookRating.id",
    )

    def __repr__(self) -> str:
        return f"Book(id={self.id}, title='{self.title}', user_id={self.user_id})"


class BookRating(Base):
    """
    A grade from 0 to 5 given to a book by one user.

    Business Rules:
    - One rating per user per book (unique constraint)
    - Grade must be within [0, 5]
    - Ratings are only appended, never edited
    """

    __tablename__ = "book_ratings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    book_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("books.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True,
        comment="User who gave the grade",
    )
    grade: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        comment="Grade from 0 to 5",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    book: Mapped["Book"] = relationship("Book", back_populates="ratings")

    __table_args__ = (
        UniqueConstraint("book_id", "user_id", name="uq_book_rating_book_user"),
        CheckConstraint("grade >= 0 AND grade <= 5", name="ck_book_rating_grade_range"),
    )

    def __repr__(self) -> str:
        return f"<BookRating(id={self.id}, book_id={self.book_id}, user_id={self.user_id}, grade={self.grade})>"
