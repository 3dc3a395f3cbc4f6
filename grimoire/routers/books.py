"""
Books Router

Endpoints:
- GET /books - All books
- GET /books/bestrating - The best-rated books
- GET /books/{book_id} - One book
- POST /books - Create a book (authenticated, multipart: book + image)
- PUT /books/{book_id} - Update a book (owner only, multipart or JSON)
- DELETE /books/{book_id} - Delete a book (owner only)
- POST /books/{book_id}/rating - Rate a book (authenticated, once per user)

Routes stay thin: they read the request, call the services and build the
response. Every error is a GrimoireError rendered by the handler in main.py.
"""

from fastapi import APIRouter, Request, status

from grimoire.config import get_settings
from grimoire.dependencies import Books, CurrentUser, Images, JsonBody, Submission
from grimoire.schemas import (
    BookCreatedResponse,
    BookResponse,
    MessageResponse,
    RatingCreate,
)
from grimoire.services import books as book_service
from grimoire.services.ranking import best_rated
from grimoire.services.rate_limiter import limiter
from grimoire.services.ratings import rate_book
from grimoire.services.validation import parse_payload

settings = get_settings()

# =============================================================================
# Router Configuration
# =============================================================================
router = APIRouter(
    prefix="/books",
    tags=["Books"],
    responses={
        404: {"description": "Book not found"},
    },
)


# =============================================================================
# Read Endpoints
# =============================================================================
@router.get(
    "",
    response_model=list[BookResponse],
    summary="List books",
    description="Return every book of the catalog (an empty list when there are none).",
)
@limiter.limit(settings.rate_limit_books)
def list_books(request: Request, books: Books) -> list[BookResponse]:
    return [BookResponse.model_validate(book) for book in books.find()]


# /bestrating must be declared before /{book_id}, otherwise it would be
# matched as a book id.
@router.get(
    "/bestrating",
    response_model=list[BookResponse],
    summary="Best-rated books",
    description="The best-rated books, highest average first. 404 when the catalog is empty.",
)
@limiter.limit(settings.rate_limit_books)
def list_best_rated(request: Request, books: Books) -> list[BookResponse]:
    ranked = best_rated(books, settings.best_rated_limit)
    return [BookResponse.model_validate(book) for book in ranked]


@router.get(
    "/{book_id}",
    response_model=BookResponse,
    summary="Get a book",
)
@limiter.limit(settings.rate_limit_books)
def get_book(request: Request, book_id: str, books: Books) -> BookResponse:
    return BookResponse.model_validate(books.find_by_id(book_id))


# =============================================================================
# Write Endpoints
# =============================================================================
@router.post(
    "",
    response_model=BookCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a book",
    description="""
    Multipart request with:
    - `book`: JSON text with title, author, year, genre and optional ratings
    - `image`: cover picture (jpg, jpeg or png)

    The owner is the authenticated user; a userId in the payload is ignored.
    """,
)
@limiter.limit(settings.rate_limit_books)
def create_book(
    request: Request,
    user: CurrentUser,
    submission: Submission,
    books: Books,
    images: Images,
) -> BookCreatedResponse:
    book = book_service.create_book(books, images, user.id, submission.data, submission.image)
    return BookCreatedResponse(message="Book created successfully", id=book.id)


@router.put(
    "/{book_id}",
    response_model=MessageResponse,
    summary="Update a book",
    description="""
    Either a JSON body with the fields to change, or a multipart request
    with `book` (JSON text) and a new `image`. Only the owner may update.
    Without a new image the current one is kept.
    """,
)
@limiter.limit(settings.rate_limit_books)
def update_book(
    request: Request,
    book_id: str,
    user: CurrentUser,
    submission: Submission,
    books: Books,
    images: Images,
) -> MessageResponse:
    book_service.update_book(books, images, user.id, book_id, submission.data, submission.image)
    return MessageResponse(message="Book modified successfully")


@router.delete(
    "/{book_id}",
    response_model=MessageResponse,
    summary="Delete a book",
    description="Delete a book and its image. Only the owner may delete.",
)
@limiter.limit(settings.rate_limit_books)
def delete_book(
    request: Request,
    book_id: str,
    user: CurrentUser,
    books: Books,
    images: Images,
) -> MessageResponse:
    book_service.delete_book(books, images, user.id, book_id)
    return MessageResponse(message="Book deleted successfully")


@router.post(
    "/{book_id}/rating",
    response_model=BookResponse,
    summary="Rate a book",
    description="""
    Body: `{"rating": 4}` with a grade from 0 to 5.

    Each user can rate a book once. Returns the book with its new average.
    """,
)
@limiter.limit(settings.rate_limit_books)
def create_rating(
    request: Request,
    book_id: str,
    user: CurrentUser,
    body: JsonBody,
    books: Books,
) -> BookResponse:
    payload = parse_payload(RatingCreate, body)
    book = books.find_by_id(book_id)
    book = rate_book(books, book, user.id, payload.rating)
    return BookResponse.model_validate(book)
