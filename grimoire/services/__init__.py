"""
Services Package

Business logic kept apart from HTTP handling, so it can be called and
tested without a request:

- authorization.py: Ownership checks for update and delete
- books.py: Create/update/delete pipeline with image rollback
- ranking.py: Best-rated books selection
- rate_limiter.py: Rate limiting with slowapi
- ratings.py: Rating a book and recomputing its average
- repository.py: Book persistence (SQLAlchemy)
- security.py: Password hashing and JWT utilities
- storage.py: Image validation and storage backends (disk, Cloudinary)
- validation.py: Payload parsing and error classification
"""
