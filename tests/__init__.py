"""
Test Suite for the Grimoire API

Test Organization:
- conftest.py: Shared fixtures (test database, client, image stores, sample data)
- test_ratings.py, test_ranking.py, test_authorization.py: core rules
- test_repository.py: book persistence
- test_book_pipeline.py: create/update/delete with image rollback
- test_storage.py: image validation, disk and Cloudinary stores
- test_auth.py, test_books.py: HTTP endpoints

Running Tests:
    pytest
    pytest --cov=grimoire --cov-report=html
    pytest tests/test_books.py -v
"""
