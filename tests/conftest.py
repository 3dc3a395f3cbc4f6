"""
pytest Fixtures for Grimoire API Tests

Shared fixtures used across all test files.

For database tests, we use:
- session scope for engine (expensive to create)
- function scope for sessions (each test runs in a transaction that is
  rolled back afterwards)

Images never touch the real images directory: HTTP tests use a
LocalImageStore in pytest's tmp_path, service tests use the in-memory
RecordingImageStore below.
"""

# =============================================================================
# TEST ENVIRONMENT SETUP
# =============================================================================
# IMPORTANT: Set environment variables BEFORE importing the app
# This disables rate limiting and sets a test secret key
import os
import tempfile

os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-signing-key-for-unit-tests-at-least-32-characters-long"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["IMAGE_STORAGE"] = "local"
os.environ["IMAGES_DIR"] = tempfile.mkdtemp(prefix="grimoire-images-")

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from grimoire.database import Base, get_db
from grimoire.dependencies import get_image_store
from grimoire.exceptions import ImageStorageError
from grimoire.main import app
from grimoire.models import Book, BookRating, User
from grimoire.services.repository import BookRepository
from grimoire.services.security import create_access_token, hash_password
from grimoire.services.storage import ImageNameParts, ImageUpload, LocalImageStore

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


# =============================================================================
# DATABASE FIXTURES
# =============================================================================
@pytest.fixture(scope="session")
def engine():
    """
    SQLite in-memory engine shared by the whole test session.

    StaticPool keeps the single connection alive; without it the in-memory
    database would disappear between connections.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(engine) -> Generator[Session, None, None]:
    """
    Fresh session per test, wrapped in a transaction that is rolled back.
    """
    TestSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
    )

    connection = engine.connect()
    transaction = connection.begin()
    session = TestSessionLocal(bind=connection)

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def repository(db_session: Session) -> BookRepository:
    return BookRepository(db_session)


# =============================================================================
# IMAGE STORE FIXTURES
# =============================================================================
class RecordingImageStore:
    """
    In-memory image store that records every call.

    fail_on_remove makes remove() raise, to check that a failed cleanup
    never replaces the original error.
    """

    def __init__(self, fail_on_remove: bool = False) -> None:
        self.stored: list[str] = []
        self.removed: list[str] = []
        self.fail_on_remove = fail_on_remove

    def store(self, upload: ImageUpload, parts: ImageNameParts) -> str:
        ref = f"memory://images/{len(self.stored) + 1}.{upload.extension}"
        self.stored.append(ref)
        return ref

    def remove(self, ref: str) -> None:
        if self.fail_on_remove:
            raise ImageStorageError("The image could not be removed")
        self.removed.append(ref)


@pytest.fixture
def image_store() -> RecordingImageStore:
    return RecordingImageStore()


@pytest.fixture
def png_upload() -> ImageUpload:
    return ImageUpload(filename="cover.png", content_type="image/png", content=PNG_BYTES)


@pytest.fixture
def local_store(tmp_path) -> LocalImageStore:
    return LocalImageStore(tmp_path / "images", "http://testserver")


# =============================================================================
# CLIENT FIXTURE
# =============================================================================
@pytest.fixture(scope="function")
def client(db_session: Session, local_store: LocalImageStore) -> Generator[TestClient, None, None]:
    """
    Test client using the test session and a temporary image directory.
    """

    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Session cleanup handled by db_session fixture

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_image_store] = lambda: local_store

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# =============================================================================
# SAMPLE DATA FIXTURES
# =============================================================================
def make_user(db_session: Session, email: str, password: str = "SecurePass123!") -> User:
    user = User(email=email, hashed_password=hash_password(password))
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


def get_auth_header(user: User) -> dict:
    """Create authorization header for a user."""
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def sample_user(db_session: Session) -> User:
    return make_user(db_session, "owner@example.com")


@pytest.fixture
def second_user(db_session: Session) -> User:
    """A user who does not own sample_book."""
    return make_user(db_session, "reader@example.com", "OtherPass456!")


@pytest.fixture
def sample_book(db_session: Session, sample_user: User) -> Book:
    """An unrated book owned by sample_user."""
    book = Book(
        user_id=sample_user.id,
        title="Dune",
        author="Frank Herbert",
        genre="Science Fiction",
        year=1965,
        image_url="http://testserver/images/frank-herbert_dune_1965_1700000000000.png",
        average_rating=0.0,
    )
    db_session.add(book)
    db_session.commit()
    db_session.refresh(book)
    return book


@pytest.fixture
def add_book(db_session: Session, sample_user: User):
    """
    Factory fixture: add_book("Title", grades=[4, 5]) stores a book whose
    ratings come from distinct users.
    """
    counter = {"users": 0}

    def _add_book(title: str, grades: list[float] | None = None, owner: User | None = None) -> Book:
        ratings = []
        for grade in grades or []:
            counter["users"] += 1
            rater = make_user(db_session, f"rater{counter['users']}-{title.lower()}@example.com")
            ratings.append(BookRating(user_id=rater.id, grade=grade))

        book = Book(
            user_id=(owner or sample_user).id,
            title=title,
            author="Some Author",
            genre="Novel",
            year=2000,
            image_url=f"http://testserver/images/{title.lower()}.png",
            ratings=ratings,
            average_rating=sum(grades) / len(grades) if grades else 0.0,
        )
        db_session.add(book)
        db_session.commit()
        db_session.refresh(book)
        return book

    return _add_book
