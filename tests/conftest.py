# tests/conftest.py
import pytest

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from userstamps import context
from userstamps.config import reset_config
from userstamps.services.reverse_associations import model_registry

# Import models so metadata knows about all tables
from stamped_models import Base


@pytest.fixture(scope="session")
def engine():
    """Create an in-memory SQLite database shared across tests."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture(autouse=True)
def clean_db(engine):
    """Reset all tables before each test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_userstamps():
    """Default configuration, no current user and an empty model registry for every test."""
    reset_config()
    context.reset()
    model_registry.clear()
    yield
    reset_config()
    context.reset()
    model_registry.clear()


@pytest.fixture()
def db(engine):
    """Return a new SQLAlchemy session for each test."""
    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
    )
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def users(db):
    """Two users to stamp with."""
    from stamped_models import User

    alice = User(id=42, name="Alice")
    bob = User(id=7, name="Bob")
    db.add_all([alice, bob])
    db.commit()
    return alice, bob
