import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from medbook.database import create_schema
from medbook.api import auth


@pytest.fixture
def engine():
    """A fresh in-memory SQLite database with the application schema."""
    eng = create_engine(
        "sqlite://",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    create_schema(eng)
    yield eng
    eng.dispose()


@pytest.fixture(autouse=True)
def clear_sessions():
    auth.sessions.clear()
    yield
    auth.sessions.clear()
