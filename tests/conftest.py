"""
Pytest will auto-discover / import this file called 'conftest.py'.
This file defines fixtures/variables required for testing multiple layers.
"""

from typing import Generator

import pytest
from sqlalchemy import StaticPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

from src.core.hashing import Sha256Crypto
from src.db.schema import Base
from src.morris.pieces import Player

HOST_ID = "host-peer"
CLIENT_ID = "client-peer"

# Setup an in-memory SQLite database for testing
DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autoflush=False, bind=engine)


@pytest.fixture
def db_session_repo() -> Generator[Session, None, None]:
    """Connection to a test database. Tables are removed at teardown to make unit tests of repository independent of each other."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        Base.metadata.drop_all(bind=engine)
        db.close()


@pytest.fixture
def crypto() -> Sha256Crypto:
    """The real thing: hashes in tests are the ones two peers would exchange."""
    return Sha256Crypto()


@pytest.fixture
def host_player() -> Player:
    return Player(HOST_ID, "X", is_initiator=True)


@pytest.fixture
def client_player() -> Player:
    return Player(CLIENT_ID, "O")
