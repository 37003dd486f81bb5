import os
import sys

os.environ.setdefault("DATABASE_URL", "sqlite:///./data/authledger.db")
os.environ.setdefault("ACCESS_SECRET_KEY", "0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef")
os.environ.setdefault("REFRESH_SECRET_KEY", "fedcba9876543210fedcba9876543210fedcba9876543210fedcba9876543210")
os.environ.setdefault("RECOVERY_SECRET_KEY", "a1b2c3d4e5f60718a1b2c3d4e5f60718a1b2c3d4e5f60718a1b2c3d4e5f60718")
os.environ.setdefault("LOG_JSON", "false")

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from authledger import models  # noqa: F401
from authledger.config import get_settings
from authledger.database import Base
from authledger.services.token_service import TokenService
from authledger.services.token_signer import TokenSigner
from authledger.services.user_service import Registration, UserService


class RecordingEmailSender:
    def __init__(self):
        self.sent = []

    def send_recovery(self, to_address, token):
        self.sent.append((to_address, token))


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def outbox():
    return RecordingEmailSender()


@pytest.fixture
def signer():
    return TokenSigner.from_settings(get_settings())


@pytest.fixture
def token_service(signer, outbox):
    return TokenService(signer, outbox)


@pytest.fixture
def user_service(token_service):
    return UserService(token_service)


@pytest.fixture
def alice(db, user_service):
    return user_service.register(
        db,
        Registration(login="alice", email="Alice@Example.com", password="Secr3t!", first_name="Alice", age=30),
    )
