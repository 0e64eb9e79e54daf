from pathlib import Path

from dotenv import load_dotenv

env_file = Path(__file__).parent.parent / ".env.test"
load_dotenv(env_file)

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.auth.claims import SessionClaims  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.session import build_engine, get_db  # noqa: E402
from app.main import app  # noqa: E402
from tests.utils.factories import create_user_factory  # noqa: E402
from tests.utils.helpers import token_for  # noqa: E402


@pytest.fixture(scope="session")
def test_engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)

    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="session")
def test_session_local(test_engine):
    return sessionmaker(bind=test_engine, autocommit=False, autoflush=False)


@pytest.fixture
def db_session(test_session_local):
    session = test_session_local()

    session.commit = session.flush

    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
async def test_app(db_session):
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    yield app

    app.dependency_overrides.clear()


@pytest.fixture
async def test_client(test_app):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        yield client


@pytest.fixture
def channel_partner(db_session):
    return create_user_factory(
        db_session,
        email="partner@example.com",
        name="Paula Partner",
        role="channel_partner",
        department="Sales",
        location="Warsaw",
    )


@pytest.fixture
def other_partner(db_session):
    return create_user_factory(
        db_session,
        email="partner2@example.com",
        name="Oscar Partner",
        role="channel_partner",
        department="Sales",
        location="Krakow",
    )


@pytest.fixture
def assignee_user(db_session):
    return create_user_factory(
        db_session,
        email="assignee@example.com",
        name="Adam Assignee",
        role="assignee",
        department="Support",
        location="Warsaw",
    )


@pytest.fixture
def head_office_user(db_session):
    return create_user_factory(
        db_session,
        email="admin@example.com",
        password="adminpass123",
        name="Hanna Head",
        role="head_office",
        department="Management",
        location="Warsaw",
    )


@pytest.fixture
def technical_user(db_session):
    return create_user_factory(
        db_session,
        email="tech@example.com",
        name="Tomasz Tech",
        role="technical",
        department="IT",
        location="Gdansk",
    )


@pytest.fixture
def developer_user(db_session):
    return create_user_factory(
        db_session,
        email="dev@example.com",
        name="Dorota Dev",
        role="developer_support",
        department="Engineering",
        location="Remote",
    )


@pytest.fixture
def partner_token(channel_partner):
    return token_for(channel_partner)


@pytest.fixture
def assignee_token(assignee_user):
    return token_for(assignee_user)


@pytest.fixture
def head_office_token(head_office_user):
    return token_for(head_office_user)


@pytest.fixture
def technical_token(technical_user):
    return token_for(technical_user)


@pytest.fixture
def developer_token(developer_user):
    return token_for(developer_user)


@pytest.fixture
def claims_for():
    return SessionClaims.from_user
