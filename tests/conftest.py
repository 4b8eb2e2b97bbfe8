"""Pytest fixtures: in-memory database, API client and profile factories."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from exhibae import config
from exhibae.database import Base, get_db
from exhibae.domain.exhibitions.schemas import ExhibitionCreate, StallCreate
from exhibae.domain.exhibitions.service import ExhibitionService
from exhibae.domain.notifications.dispatcher import EmailDispatchError, get_email_dispatcher
from exhibae.main import app
from exhibae.models import Profile


class FakeDispatcher:
    """Records outgoing emails; addresses in `failing` raise like an unreachable email service"""

    def __init__(self):
        self.sent = []
        self.failing = set()

    async def send(self, to, subject, html=None, text=None):
        if to in self.failing:
            raise EmailDispatchError(f"Email service rejected {to}")
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})
        return {"success": True, "messageId": f"msg-{len(self.sent)}"}

    def recipients(self):
        return [email["to"] for email in self.sent]


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture
def dispatcher():
    return FakeDispatcher()


@pytest.fixture
def client(db, dispatcher):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_email_dispatcher] = lambda: dispatcher
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_profile(db, role, email, **fields):
    profile = Profile(role=role, email=email, **fields)
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


@pytest.fixture
def organiser(db):
    return make_profile(db, "organiser", "olivia@fairs.example", full_name="Olivia Organiser")


@pytest.fixture
def brand(db):
    return make_profile(db, "brand", "bea@brand.example", company_name="Bea's Candles")


@pytest.fixture
def other_brand(db):
    return make_profile(db, "brand", "max@makers.example", company_name="Makers Co")


@pytest.fixture
def manager(db):
    return make_profile(db, "manager", "mona@exhibae.example", full_name="Mona Manager")


def token_for(profile, **extra_claims):
    claims = {"sub": profile.id, "email": profile.email, "aud": config.JWT_AUDIENCE, **extra_claims}
    return jwt.encode(claims, config.SUPABASE_JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def auth_headers(profile):
    return {"Authorization": f"Bearer {token_for(profile)}"}


@pytest.fixture
def exhibition(db, organiser):
    return ExhibitionService(db).create_exhibition(
        ExhibitionCreate(title="Spring Craft Fair", city="Leeds"), organiser
    )


@pytest.fixture
def stall(db, organiser, exhibition):
    return ExhibitionService(db).create_stall(
        exhibition.id,
        StallCreate(name="Corner Stall", price=Decimal("250.00"), quantity=2),
        organiser,
    )


@pytest.fixture
def instance(db, stall):
    db.refresh(stall)
    return sorted(stall.instances, key=lambda i: i.instance_number)[0]
