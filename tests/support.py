"""Shared builders for tests: settings, in-memory SQLite sessions, apps and tokens."""

import re
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import jwt
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from backoffice.core.config import Settings
from backoffice.core.database import build_engine
from backoffice.main import create_app
from backoffice.models import Base, Role, User
from backoffice.services.credentials import CredentialService

TEST_SECRET = "test-secret-for-unit-tests-only-0123456789"
# Lowest bcrypt cost allowed; keeps the suite fast.
TEST_BCRYPT_ROUNDS = 4

RESET_LINK_RE = re.compile(r"/reset-password/([0-9a-f]{64})")


def make_settings(**overrides: object) -> Settings:
    values: dict[str, object] = {
        "APP_ENV": "test",
        "DATABASE_URL": "sqlite://",
        "JWT_SECRET": TEST_SECRET,
        "FRONTEND_URL": "https://admin.bakery.test",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_session_factory() -> sessionmaker:
    """Fresh in-memory database with the schema created."""
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def make_service(settings: Settings | None = None, mailer: MagicMock | None = None) -> CredentialService:
    return CredentialService(
        settings or make_settings(),
        mailer if mailer is not None else MagicMock(),
        bcrypt_rounds=TEST_BCRYPT_ROUNDS,
    )


def add_user(
    db: Session,
    service: CredentialService,
    email: str = "baker@example.com",
    password: str = "password123",
    name: str = "Baker",
    role: Role = Role.USER,
) -> User:
    user = User(email=email, name=name, password_hash=service.hash(password), role=role.value)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def expired_access_token(account_id: int, role: Role = Role.USER) -> str:
    past = datetime.now(UTC) - timedelta(hours=2)
    return jwt.encode(
        {
            "sub": str(account_id),
            "role": role.value,
            "type": "access",
            "iat": past,
            "exp": past + timedelta(minutes=60),
        },
        TEST_SECRET,
        algorithm="HS256",
    )


def reset_token_from(mailer: MagicMock) -> str:
    """Pull the raw reset token out of the last email the mock mailer was asked to send."""
    _to, _subject, body = mailer.send.call_args.args
    match = RESET_LINK_RE.search(body)
    assert match is not None, body
    return match.group(1)


class ApiHarness:
    """FastAPI app on an in-memory DB with a mock mailer and recorded broadcasts."""

    def __init__(self, **setting_overrides: object) -> None:
        self.settings = make_settings(**setting_overrides)
        self.session_factory = make_session_factory()
        self.mailer = MagicMock()
        self.service = make_service(self.settings, self.mailer)
        self.app = create_app(
            self.settings,
            session_factory=self.session_factory,
            credentials=self.service,
        )
        self.gateway = self.app.state.gateway
        self.gateway.broadcast_to_roles = AsyncMock()
        self.gateway.broadcast_to_account = AsyncMock()
        self.client = TestClient(self.app)
        self.prefix = self.settings.API_V1_PREFIX + "/auth"

    def url(self, path: str) -> str:
        return self.prefix + path

    def db(self) -> Session:
        return self.session_factory()

    def create_user(self, **kwargs: object) -> User:
        db = self.db()
        try:
            return add_user(db, self.service, **kwargs)
        finally:
            db.close()

    def login(self, email: str, password: str):
        return self.client.post(self.url("/login"), json={"email": email, "password": password})

    def bearer(self, email: str, password: str) -> dict[str, str]:
        resp = self.login(email, password)
        assert resp.status_code == 200, resp.text
        return {"Authorization": f"Bearer {resp.json()['tokens']['access_token']}"}
