import os
import shutil
import sys
import uuid
from pathlib import Path

os.environ["TESTING"] = "1"
os.environ.setdefault("SECRET_KEY", "test-secret")
# worker tasks open their own sessions; point them at the test database
os.environ["DATABASE_URL"] = "sqlite:///./reviewdesk_test.db"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

sys.path.append(str(Path(__file__).resolve().parents[2]))

from reviewdesk.main import app
from reviewdesk.database import Base, get_db
from reviewdesk import models, notify
from reviewdesk.auth import get_password_hash

SQLALCHEMY_DATABASE_URL = "sqlite:///./reviewdesk_test.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": 30},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base.metadata.drop_all(bind=engine)
Base.metadata.create_all(bind=engine)

def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def upload_dir(tmp_path):
    d = tmp_path / "uploads"
    d.mkdir()
    os.environ["UPLOAD_DIR"] = str(d)
    yield
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture(autouse=True)
def clear_outbox():
    notify.EMAIL_OUTBOX.clear()
    yield
    notify.EMAIL_OUTBOX.clear()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


def make_user(db, *, email: str | None = None, full_name: str | None = None) -> models.User:
    user = models.User(
        email=email or f"user-{uuid.uuid4()}@example.com",
        hashed_password=get_password_hash("secret"),
        full_name=full_name,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_team(db, owner: models.User, members: dict | None = None) -> models.Team:
    """Create a team owned by ``owner`` with extra ``{user: role}`` memberships."""

    team = models.Team(name=f"team-{uuid.uuid4().hex[:6]}", owner_id=owner.id)
    db.add(team)
    db.flush()
    db.add(models.TeamMember(team_id=team.id, user_id=owner.id, role="owner"))
    for user, role in (members or {}).items():
        db.add(models.TeamMember(team_id=team.id, user_id=user.id, role=role))
    db.commit()
    db.refresh(team)
    return team


def make_asset(db, owner: models.User, *, team: models.Team | None = None, media_type: str = "video") -> models.Asset:
    project = models.Project(name="Launch", owner_id=owner.id, team_id=team.id if team else None)
    db.add(project)
    db.flush()
    asset = models.Asset(project_id=project.id, title="Hero cut", media_type=media_type, created_by=owner.id)
    db.add(asset)
    db.commit()
    db.refresh(asset)
    return asset


def ensure_access_token(client, *, email: str | None = None, password: str = "secret"):
    normalized_email = email or f"user-{uuid.uuid4()}@example.com"
    payload = {"email": normalized_email, "password": password}
    resp = client.post("/api/auth/register", json=payload)
    if resp.status_code == 400 and resp.json().get("detail") == "Email already registered":
        resp = client.post("/api/auth/login", json=payload)
    assert resp.status_code == 200, f"Auth bootstrap failed for {normalized_email}: {resp.text}"
    return resp.json()["access_token"], normalized_email


def ensure_auth_headers(client, *, email: str | None = None, password: str = "secret"):
    token, normalized_email = ensure_access_token(client, email=email, password=password)
    return {"Authorization": f"Bearer {token}"}, normalized_email
