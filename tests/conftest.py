import os, tempfile

_TMP = tempfile.mkdtemp(prefix="portfolio-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'portfolio.db')}"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP, "uploads")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("APP_ENV", "test")

import pytest
from fastapi.testclient import TestClient

from backend.main import app
from app.core.database import Base, SessionLocal, engine
from app.core.errors import UpstreamError
from app.services.upload import get_image_host

STUDENT = {
    "firstName": "Amara",
    "lastName": "Okafor",
    "email": "amara@atelier.edu",
    "password": "secret123",
    "studentId": "S-1001",
    "department": "fashion-design",
}
ADMIN = {
    "firstName": "Grace",
    "lastName": "Lindqvist",
    "email": "grace@atelier.edu",
    "password": "adminpass",
}
PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class FakeImageHost:
    """Stands in for the image host; records every upload call."""

    def __init__(self, fail_on=None):
        self.calls = []
        self.fail_on = fail_on

    def upload(self, data, filename, content_type="application/octet-stream"):
        self.calls.append(filename)
        n = len(self.calls)
        if self.fail_on == n:
            raise UpstreamError("host unavailable")
        return {"url": f"https://media.example/{n}.png", "publitio_id": f"asset-{n}", "bytes": len(data)}


def auth(token):
    return {"Authorization": f"Bearer {token}"}


def image_parts(n, content_type="image/png", data=PNG):
    return [("images", (f"look {i}.png", data, content_type)) for i in range(n)]


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db():
    s = SessionLocal()
    yield s
    s.close()


@pytest.fixture
def image_host():
    host = FakeImageHost()
    app.dependency_overrides[get_image_host] = lambda: host
    yield host
    app.dependency_overrides.pop(get_image_host, None)


@pytest.fixture
def admin(client):
    r = client.post("/api/admin/signup", json=ADMIN)
    assert r.status_code == 201, r.text
    data = r.json()["data"]
    return {"id": data["user"]["id"], "token": data["token"]}


@pytest.fixture
def make_student(client, admin):
    """Sign up a student (approved by default) and log them in."""
    def _make(approve=True, **overrides):
        body = {**STUDENT, **overrides}
        r = client.post("/api/student/signup", json=body)
        assert r.status_code == 201, r.text
        user = r.json()["data"]["user"]
        token = r.json()["data"]["token"]
        if approve:
            r = client.patch(f"/api/admin/approve-student/{user['id']}", headers=auth(admin["token"]))
            assert r.status_code == 200, r.text
            r = client.post("/api/login", json={"email": body["email"], "password": body["password"], "role": "student"})
            assert r.status_code == 200, r.text
            token = r.json()["data"]["token"]
        return {"id": user["id"], "token": token, "email": body["email"]}
    return _make


@pytest.fixture
def submit_project(client, image_host):
    def _submit(student, title="Indigo Couture", category="couture", images=1, **extra):
        form = {"title": title, "description": "Hand-dyed silk", "category": category, **extra}
        r = client.post(
            "/api/student/create-projects",
            data=form,
            files=image_parts(images),
            headers=auth(student["token"]),
        )
        assert r.status_code == 201, r.text
        return r.json()["data"]["project"]
    return _submit
