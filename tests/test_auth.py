import jwt

from app.core.security import JWT_ALGO, JWT_SECRET
from conftest import ADMIN, STUDENT, auth


def test_student_signup_starts_pending(client):
    r = client.post("/api/student/signup", json=STUDENT)
    assert r.status_code == 201
    user = r.json()["data"]["user"]
    assert user["isApproved"] is False
    assert user["role"] == "student"
    assert "password" not in user and "passwordHash" not in user

def test_admin_signup_is_approved(client):
    r = client.post("/api/admin/signup", json=ADMIN)
    assert r.status_code == 201
    assert r.json()["data"]["user"]["isApproved"] is True

def test_duplicate_email_or_student_id(client):
    assert client.post("/api/student/signup", json=STUDENT).status_code == 201
    r = client.post("/api/student/signup", json={**STUDENT, "email": "other@atelier.edu"})
    assert r.status_code == 400
    assert r.json()["message"] == "User already exists with this email or student ID"
    r = client.post("/api/student/signup", json={**STUDENT, "email": "AMARA@atelier.edu", "studentId": "S-2"})
    assert r.status_code == 400

def test_admin_signup_rejects_student_email(client):
    client.post("/api/student/signup", json=STUDENT)
    r = client.post("/api/admin/signup", json={**ADMIN, "email": STUDENT["email"]})
    assert r.status_code == 400

def test_signup_validation_errors(client):
    r = client.post("/api/student/signup", json={**STUDENT, "password": "123", "department": "basket-weaving"})
    assert r.status_code == 400
    body = r.json()
    assert body["success"] is False
    assert body["message"] == "Validation failed"
    fields = {e["field"] for e in body["errors"]}
    assert {"password", "department"} <= fields

def test_login_pending_student_refused(client):
    client.post("/api/student/signup", json=STUDENT)
    r = client.post("/api/login", json={"email": STUDENT["email"], "password": STUDENT["password"], "role": "student"})
    assert r.status_code == 401
    assert r.json()["message"] == "Your account is pending approval. Please contact administrator."

def test_login_role_mismatch_names_actual_role(client):
    client.post("/api/student/signup", json=STUDENT)
    r = client.post("/api/login", json={"email": STUDENT["email"], "password": STUDENT["password"], "role": "admin"})
    assert r.status_code == 401
    assert r.json()["message"] == "Invalid role selection. This email is registered as a student."

def test_login_bad_credentials(client, admin):
    r = client.post("/api/login", json={"email": ADMIN["email"], "password": "wrong-one", "role": "admin"})
    assert r.status_code == 401
    assert r.json()["message"] == "Invalid credentials"
    r = client.post("/api/login", json={"email": "ghost@atelier.edu", "password": "whatever", "role": "admin"})
    assert r.status_code == 401

def test_approve_then_login(client, admin):
    r = client.post("/api/student/signup", json=STUDENT)
    sid = r.json()["data"]["user"]["id"]
    r = client.patch(f"/api/admin/approve-student/{sid}", headers=auth(admin["token"]))
    assert r.status_code == 200
    r = client.post("/api/login", json={"email": STUDENT["email"], "password": STUDENT["password"], "role": "student"})
    assert r.status_code == 200
    token = r.json()["data"]["token"]
    claims = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGO])
    assert claims["sub"] == sid
    assert claims["role"] == "student"
    assert claims["exp"] - claims["iat"] == 30 * 24 * 3600

def test_me_and_missing_token(client, admin):
    r = client.get("/api/me", headers=auth(admin["token"]))
    assert r.status_code == 200
    assert r.json()["data"]["user"]["email"] == ADMIN["email"]
    assert client.get("/api/me").status_code == 401
    assert client.get("/api/me", headers=auth("not-a-token")).status_code == 401

def test_logout_requires_token(client, admin):
    assert client.post("/api/logout").status_code == 401
    assert client.post("/api/logout", headers=auth(admin["token"])).status_code == 200

def test_pending_student_cannot_use_student_routes(client, make_student):
    s = make_student(approve=False)
    r = client.get("/api/student/get-student-profile", headers=auth(s["token"]))
    assert r.status_code == 401

def test_student_cannot_reach_admin_routes(client, make_student):
    s = make_student()
    r = client.get("/api/admin/pending-students", headers=auth(s["token"]))
    assert r.status_code == 403
    assert r.json()["message"] == "User role 'student' is not authorized to access this route"

def test_profile_save_replaces_whole_profile(client, make_student):
    s = make_student()
    client.post("/api/student/save-profile", json={"bio": "Draper", "skills": "pleating"}, headers=auth(s["token"]))
    r = client.post("/api/student/save-profile", json={"bio": "Tailor"}, headers=auth(s["token"]))
    assert r.status_code == 200
    profile = client.get("/api/student/get-student-profile", headers=auth(s["token"])).json()["data"]["profile"]
    assert profile["bio"] == "Tailor"
    assert profile["skills"] == ""
    assert profile["updatedAt"]
