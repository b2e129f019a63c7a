from app.models import ActivityLog, Project, User
from conftest import auth


def test_approve_is_idempotent(client, admin, make_student):
    s = make_student(approve=False)
    for _ in range(2):
        r = client.patch(f"/api/admin/approve-student/{s['id']}", headers=auth(admin["token"]))
        assert r.status_code == 200
        assert r.json()["data"]["user"]["isApproved"] is True
    pending = client.get("/api/admin/pending-students", headers=auth(admin["token"])).json()
    assert pending["data"]["students"] == []

def test_approve_unknown_or_non_student(client, admin):
    r = client.patch("/api/admin/approve-student/missing", headers=auth(admin["token"]))
    assert r.status_code == 404
    r = client.patch(f"/api/admin/approve-student/{admin['id']}", headers=auth(admin["token"]))
    assert r.status_code == 400
    assert r.json()["message"] == "User is not a student"

def test_bulk_approve(client, admin, make_student):
    make_student(approve=False)
    make_student(approve=False, email="b@atelier.edu", studentId="S-2")
    r = client.patch("/api/admin/approve-students", json={}, headers=auth(admin["token"]))
    assert r.status_code == 200
    assert r.json()["data"]["approved"] == 2
    students = client.get("/api/admin/all-students", headers=auth(admin["token"])).json()["data"]["students"]
    assert all(s["isApproved"] for s in students)

def test_delete_student_cascades_only_their_projects(client, db, admin, make_student, submit_project):
    a = make_student()
    b = make_student(email="b@atelier.edu", studentId="S-2")
    submit_project(a, title="First")
    submit_project(a, title="Second")
    kept = submit_project(b, title="Keeper")

    r = client.delete(f"/api/admin/delete-student/{a['id']}", headers=auth(admin["token"]))
    assert r.status_code == 200
    assert r.json()["data"]["deletedProjects"] == 2

    assert db.get(User, a["id"]) is None
    assert db.query(Project).filter(Project.student_id == a["id"]).count() == 0
    assert [p.id for p in db.query(Project).all()] == [kept["id"]]
    # history survives the account
    assert db.query(ActivityLog).filter(ActivityLog.user_id == a["id"]).count() > 0

def test_reject_project_with_reason(client, admin, make_student, submit_project):
    s = make_student()
    p = submit_project(s)
    r = client.patch("/api/admin/reject-project", json={"projectId": p["id"], "reason": "incomplete"},
                     headers=auth(admin["token"]))
    assert r.status_code == 200
    project = r.json()["data"]["project"]
    assert project["status"] == "rejected"
    assert project["rejectionReason"] == "incomplete"
    assert project["rejectedAt"] and project["reviewedAt"]

def test_reject_requires_reason(client, admin, make_student, submit_project):
    p = submit_project(make_student())
    r = client.patch("/api/admin/reject-project", json={"projectId": p["id"]}, headers=auth(admin["token"]))
    assert r.status_code == 400
    assert r.json()["message"] == "A rejection reason is required"

def test_decided_project_cannot_flip(client, admin, make_student, submit_project):
    p = submit_project(make_student())
    r = client.patch("/api/admin/approve-project", json={"projectId": p["id"]}, headers=auth(admin["token"]))
    assert r.status_code == 200
    assert r.json()["data"]["project"]["approvedAt"]
    r = client.patch("/api/admin/approve-project", json={"projectId": p["id"]}, headers=auth(admin["token"]))
    assert r.status_code == 200
    r = client.patch("/api/admin/reject-project", json={"projectId": p["id"], "reason": "late"},
                     headers=auth(admin["token"]))
    assert r.status_code == 400
    assert r.json()["message"] == "Project has already been approved"

def test_project_lists_and_stats(client, admin, make_student, submit_project):
    s = make_student()
    p1 = submit_project(s, title="One")
    submit_project(s, title="Two")
    client.patch("/api/admin/approve-project", json={"projectId": p1["id"]}, headers=auth(admin["token"]))

    pending = client.get("/api/admin/pending-projects", headers=auth(admin["token"])).json()["data"]["projects"]
    assert [p["title"] for p in pending] == ["Two"]
    assert pending[0]["student"]["studentId"] == "S-1001"

    stats = client.get("/api/admin/project-stats", headers=auth(admin["token"])).json()["data"]["statistics"]
    assert stats == {"totalPending": 1, "totalApproved": 1, "totalRejected": 0, "totalProjects": 2}

def test_delete_project(client, admin, make_student, submit_project):
    p = submit_project(make_student())
    r = client.delete(f"/api/admin/delete-project/{p['id']}", headers=auth(admin["token"]))
    assert r.status_code == 200
    r = client.delete(f"/api/admin/delete-project/{p['id']}", headers=auth(admin["token"]))
    assert r.status_code == 404
