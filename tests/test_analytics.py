from datetime import timedelta

from app.crud import analytics
from app.crud.project import approve_project, create_project, reject_project
from app.crud.user import approve_student, signup_admin, signup_student
from app.models import User
from app.services.activity import record_activity
from app.utils.clock import utcnow
from conftest import auth

IMAGES = [{"url": "https://media.example/1.png", "publitio_id": "asset-1"}]


def _student(db, n, department="fashion-design", approved=False):
    s = signup_student(db, "Stu", f"Dent{n}", f"s{n}@atelier.edu", "secret123", f"S-{n}", department)
    if approved:
        approve_student(db, s.id)
    return s

def test_approval_rate():
    assert analytics.approval_rate(0, 0) == 0
    assert analytics.approval_rate(1, 3) == 33.3
    assert analytics.approval_rate(2, 2) == 100.0

def test_empty_platform(db):
    data = analytics.platform_analytics(db)
    assert data["overview"] == {"totalUsers": 0, "totalProjects": 0, "activeToday": 0, "approvalRate": 0}
    depts = data["departmentStats"]
    assert len(depts) == 20
    assert all(d["totalStudents"] == 0 and d["approvalRate"] == 0 for d in depts)

def test_student_statistics_and_departments(db):
    _student(db, 1, approved=True)
    _student(db, 2)
    _student(db, 3, department="costume-design", approved=True)
    signup_admin(db, "Ad", "Min", "admin@atelier.edu", "adminpass")

    assert analytics.student_statistics(db) == {"totalPending": 1, "totalApproved": 2, "totalStudents": 3}

    by_dept = analytics.students_by_department(db)
    assert by_dept[0] == {"department": "fashion-design", "count": 2, "approved": 1, "pending": 1}

    stats = {d["department"]: d for d in analytics.department_stats(db)}
    assert stats["fashion-design"]["approvalRate"] == 50.0
    assert stats["costume-design"]["approvalRate"] == 100.0
    assert stats["jewelry-design"]["totalStudents"] == 0

    users = analytics.user_stats(db)
    assert users["admin"] == {"count": 1, "approved": 1, "pending": 0}
    assert users["student"]["count"] == 3

def test_registration_trend_window(db):
    old = _student(db, 1)
    _student(db, 2)
    old.created_at = utcnow() - timedelta(days=45)
    db.commit()
    trend = analytics.registration_trend(db)
    assert sum(d["count"] for d in trend) == 1

def test_project_breakdowns(db):
    s = _student(db, 1, approved=True)
    a = create_project(db, s, "Gown", "silk", "couture", IMAGES)
    b = create_project(db, s, "Cape", "wool", "couture", IMAGES)
    c = create_project(db, s, "Bag", "leather", "accessories", IMAGES)
    create_project(db, s, "Scarf", "cotton", "accessories", IMAGES)
    approve_project(db, a.id)
    approve_project(db, b.id)
    approve_project(db, c.id)
    a.views = 10
    db.commit()

    assert analytics.project_statistics(db) == {
        "totalPending": 1, "totalApproved": 3, "totalRejected": 0, "totalProjects": 4,
    }
    cats = analytics.top_categories(db)
    assert cats[0] == {"category": "couture", "count": 2, "avgViews": 5.0}
    assert cats[1]["category"] == "accessories"

    by_status = analytics.projects_by_status(db)
    assert by_status["approved"] == {"count": 3, "totalViews": 10}

    trend = analytics.platform_analytics(db)["trends"]["projects"]
    assert trend[-1]["submissions"] == 4
    assert trend[-1]["approved"] == 3

def test_rejection_counts(db):
    s = _student(db, 1, approved=True)
    p = create_project(db, s, "Gown", "silk", "couture", IMAGES)
    reject_project(db, p.id, "incomplete")
    assert analytics.project_statistics(db)["totalRejected"] == 1

def test_active_today_counts_entries(db):
    record_activity(db, "u1", "student_login", "logged in")
    old = record_activity(db, "u1", "student_login", "logged in")
    old.timestamp = utcnow() - timedelta(days=2)
    db.commit()
    assert analytics.active_today(db) == 1

def test_activity_feed_outlives_account(db):
    s = _student(db, 1)
    record_activity(db, s.id, "student_signup", "signed up")
    db.delete(db.get(User, s.id))
    db.commit()
    feed = analytics.activity_feed(db)
    assert feed["activities"][0]["user"] == {"id": s.id}
    assert feed["pagination"] == {"current": 1, "pages": 1, "total": 1}

def test_analytics_endpoints(client, admin):
    r = client.get("/api/admin/statistics/analytics", headers=auth(admin["token"]))
    assert r.status_code == 200
    assert set(r.json()["data"]) == {"studentsByDepartment", "registrationTrends", "lastUpdated"}
    r = client.get("/api/admin/analytics/dashboard", headers=auth(admin["token"]))
    assert r.status_code == 200
    assert r.json()["data"]["overview"]["totalUsers"] == 1
