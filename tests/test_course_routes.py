import pytest

from conftest import login, register

COURSE = {
    "course_code": "CS101",
    "title": "Intro to Computing",
    "description": "Programs, data and machines",
    "level": "Beginner",
    "credits": 3,
    "instructor": "Dr. Hopper",
    "schedule": "Mon/Wed 10:00",
    "semester": "Fall 2026",
}


@pytest.fixture
def course_id(logged_in) -> int:
    response = logged_in.post("/api/courses", json=COURSE)
    assert response.status_code == 201
    return response.json()["id"]


def test_courses_require_login(client) -> None:
    assert client.get("/api/courses").status_code == 401
    assert client.post("/api/courses", json=COURSE).status_code == 401


def test_create_and_fetch_course(logged_in, course_id) -> None:
    response = logged_in.get(f"/api/courses/{course_id}")

    assert response.status_code == 200
    body = response.json()
    assert body["course_code"] == "CS101"
    assert body["enrolled_count"] == 0
    assert body["is_active"] is True


def test_duplicate_course_code_is_rejected(logged_in, course_id) -> None:
    response = logged_in.post("/api/courses", json={**COURSE, "course_code": "cs101"})

    assert response.status_code == 409
    assert response.json() == {"error": "Course code already exists"}


def test_invalid_level_is_rejected(logged_in) -> None:
    response = logged_in.post("/api/courses", json={**COURSE, "level": "Expert"})

    assert response.status_code == 400
    assert "level" in response.json()["error"]


def test_list_courses(logged_in, course_id) -> None:
    logged_in.post("/api/courses", json={**COURSE, "course_code": "CS102", "title": "Data Structures"})

    response = logged_in.get("/api/courses")

    assert response.status_code == 200
    assert {c["course_code"] for c in response.json()["courses"]} == {"CS101", "CS102"}


def test_unknown_course_is_404(logged_in) -> None:
    response = logged_in.get("/api/courses/4242")

    assert response.status_code == 404
    assert response.json() == {"error": "Course not found"}


def test_update_and_delete_by_creator(logged_in, course_id) -> None:
    updated = logged_in.put(f"/api/courses/{course_id}", json={"credits": 4})

    assert updated.status_code == 200
    assert updated.json()["credits"] == 4
    assert updated.json()["title"] == COURSE["title"]

    deleted = logged_in.delete(f"/api/courses/{course_id}")

    assert deleted.status_code == 200
    assert logged_in.get(f"/api/courses/{course_id}").status_code == 404


def test_other_user_cannot_edit(logged_in, course_id) -> None:
    register(logged_in, email="grace@example.edu", name="Grace Hopper")
    login(logged_in, email="grace@example.edu")

    assert logged_in.put(f"/api/courses/{course_id}", json={"title": "Mine"}).status_code == 404
    assert logged_in.delete(f"/api/courses/{course_id}").status_code == 404


def test_enrollment_roster_consistency(logged_in, course_id) -> None:
    response = logged_in.post(f"/api/courses/{course_id}/enroll")

    assert response.status_code == 200
    assert response.json()["course"]["enrolled_count"] == 1
    assert logged_in.get("/api/auth/me").json()["enrolled_course_ids"] == [course_id]
    assert [c["id"] for c in logged_in.get("/api/courses/my").json()["courses"]] == [course_id]

    response = logged_in.post(f"/api/courses/{course_id}/unenroll")

    assert response.status_code == 200
    assert response.json()["course"]["enrolled_count"] == 0
    assert logged_in.get("/api/auth/me").json()["enrolled_course_ids"] == []
    assert logged_in.get("/api/courses/my").json()["courses"] == []


def test_enroll_twice_is_rejected(logged_in, course_id) -> None:
    logged_in.post(f"/api/courses/{course_id}/enroll")

    response = logged_in.post(f"/api/courses/{course_id}/enroll")

    assert response.status_code == 409
    assert response.json() == {"error": "Already enrolled in this course"}


def test_enroll_in_inactive_course(logged_in, course_id) -> None:
    logged_in.put(f"/api/courses/{course_id}", json={"is_active": False})

    response = logged_in.post(f"/api/courses/{course_id}/enroll")

    assert response.status_code == 400
    assert response.json() == {"error": "This course is not available"}
    assert logged_in.get("/api/courses").json()["courses"] == []


def test_enroll_in_unknown_course(logged_in) -> None:
    assert logged_in.post("/api/courses/4242/enroll").status_code == 404


def test_unenroll_when_not_enrolled(logged_in, course_id) -> None:
    response = logged_in.post(f"/api/courses/{course_id}/unenroll")

    assert response.status_code == 404
    assert response.json() == {"error": "Not enrolled in this course"}


@pytest.mark.parametrize("changes", [{"course_code": "   "}, {"title": "   "}])
def test_update_rejects_blank_fields(logged_in, course_id, changes) -> None:
    response = logged_in.put(f"/api/courses/{course_id}", json=changes)

    assert response.status_code == 400
    assert "must not be blank" in response.json()["error"]

    stored = logged_in.get(f"/api/courses/{course_id}").json()
    assert stored["course_code"] == "CS101"
    assert stored["title"] == COURSE["title"]
