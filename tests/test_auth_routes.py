from datetime import timedelta

from app.models import Session, User, utcnow
from app.sessions import open_session

from conftest import PASSWORD, login, register, use_token


def test_health(client) -> None:
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["status"] == "running"


def test_register_returns_student_id(client) -> None:
    response = register(client)

    assert response.status_code == 201
    body = response.json()
    assert body["student_id"].startswith("STU")
    assert "password" not in response.text


def test_register_twice_is_rejected(client) -> None:
    register(client)
    response = register(client, name="Someone Else")

    assert response.status_code == 409
    assert response.json() == {"error": "Email already registered"}


def test_register_rejects_weak_password(client) -> None:
    response = register(client, password="short")

    assert response.status_code == 400
    assert response.json() == {"error": "Password must be at least 8 characters"}


def test_register_rejects_malformed_input(client) -> None:
    invalid_email = register(client, email="not-an-email")
    missing_name = client.post("/api/auth/register", json={"email": "ada@example.edu", "password": PASSWORD})

    assert invalid_email.status_code == 400
    assert "email" in invalid_email.json()["error"]
    assert missing_name.status_code == 400
    assert "name" in missing_name.json()["error"]


def test_login_round_trip(client, app) -> None:
    student_id = register(client).json()["student_id"]

    response = login(client)

    assert response.status_code == 200
    body = response.json()
    assert body["user"]["student_id"] == student_id
    assert body["user"]["email"] == "ada@example.edu"
    assert body["session_duration_seconds"] == 30 * 60
    assert body["idle_timeout_seconds"] == 5 * 60
    assert "token" not in body

    set_cookie = response.headers["set-cookie"]
    assert "auth_token=" in set_cookie
    assert "HttpOnly" in set_cookie
    assert "samesite=strict" in set_cookie.lower()

    claims = app.state.context.tokens.verify(response.cookies["auth_token"])
    assert claims["student_id"] == student_id
    assert claims["email"] == "ada@example.edu"

    me = client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.json()["student_id"] == student_id


def test_login_failures_are_identical(client) -> None:
    register(client)

    wrong_password = login(client, password="wrong-password")
    unknown_email = login(client, email="nobody@example.edu")

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json() == {"error": "Invalid email or password"}


def test_protected_route_without_cookie(client) -> None:
    response = client.get("/api/auth/me")

    assert response.status_code == 401
    assert response.json() == {"error": "No authentication token provided"}


def test_bearer_header_is_not_a_carrier(logged_in) -> None:
    token = logged_in.cookies["auth_token"]
    logged_in.cookies.clear()

    response = logged_in.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


def test_garbage_cookie_is_invalid_token(client) -> None:
    use_token(client, "garbage")

    response = client.get("/api/auth/me")

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid authentication token"}


def test_logout_is_final(logged_in) -> None:
    token = logged_in.cookies["auth_token"]

    response = logged_in.post("/api/auth/logout")

    assert response.status_code == 200
    assert "auth_token" not in logged_in.cookies

    use_token(logged_in, token)
    assert logged_in.get("/api/auth/me").status_code == 401
    assert logged_in.get("/api/courses").status_code == 401


def test_logout_without_session_is_ok(client) -> None:
    assert client.post("/api/auth/logout").status_code == 200


def test_logout_all_closes_every_session(client) -> None:
    register(client)
    first = login(client).cookies["auth_token"]
    second = login(client).cookies["auth_token"]

    response = client.post("/api/auth/logout-all")

    assert response.status_code == 200
    for token in (first, second):
        use_token(client, token)
        assert client.get("/api/auth/me").status_code == 401


def test_session_status(logged_in) -> None:
    response = logged_in.get("/api/auth/session")

    assert response.status_code == 200
    assert response.json()["active"] is True


def test_idle_session_expires_and_clears_cookie(logged_in, monkeypatch) -> None:
    later = utcnow() + timedelta(minutes=6)
    monkeypatch.setattr("app.sessions.utcnow", lambda: later)

    response = logged_in.get("/api/auth/me")

    assert response.status_code == 401
    assert response.json() == {"error": "Session expired. Please login again."}
    assert "auth_token" not in logged_in.cookies


def test_expired_token_deactivates_its_session(client, app) -> None:
    register(client)
    context = app.state.context
    db = context.session_factory()
    try:
        user = db.query(User).one()
        session = open_session(db, user, context.tokens, context.settings, now=utcnow() - timedelta(minutes=31))
        token, session_id = session.token, session.id
    finally:
        db.close()
    use_token(client, token)

    response = client.get("/api/auth/me")

    assert response.status_code == 401
    assert response.json() == {"error": "Session expired. Please login again."}
    db = context.session_factory()
    try:
        assert db.get(Session, session_id).is_active is False
    finally:
        db.close()
