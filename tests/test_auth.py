from conftest import _auth_headers, _register


def test_register_student_returns_token_and_profile(client):
    r = client.post(
        "/v1/auth/register",
        json={
            "email": "kid@example.com",
            "password": "password123",
            "role": "STUDENT",
            "profile": {"name": "Kid", "preferred_subjects": ["Math", " math ", "", "Art"]},
        },
    )
    assert r.status_code == 201, r.text
    data = r.json()
    assert data["token_type"] == "bearer"
    assert data["user"]["role"] == "STUDENT"
    assert data["user"]["profile"]["preferred_subjects"] == ["Math", "Art"]


def test_register_admin_is_rejected(client):
    r = client.post(
        "/v1/auth/register",
        json={"email": "boss@example.com", "password": "password123", "role": "ADMIN"},
    )
    assert r.status_code == 422


def test_register_duplicate_email_is_409(client):
    _register(client, "TUTOR", email="dup@example.com")
    r = client.post(
        "/v1/auth/register",
        json={"email": "DUP@example.com", "password": "password123", "role": "STUDENT"},
    )
    assert r.status_code == 409
    assert r.json()["detail"] == "EMAIL_TAKEN"


def test_register_bad_profile_is_422(client):
    r = client.post(
        "/v1/auth/register",
        json={
            "email": "budget@example.com",
            "password": "password123",
            "role": "STUDENT",
            "profile": {"budget_min_cents": 5000, "budget_max_cents": 1000},
        },
    )
    assert r.status_code == 422


def test_login_roundtrip(client):
    user = _register(client, "STUDENT", email="login@example.com")
    r = client.post("/v1/auth/login", json={"email": user.email, "password": user.password})
    assert r.status_code == 200, r.text
    token = r.json()["access_token"]

    me = client.get("/v1/profiles/me", headers=_auth_headers(token))
    assert me.status_code == 200
    assert me.json()["email"] == "login@example.com"


def test_login_wrong_password_is_401(client):
    user = _register(client, "STUDENT")
    r = client.post("/v1/auth/login", json={"email": user.email, "password": "wrong-password"})
    assert r.status_code == 401
    assert r.json()["detail"] == "INVALID_CREDENTIALS"


def test_login_unknown_email_is_401(client):
    r = client.post("/v1/auth/login", json={"email": "ghost@example.com", "password": "password123"})
    assert r.status_code == 401


def test_update_own_tutor_profile(client, tutor):
    r = client.put(
        "/v1/profiles/tutor",
        json={
            "name": "Tara T.",
            "subjects_taught": ["Chemistry"],
            "experience_years": 5,
            "default_hourly_rate_cents": 5500,
            "availability": {"mon": ["16:00-18:00"]},
        },
        headers=_auth_headers(tutor.token),
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["subjects_taught"] == ["Chemistry"]
    assert body["availability"] == {"mon": ["16:00-18:00"]}


def test_student_cannot_update_tutor_profile(client, student):
    r = client.put("/v1/profiles/tutor", json={"name": "x"}, headers=_auth_headers(student.token))
    assert r.status_code == 403
