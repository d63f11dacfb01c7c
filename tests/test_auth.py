from rewear.models import User, UserRole


def _register(client, **overrides):
    payload = {
        "name": "Priya Singh",
        "email": "priya@example.com",
        "phone": "+91-9876500001",
        "password": "secret123",
    }
    payload.update(overrides)
    return client.post("/api/auth/register", json=payload)


def test_register_returns_token_and_user(client):
    res = _register(client)
    assert res.status_code == 201

    body = res.json()
    assert body["success"] is True
    assert body["data"]["token"]
    user = body["data"]["user"]
    assert user["email"] == "priya@example.com"
    assert user["role"] == "user"
    assert user["points"] == 0
    assert user["levelInfo"] == {"level": "Beginner", "nextLevel": "Explorer", "pointsNeeded": 100}


def test_register_with_admin_email_gets_admin_role(client, db):
    res = _register(client, email="shop.admin@example.com")
    assert res.status_code == 201
    assert res.json()["data"]["user"]["role"] == "admin"

    user = db.query(User).filter_by(email="shop.admin@example.com").one()
    assert user.role == UserRole.admin


def test_register_duplicate_email_or_phone(client):
    assert _register(client).status_code == 201

    res = _register(client, phone="+91-9876500002")
    assert res.status_code == 400
    assert res.json()["success"] is False

    res = _register(client, email="other@example.com")
    assert res.status_code == 400


def test_register_validation_errors_use_400(client):
    res = _register(client, name="P", password="123")
    assert res.status_code == 400

    body = res.json()
    assert body["success"] is False
    assert body["message"] == "Validation failed"
    fields = {e["field"] for e in body["errors"]}
    assert {"name", "password"} <= fields


def test_login(client, make_user):
    user = make_user(email="arjun@example.com")

    res = client.post("/api/auth/login", json={"email": "arjun@example.com", "password": "secret123"})
    assert res.status_code == 200
    token = res.json()["data"]["token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["data"]["user"]["id"] == str(user.id)


def test_login_rejects_bad_password_and_inactive_user(client, make_user):
    make_user(email="arjun@example.com")
    make_user(email="gone@example.com", is_active=False)

    res = client.post("/api/auth/login", json={"email": "arjun@example.com", "password": "wrong-pass"})
    assert res.status_code == 401
    assert res.json()["message"] == "Invalid credentials"

    res = client.post("/api/auth/login", json={"email": "gone@example.com", "password": "secret123"})
    assert res.status_code == 401


def test_token_from_cookie(client, make_user, auth):
    user = make_user()
    token = auth(user)["Authorization"].split(" ", 1)[1]

    client.cookies.set("access_token", token)
    res = client.get("/api/auth/me")
    assert res.status_code == 200


def test_protected_route_without_token(client):
    res = client.get("/api/auth/me")
    assert res.status_code == 401
    assert res.json() == {
        "success": False,
        "message": "Access denied. No token provided.",
        "error": "Access denied. No token provided.",
    }


def test_invalid_token(client):
    res = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert res.status_code == 401
    assert res.json()["message"] == "Invalid token."


def test_update_profile_merges_nested_fields(client, make_user, auth, db):
    user = make_user()

    res = client.put(
        "/api/auth/profile",
        headers=auth(user),
        json={
            "bio": "Slow fashion fan",
            "address": {"city": "Pune", "postalCode": "411001"},
            "preferences": {"notifications": {"sms": True}},
        },
    )
    assert res.status_code == 200

    data = res.json()["data"]["user"]
    assert data["bio"] == "Slow fashion fan"
    assert data["address"]["city"] == "Pune"
    assert data["address"]["postalCode"] == "411001"
    assert data["address"]["country"] == "India"
    assert data["preferences"]["notifications"] == {"email": True, "push": True, "sms": True}


def test_update_profile_phone_taken(client, make_user, auth):
    make_user(phone="+91-9000000999")
    user = make_user()

    res = client.put("/api/auth/profile", headers=auth(user), json={"phone": "+91-9000000999"})
    assert res.status_code == 400


def test_change_password(client, make_user, auth):
    user = make_user(email="rahul@example.com")

    res = client.put(
        "/api/auth/password",
        headers=auth(user),
        json={"currentPassword": "wrong", "newPassword": "newsecret"},
    )
    assert res.status_code == 400

    res = client.put(
        "/api/auth/password",
        headers=auth(user),
        json={"currentPassword": "secret123", "newPassword": "newsecret"},
    )
    assert res.status_code == 200

    res = client.post("/api/auth/login", json={"email": "rahul@example.com", "password": "newsecret"})
    assert res.status_code == 200


def test_avatar_upload(client, make_user, auth, _external_services):
    user = make_user()

    res = client.post(
        "/api/auth/avatar",
        headers=auth(user),
        files={"file": ("me.png", b"\x89PNG fake", "image/png")},
    )
    assert res.status_code == 200
    assert res.json()["data"]["avatar"].startswith("https://res.cloudinary.com/test/rewear/avatars/")
    assert _external_services[0]["folder"] == "rewear/avatars"


def test_avatar_rejects_non_images(client, make_user, auth):
    user = make_user()
    res = client.post(
        "/api/auth/avatar",
        headers=auth(user),
        files={"file": ("notes.txt", b"hello", "text/plain")},
    )
    assert res.status_code == 400


def test_public_profile_hides_private_fields(client, make_user):
    user = make_user(name="Emma Johnson")

    res = client.get(f"/api/auth/users/{user.id}")
    assert res.status_code == 200
    data = res.json()["data"]["user"]
    assert data["name"] == "Emma Johnson"
    assert "email" not in data
    assert "phone" not in data
