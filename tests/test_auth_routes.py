import pytest

from conftest import PASSWORD
from perfect_slate import db
from perfect_slate.models import User


@pytest.fixture
def alice(app, make_user):
    with app.app_context():
        return make_user("alice").id


def _registration(username="carol", password="Secret123", confirm=None):
    return {
        "username": username,
        "email": f"{username}@example.com",
        "password": password,
        "password_confirm": confirm or password,
    }


def test_register_creates_user_profile_and_token(client):
    response = client.post("/auth/register", json=_registration())

    assert response.status_code == 201
    data = response.get_json()
    assert data["user"]["username"] == "carol"
    assert data["profile"]["token_balance"] == 1
    assert data["token"]["token_type"] == "Bearer"
    assert data["token"]["access_token"]

    # Registration signs the user in
    assert client.get("/auth/me").status_code == 200


def test_register_rejects_duplicate_username(client, alice):
    response = client.post("/auth/register", json=_registration(username="alice"))

    assert response.status_code == 400
    assert "username" in response.get_json()["errors"]


@pytest.mark.parametrize(
    "password, confirm",
    [("short1A", None), ("alllowercase1", None), ("Secret123", "Secret124")],
)
def test_register_validates_password(client, password, confirm):
    response = client.post(
        "/auth/register", json=_registration(password=password, confirm=confirm)
    )

    assert response.status_code == 400
    errors = response.get_json()["errors"]
    assert "password" in errors or "password_confirm" in errors


def test_login_and_logout(client, alice, login):
    data = login()

    assert data["user"]["id"] == alice
    assert client.get("/auth/me").get_json()["user"]["username"] == "alice"

    assert client.post("/auth/logout").status_code == 200
    assert client.get("/auth/me").status_code == 401


def test_login_with_bad_password(client, alice):
    response = client.post(
        "/auth/login", json={"username": "alice", "password": "Wrong1234"}
    )

    assert response.status_code == 401
    assert response.get_json()["success"] is False


def test_inactive_user_cannot_login(app, client, alice):
    with app.app_context():
        db.session.get(User, alice).is_active = False
        db.session.commit()

    response = client.post("/auth/login", json={"username": "alice", "password": PASSWORD})

    assert response.status_code == 403


def test_bearer_token_authenticates(app, alice):
    client = app.test_client()
    token = client.post(
        "/auth/token", json={"username": "alice", "password": PASSWORD}
    ).get_json()["access_token"]

    # A fresh client has no session cookie, only the header
    api_client = app.test_client()
    response = api_client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.get_json()["user"]["id"] == alice


def test_forged_bearer_token_is_rejected(client, alice):
    response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})

    assert response.status_code == 401


def test_token_for_session_user(client, alice, login):
    login()

    response = client.post("/auth/token")

    assert response.status_code == 200
    assert response.get_json()["token_type"] == "Bearer"


def test_change_password(client, alice, login):
    login()

    response = client.post(
        "/auth/change-password",
        json={
            "current_password": PASSWORD,
            "new_password": "NewSecret456",
            "confirm_password": "NewSecret456",
        },
    )
    assert response.status_code == 200

    client.post("/auth/logout")
    login(password="NewSecret456")


def test_change_password_checks_current(client, alice, login):
    login()

    response = client.post(
        "/auth/change-password",
        json={
            "current_password": "Wrong1234",
            "new_password": "NewSecret456",
            "confirm_password": "NewSecret456",
        },
    )

    assert response.status_code == 400


def test_csrf_token_endpoint(client):
    assert "csrf_token" in client.get("/auth/csrf-token").get_json()
