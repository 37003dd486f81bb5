from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from conftest import RecordingEmailSender

from authledger.api import deps
from authledger.api.auth import password_router, router as auth_router
from authledger.api.errors import register_error_handlers
from authledger.api.users import router as users_router
from authledger.config import get_settings
from authledger.database import Base
from authledger.models import TokenRecord, User
from authledger.roles import Role
from authledger.services.token_service import TokenService
from authledger.services.token_signer import TokenSigner
from authledger.services.user_service import UserService


def _build_test_client():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    app = FastAPI()
    register_error_handlers(app)
    app.include_router(auth_router, prefix="/api")
    app.include_router(password_router, prefix="/api")
    app.include_router(users_router, prefix="/api")

    outbox = RecordingEmailSender()
    token_service = TokenService(TokenSigner.from_settings(get_settings()), outbox)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_token_service] = lambda: token_service
    return TestClient(app), TestingSessionLocal, outbox


def _register_and_login(client: TestClient, login: str, email: str, password: str = "TestPass123!"):
    register_response = client.post(
        "/api/auth/register",
        json={"login": login, "email": email, "password": password, "first_name": "Test", "age": 30},
    )
    assert register_response.status_code == 201

    login_response = client.post(
        "/api/auth/login",
        json={"login": login, "password": password},
    )
    assert login_response.status_code == 200
    return login_response.json()


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def _make_admin(session_local, login: str) -> None:
    db = session_local()
    try:
        user = db.query(User).filter(User.login_normalized == login).one()
        users = UserService(TokenService(TokenSigner.from_settings(get_settings()), RecordingEmailSender()))
        users.grant_role(db, user.id, Role.ADMIN)
    finally:
        db.close()


def test_login_returns_token_pair():
    client, _, _ = _build_test_client()

    data = _register_and_login(client, "alpha", "alpha@example.com")

    assert data["access_token"]
    assert data["refresh_token"]
    assert data["token_type"] == "bearer"
    assert data["access_expires_at"] < data["refresh_expires_at"]


def test_register_duplicate_login_conflicts():
    client, _, _ = _build_test_client()
    _register_and_login(client, "alpha", "alpha@example.com")

    response = client.post(
        "/api/auth/register",
        json={"login": "ALPHA", "email": "other@example.com", "password": "TestPass123!"},
    )

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "conflict"


def test_bad_password_and_unknown_login_look_the_same():
    client, _, _ = _build_test_client()
    _register_and_login(client, "alpha", "alpha@example.com")

    wrong_password = client.post("/api/auth/login", json={"login": "alpha", "password": "nope-nope"})
    unknown_login = client.post("/api/auth/login", json={"login": "ghost", "password": "nope-nope"})

    assert wrong_password.status_code == unknown_login.status_code == 401
    assert wrong_password.json() == unknown_login.json()


def test_refresh_rotates_pair_and_rejects_replay():
    client, _, _ = _build_test_client()
    tokens = _register_and_login(client, "beta", "beta@example.com")

    refresh_response = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert refresh_response.status_code == 200
    assert refresh_response.json()["refresh_token"] != tokens["refresh_token"]

    replay_response = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert replay_response.status_code == 401
    assert replay_response.json()["error"]["code"] == "invalid_token"


def test_logout_revokes_all_tokens():
    client, testing_session_local, _ = _build_test_client()

    first = _register_and_login(client, "gamma", "gamma@example.com")
    second = client.post("/api/auth/login", json={"login": "gamma", "password": "TestPass123!"}).json()

    logout_response = client.post("/api/auth/logout", headers=_bearer(first["access_token"]))
    assert logout_response.status_code == 200

    refresh_after_logout = client.post("/api/auth/refresh", json={"refresh_token": second["refresh_token"]})
    assert refresh_after_logout.status_code == 401

    # Revoked access tokens no longer authorize calls
    again = client.post("/api/auth/logout", headers=_bearer(second["access_token"]))
    assert again.status_code == 401

    db = testing_session_local()
    try:
        active = db.query(TokenRecord).filter(TokenRecord.refresh_active.is_(True)).count()
        assert active == 0
    finally:
        db.close()


def test_protected_endpoints_need_an_access_token():
    client, _, _ = _build_test_client()
    tokens = _register_and_login(client, "delta", "delta@example.com")

    assert client.patch("/api/users/me", json={"first_name": "D", "last_name": "E"}).status_code == 401
    assert client.patch(
        "/api/users/me",
        json={"first_name": "D", "last_name": "E"},
        headers=_bearer(tokens["refresh_token"]),
    ).status_code == 401

    response = client.patch(
        "/api/users/me",
        json={"first_name": "Dee", "last_name": "Elta"},
        headers=_bearer(tokens["access_token"]),
    )
    assert response.status_code == 200
    assert response.json()["first_name"] == "Dee"


def test_password_recovery_flow():
    client, _, outbox = _build_test_client()
    _register_and_login(client, "eps", "eps@example.com")

    unknown = client.post("/api/password/recovery", json={"email": "ghost@example.com"})
    known = client.post("/api/password/recovery", json={"email": "EPS@example.com"})
    assert unknown.status_code == known.status_code == 200
    assert unknown.json() == known.json()
    assert len(outbox.sent) == 1

    _, token = outbox.sent[0]
    redeem = client.post("/api/password/recovery/redeem", json={"token": token, "new_password": "Brand-new-1"})
    assert redeem.status_code == 200
    reuse = client.post("/api/password/recovery/redeem", json={"token": token, "new_password": "Other-new-2"})
    assert reuse.status_code == 401

    login = client.post("/api/auth/login", json={"login": "eps", "password": "Brand-new-1"})
    assert login.status_code == 200


def test_change_password_requires_current_password():
    client, _, _ = _build_test_client()
    tokens = _register_and_login(client, "zeta", "zeta@example.com")

    wrong = client.post(
        "/api/password",
        json={"current_password": "not-it-at-all", "new_password": "Changed-pass-1"},
        headers=_bearer(tokens["access_token"]),
    )
    assert wrong.status_code == 401

    ok = client.post(
        "/api/password",
        json={"current_password": "TestPass123!", "new_password": "Changed-pass-1"},
        headers=_bearer(tokens["access_token"]),
    )
    assert ok.status_code == 200


def test_change_password_acts_on_the_caller_only():
    client, _, _ = _build_test_client()
    caller = _register_and_login(client, "theta", "theta@example.com")
    _register_and_login(client, "iota", "iota@example.com")

    response = client.post(
        "/api/password",
        json={"login": "iota", "current_password": "TestPass123!", "new_password": "Changed-pass-1"},
        headers=_bearer(caller["access_token"]),
    )
    assert response.status_code == 200

    assert client.post("/api/auth/login", json={"login": "iota", "password": "TestPass123!"}).status_code == 200
    assert client.post("/api/auth/login", json={"login": "theta", "password": "Changed-pass-1"}).status_code == 200


def test_admin_endpoints_are_role_gated():
    client, testing_session_local, _ = _build_test_client()
    user_tokens = _register_and_login(client, "eta", "eta@example.com")
    _register_and_login(client, "root", "root@example.com")

    forbidden = client.get("/api/users", headers=_bearer(user_tokens["access_token"]))
    assert forbidden.status_code == 403

    _make_admin(testing_session_local, "root")
    admin_tokens = client.post("/api/auth/login", json={"login": "root", "password": "TestPass123!"}).json()

    listing = client.get("/api/users", headers=_bearer(admin_tokens["access_token"]))
    assert listing.status_code == 200
    assert {user["login"] for user in listing.json()} == {"eta", "root"}

    eta_id = next(user["id"] for user in listing.json() if user["login"] == "eta")
    granted = client.post(f"/api/users/{eta_id}/roles/admin", headers=_bearer(admin_tokens["access_token"]))
    assert granted.status_code == 200

    # The role change revoked eta's tokens
    stale = client.patch(
        "/api/users/me",
        json={"first_name": "E", "last_name": "T"},
        headers=_bearer(user_tokens["access_token"]),
    )
    assert stale.status_code == 401

    unknown_role = client.post(f"/api/users/{eta_id}/roles/wizard", headers=_bearer(admin_tokens["access_token"]))
    assert unknown_role.status_code == 404

    deleted = client.delete("/api/users/eta", headers=_bearer(admin_tokens["access_token"]))
    assert deleted.status_code == 204
