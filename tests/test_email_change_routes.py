import re

from app.config import settings
from app.core import signed_token
from app.core.dependencies import get_current_user
from app.main import app
from tests.conftest import SECRET


class DuplicateKeyError(Exception):
    code = "23505"


def _token(sub="user-42", new_email="new@example.com", ttl=600, jti="nonce-1", now=None) -> str:
    return signed_token.issue(sub, {"newEmail": new_email, "jti": jti}, ttl, SECRET, now=now)


def test_request_sends_confirmation(client, supabase) -> None:
    response = client.post("/api/v1/email-change/request", json={"newEmail": "New@Example.com"})
    assert response.status_code == 200
    assert response.json() == {"success": True}

    body = supabase.functions.invoke.call_args.kwargs["invoke_options"]["body"]
    assert body["to"] == "old@example.com"
    token = re.search(r"token=([A-Za-z0-9_.-]+)", body["content"]).group(1)
    assert signed_token.verify(token, SECRET)["newEmail"] == "new@example.com"


def test_request_validation_errors(client, supabase) -> None:
    response = client.post("/api/v1/email-change/request", json={"newEmail": "nope"})
    assert response.status_code == 400
    assert response.json() == {"detail": "Valid new email is required"}

    response = client.post("/api/v1/email-change/request", json={})
    assert response.status_code == 400

    response = client.post("/api/v1/email-change/request", json={"newEmail": "Old@Example.com"})
    assert response.status_code == 400
    assert response.json() == {"detail": "This is already your current email"}
    supabase.functions.invoke.assert_not_called()


def test_verify_returns_new_email(client) -> None:
    response = client.post("/api/v1/email-change/verify", json={"token": _token()})
    assert response.status_code == 200
    assert response.json() == {"success": True, "newEmail": "new@example.com"}


def test_verify_hides_rejection_reason(client) -> None:
    forged = signed_token.issue("user-42", {"newEmail": "x@example.com"}, 600, b"other-secret")
    expired = _token(ttl=1, now=1_000_000)
    foreign = _token(sub="user-7")
    bodies = []
    for token in (forged, expired, foreign, "a.b.c", "x" * 10_000):
        response = client.post("/api/v1/email-change/verify", json={"token": token})
        assert response.status_code == 400
        bodies.append(response.json())
    assert all(body == {"detail": "Invalid or expired link"} for body in bodies)


def test_verify_requires_token(client) -> None:
    response = client.post("/api/v1/email-change/verify", json={"token": "  "})
    assert response.status_code == 400
    assert response.json() == {"detail": "Token is required"}


def test_confirm_applies_change_once(client, supabase, admin_auth) -> None:
    token = _token()
    response = client.post("/api/v1/email-change/confirm", json={"token": token})
    assert response.status_code == 200
    assert response.json() == {"success": True, "newEmail": "new@example.com"}
    admin_auth.generate_email_change_link.assert_called_once()
    assert admin_auth.generate_email_change_link.call_args.args == ("old@example.com", "new@example.com")
    body = supabase.functions.invoke.call_args.kwargs["invoke_options"]["body"]
    assert body["to"] == "new@example.com"
    assert body["emailType"] == "EmailChangeConfirmNew"

    supabase.table.return_value.insert.return_value.execute.side_effect = DuplicateKeyError("duplicate key")
    response = client.post("/api/v1/email-change/confirm", json={"token": token})
    assert response.status_code == 400
    assert response.json() == {"detail": "Invalid or expired link"}
    assert admin_auth.generate_email_change_link.call_count == 1


def test_missing_secret_is_server_error(client, monkeypatch) -> None:
    from app.core.dependencies import get_email_change_secret

    app.dependency_overrides.pop(get_email_change_secret)
    monkeypatch.setattr(settings, "email_change_secret", None)
    response = client.post("/api/v1/email-change/verify", json={"token": _token()})
    assert response.status_code == 500
    assert response.json() == {"detail": "Server configuration error"}


def test_requires_bearer_token(client) -> None:
    app.dependency_overrides.pop(get_current_user)
    response = client.post("/api/v1/email-change/verify", json={"token": _token()})
    assert response.status_code in (401, 403)


def test_security_headers_and_health(client) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["Cache-Control"] == "no-store"


def test_ready_depends_on_secret(client, monkeypatch) -> None:
    monkeypatch.setattr(settings, "email_change_secret", None)
    assert client.get("/ready").status_code == 503


def test_me_returns_current_user(client) -> None:
    response = client.get("/api/v1/auth/me")
    assert response.status_code == 200
    assert response.json()["id"] == "user-42"
    assert response.json()["email"] == "old@example.com"
