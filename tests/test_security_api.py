"""Güvenlik API: deneme kaydı, kilit durumu, reset, politika, geçmiş, uyarılar, cihazlar."""
import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_lockout_engine
from app.core.config import settings
from app.core.errors import LockoutDecisionConflict, StoreUnavailable
from app.main import app

U1 = "u1@example.com"


def _attempt(client: TestClient, success: bool, subject: str = U1, **extra):
    body = {"subjectKey": subject, "success": success, "deviceFingerprint": "fp-1", **extra}
    return client.post("/security/login-attempts", json=body)


def _status(client: TestClient, headers: dict, subject: str = U1):
    return client.get("/security/lockout-status", params={"subjectKey": subject}, headers=headers)


@pytest.fixture
def owner(auth_headers):
    return auth_headers(U1)


@pytest.fixture
def strict_policy(client: TestClient, owner):
    r = client.put(
        "/security/policy",
        json={"maxFailedAttempts": 3, "lockoutDurationMinutes": 15, "windowMinutes": 60},
        headers=owner,
    )
    assert r.status_code == 200


def test_record_attempt_returns_camel_case_decision(client: TestClient):
    r = _attempt(client, False, failureReason="invalid_password", deviceInfo={"os": "android"})
    assert r.status_code == 200
    assert r.json() == {"shouldLockout": False, "lockoutDurationMinutes": 0, "failedAttemptsCount": 1}


def test_lockout_then_success_unlocks(client: TestClient, clock, owner, strict_policy):
    for _ in range(2):
        assert _attempt(client, False).json()["shouldLockout"] is False
        clock.advance(minutes=2)
    r = _attempt(client, False)
    assert r.json() == {"shouldLockout": True, "lockoutDurationMinutes": 15, "failedAttemptsCount": 3}

    s = _status(client, owner).json()
    assert s["isLocked"] is True
    assert s["minutesRemaining"] == 15
    assert s["failedAttempts"] == 3
    assert s["requiresReset"] is False
    assert s["lockedUntil"].startswith("2025-04-05T12:19:00")

    clock.advance(minutes=1)
    assert _attempt(client, True).json()["shouldLockout"] is False
    assert _status(client, owner).json() == {
        "isLocked": False,
        "lockedUntil": None,
        "failedAttempts": 0,
        "minutesRemaining": 0,
        "requiresReset": False,
    }


def test_subject_key_is_normalized(client: TestClient, owner, strict_policy):
    for subject in ("U1@Example.com", " u1@example.com ", "u1@EXAMPLE.COM"):
        _attempt(client, False, subject=subject)
    assert _status(client, owner, "U1@example.com").json()["isLocked"] is True


@pytest.mark.parametrize("subject", ["", "   ", "has space@example.com", "x" * 400])
def test_invalid_subject_rejected(client: TestClient, subject):
    r = _attempt(client, False, subject=subject)
    assert r.status_code == 422
    assert r.json()["status_code"] == 422


def test_missing_subject_is_validation_error(client: TestClient):
    r = client.post("/security/login-attempts", json={"success": False})
    assert r.status_code == 422


def test_lockout_status_requires_token(client: TestClient):
    r = client.get("/security/lockout-status", params={"subjectKey": "victim@example.com"})
    assert r.status_code == 401


def test_expired_token_rejected(client: TestClient, auth_headers):
    r = _status(client, auth_headers(U1, expires_minutes=-5))
    assert r.status_code == 401


def test_failure_count_hidden_from_other_callers(client: TestClient, auth_headers, owner, strict_policy):
    for _ in range(3):
        _attempt(client, False)

    other = _status(client, auth_headers("someone@example.com")).json()
    assert other["isLocked"] is True
    assert other["minutesRemaining"] == 15
    assert other["failedAttempts"] == 0

    assert _status(client, owner).json()["failedAttempts"] == 3
    admin = auth_headers("ops@example.com", role="admin")
    assert _status(client, admin).json()["failedAttempts"] == 3


def test_login_attempts_rate_limited_per_ip(client: TestClient, owner, monkeypatch):
    monkeypatch.setattr(settings, "login_rate_limit_max_requests", 3)
    codes = [_attempt(client, False, subject=f"user{i}@example.com").status_code for i in range(4)]
    assert codes == [200, 200, 200, 429]
    assert _status(client, owner).status_code == 200


def test_rate_limited_request_is_not_recorded(client: TestClient, owner, monkeypatch):
    monkeypatch.setattr(settings, "login_rate_limit_max_requests", 1)
    _attempt(client, False)
    assert _attempt(client, False).status_code == 429
    history = client.get("/security/attempts", headers=owner).json()
    assert len(history) == 1


def test_status_rate_limited(client: TestClient, owner, monkeypatch, clock):
    monkeypatch.setattr(settings, "status_rate_limit_max_requests", 2)
    assert [_status(client, owner).status_code for _ in range(3)] == [200, 200, 429]
    clock.advance(minutes=2)
    assert _status(client, owner).status_code == 200


def test_reset_requires_authentication(client: TestClient):
    r = client.post("/security/lockout/reset", json={"subjectKey": U1})
    assert r.status_code == 401


def test_reset_by_other_user_forbidden(client: TestClient, auth_headers, owner, strict_policy):
    for _ in range(3):
        _attempt(client, False)
    r = client.post("/security/lockout/reset", json={"subjectKey": U1}, headers=auth_headers("mallory@example.com"))
    assert r.status_code == 403
    assert _status(client, owner).json()["isLocked"] is True


@pytest.mark.parametrize("caller,role", [(U1, None), ("ops@example.com", "admin")])
def test_reset_by_owner_or_admin(client: TestClient, auth_headers, owner, strict_policy, caller, role):
    for _ in range(3):
        _attempt(client, False)
    r = client.post("/security/lockout/reset", json={"subjectKey": U1}, headers=auth_headers(caller, role=role))
    assert r.status_code == 200
    assert r.json() == {"success": True}
    assert _status(client, owner).json()["isLocked"] is False


def test_invalid_token_rejected(client: TestClient):
    r = client.get("/security/policy", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


def test_policy_defaults_and_update(client: TestClient, owner):
    r = client.get("/security/policy", headers=owner)
    assert r.json() == {"maxFailedAttempts": 5, "lockoutDurationMinutes": 15, "windowMinutes": 60}

    r = client.put("/security/policy", json={"lockoutDurationMinutes": 30}, headers=owner)
    assert r.json() == {"maxFailedAttempts": 5, "lockoutDurationMinutes": 30, "windowMinutes": 60}

    r = client.put("/security/policy", json={"maxFailedAttempts": 0}, headers=owner)
    assert r.status_code == 422


def test_store_unavailable_maps_to_503(client: TestClient):
    class DownEngine:
        def record_attempt_and_evaluate(self, *args, **kwargs):
            raise StoreUnavailable()

    app.dependency_overrides[get_lockout_engine] = lambda: DownEngine()
    r = _attempt(client, False)
    assert r.status_code == 503
    assert "tekrar sorgulayın" in r.json()["error"]


def test_decision_conflict_maps_to_409(client: TestClient):
    class ConflictEngine:
        def record_attempt_and_evaluate(self, *args, **kwargs):
            raise LockoutDecisionConflict()

    app.dependency_overrides[get_lockout_engine] = lambda: ConflictEngine()
    assert _attempt(client, False).status_code == 409


def test_history_alerts_and_report(client: TestClient, owner, strict_policy):
    _attempt(client, True, deviceFingerprint="phone")
    for _ in range(3):
        _attempt(client, False, deviceFingerprint="laptop")

    history = client.get("/security/attempts", headers=owner).json()
    assert len(history) == 4
    assert {"id", "createdAt", "success", "deviceFingerprint"} <= set(history[0])

    # Aynı anda 3 başarısız deneme: kilit + art arda başarısızlık + hızlı deneme
    alerts = client.get("/security/alerts", headers=owner).json()
    assert [a["alertType"] for a in alerts] == ["suspicious_login", "multiple_failures", "account_locked"]

    report = client.get("/security/report", headers=owner).json()
    assert report["totalAttempts"] == 4
    assert report["failedAttempts"] == 3
    assert report["successfulAttempts"] == 1
    assert report["uniqueDevices"] == 2
    assert report["unresolvedAlerts"] == 3
    assert report["lockout"]["isLocked"] is True

    locked_alert = alerts[-1]
    r = client.post(f"/security/alerts/{locked_alert['id']}/resolve", headers=owner)
    assert r.json()["resolved"] is True
    open_types = [a["alertType"] for a in client.get("/security/alerts", headers=owner).json()]
    assert open_types == ["suspicious_login", "multiple_failures"]
    assert len(client.get("/security/alerts", params={"includeResolved": True}, headers=owner).json()) == 3


def test_alert_of_other_user_not_resolvable(client: TestClient, auth_headers, owner, strict_policy):
    for _ in range(3):
        _attempt(client, False)
    alert_id = client.get("/security/alerts", headers=owner).json()[0]["id"]
    r = client.post(f"/security/alerts/{alert_id}/resolve", headers=auth_headers("mallory@example.com"))
    assert r.status_code == 404


def test_devices_registered_on_success_and_trusted(client: TestClient, owner):
    _attempt(client, True, deviceFingerprint="phone", deviceInfo={"name": "Pixel 8", "osName": "Android"})
    _attempt(client, False, deviceFingerprint="unknown-laptop")

    devices = client.get("/security/devices", headers=owner).json()
    assert len(devices) == 1
    assert devices[0]["deviceFingerprint"] == "phone"
    assert devices[0]["deviceName"] == "Pixel 8"
    assert devices[0]["osName"] == "Android"
    assert devices[0]["trusted"] is False
    assert client.get("/security/alerts", headers=owner).json() == []

    _attempt(client, True, deviceFingerprint="tablet", deviceInfo={"name": "iPad"})
    alerts = client.get("/security/alerts", headers=owner).json()
    assert [a["alertType"] for a in alerts] == ["new_device"]
    assert "iPad" in alerts[0]["message"]

    r = client.post("/security/devices/trust", json={"deviceFingerprint": "phone"}, headers=owner)
    assert r.status_code == 200
    assert r.json()["trusted"] is True

    r = client.post("/security/devices/trust", json={"deviceFingerprint": "missing"}, headers=owner)
    assert r.status_code == 404


def test_devices_require_token(client: TestClient):
    assert client.get("/security/devices").status_code == 401
