import threading

import jwt
import pytest

from jwtauth import Reason


def test_refresh_issues_new_pair(service, clock) -> None:
    tokens = service.issue("u1", "10.0.0.1")
    clock.advance(5)

    result = service.refresh(tokens.refresh_token, "10.0.0.7")

    assert result.valid is True
    assert result.reason is Reason.VALID
    assert result.subject == "u1"
    assert result.tokens is not None
    assert result.tokens.access_token != tokens.access_token

    access = jwt.decode(result.tokens.access_token, options={"verify_signature": False})
    assert access["clientIp"] == "10.0.0.7"
    assert access["iat"] == int(clock())
    assert service.validate(result.tokens.access_token).subject == "u1"


def test_refresh_rejects_access_token(service) -> None:
    tokens = service.issue("u1")

    result = service.refresh(tokens.access_token)

    assert result.valid is False
    assert result.reason is Reason.INVALID_REFRESH_TYPE
    assert result.reason == "invalid token type for refresh"
    assert result.subject == "u1"
    assert result.tokens is None


@pytest.mark.parametrize("token", ["", "garbage"])
def test_refresh_with_invalid_token(service, token) -> None:
    result = service.refresh(token)

    assert result.valid is False
    assert result.reason is Reason.INVALID
    assert result.tokens is None


def test_refresh_with_expired_token(service, clock) -> None:
    tokens = service.issue("u1")
    clock.advance(30 * 24 * 3600 + 1)

    assert service.refresh(tokens.refresh_token).reason is Reason.EXPIRED


def test_refresh_with_revoked_token(service) -> None:
    tokens = service.issue("u1")
    service.revoke(tokens.refresh_token)

    assert service.refresh(tokens.refresh_token).reason is Reason.REVOKED


def test_refresh_checks_ip_binding(make_service) -> None:
    service = make_service(ip_validation_enabled=True)
    tokens = service.issue("u1", "10.0.0.1")

    result = service.refresh(tokens.refresh_token, "10.0.0.2")

    assert result.reason is Reason.IP_MISMATCH
    assert result.subject == "u1"


def test_refresh_token_reuse_without_rotation(service) -> None:
    tokens = service.issue("u1")

    assert service.refresh(tokens.refresh_token).valid is True
    assert service.refresh(tokens.refresh_token).valid is True


def test_refresh_rotation_revokes_presented_token(make_service, audit) -> None:
    service = make_service(refresh_rotation_enabled=True)
    tokens = service.issue("u1")

    first = service.refresh(tokens.refresh_token)
    second = service.refresh(tokens.refresh_token)

    assert first.valid is True
    assert second.valid is False
    assert second.reason is Reason.REVOKED
    assert service.refresh(first.tokens.refresh_token).valid is True
    assert ("revoke", True) in audit.operations()


def test_refresh_rotation_allows_a_single_concurrent_winner(make_service) -> None:
    service = make_service(refresh_rotation_enabled=True)
    tokens = service.issue("u1")
    barrier = threading.Barrier(8)
    results = []
    lock = threading.Lock()

    def worker() -> None:
        barrier.wait()
        result = service.refresh(tokens.refresh_token)
        with lock:
            results.append(result)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sum(result.valid for result in results) == 1
    assert all(result.reason is Reason.REVOKED for result in results if not result.valid)


def test_refresh_audit_events(service, audit) -> None:
    tokens = service.issue("u1")
    audit.events.clear()

    service.refresh(tokens.refresh_token)
    service.refresh(tokens.access_token)

    assert audit.operations() == [
        ("validate", True),
        ("issue", True),
        ("refresh", True),
        ("validate", True),
        ("refresh", False),
    ]
