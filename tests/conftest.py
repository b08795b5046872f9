import logging
from dataclasses import replace
from typing import Any, Dict, List, Tuple

import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
)

from jwtauth import (
    AlgorithmManager,
    AuditEvent,
    AuthSettings,
    DictConfigProvider,
    TokenService,
    load_settings,
)

SECRET = "test-secret-0123456789abcdef0123456789abcdef0123456789abcdef0123"
BASE_TIME = 1_700_000_000.0


class FakeClock:
    def __init__(self, start: float = BASE_TIME) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingAuditHook:
    def __init__(self) -> None:
        self.events: List[AuditEvent] = []

    def __call__(self, event: AuditEvent) -> None:
        self.events.append(event)

    def operations(self) -> List[Tuple[str, bool]]:
        return [(event.operation, event.success) for event in self.events]


@pytest.fixture()
def logger() -> logging.Logger:
    logger = logging.getLogger("jwtauth-tests")
    if not logger.handlers:
        logger.addHandler(logging.NullHandler())
    return logger


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def config_values() -> Dict[str, Any]:
    return {
        "jwt.secret": SECRET,
        "jwt.algorithm": "HS256",
        "jwt.issuer": "issuer",
        "jwt.audience": "audience",
    }


@pytest.fixture()
def provider(config_values) -> DictConfigProvider:
    return DictConfigProvider(config_values)


@pytest.fixture()
def settings(provider, logger) -> AuthSettings:
    return load_settings(provider, logger)


@pytest.fixture()
def audit() -> RecordingAuditHook:
    return RecordingAuditHook()


@pytest.fixture()
def make_service(provider, settings, logger, clock, audit):
    def factory(
        revocation_store=None, rate_limiter=None, audit_hook=None, **overrides
    ) -> TokenService:
        return TokenService(
            replace(settings, **overrides),
            AlgorithmManager(provider, logger, time_fn=clock),
            logger,
            revocation_store=revocation_store,
            rate_limiter=rate_limiter,
            audit_hook=audit_hook if audit_hook is not None else audit,
            time_fn=clock,
        )

    return factory


@pytest.fixture()
def service(make_service) -> TokenService:
    return make_service()


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture()
def rsa_key_files(tmp_path, rsa_private_key) -> Tuple[str, str]:
    private_path = tmp_path / "private.pem"
    private_path.write_bytes(
        rsa_private_key.private_bytes(Encoding.PEM, PrivateFormat.PKCS8, NoEncryption())
    )
    public_path = tmp_path / "public.pem"
    public_path.write_bytes(
        rsa_private_key.public_key().public_bytes(Encoding.PEM, PublicFormat.SubjectPublicKeyInfo)
    )
    return str(private_path), str(public_path)
