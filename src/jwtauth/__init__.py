"""Core package for JWT access/refresh token issuance, validation and revocation."""

from jwtauth.algorithms import (
    Algorithm,
    AlgorithmManager,
    RefreshingCache,
    ResolvedAlgorithm,
    load_rsa_private_key,
    load_rsa_public_key,
)
from jwtauth.audit import AuditEvent, AuditHook, BackgroundAuditHook, LoggingAuditHook
from jwtauth.codec import TokenClaims, TokenType, decode_claims, encode_claims, verify_claims
from jwtauth.config import (
    AuthSettings,
    ConfigProvider,
    DictConfigProvider,
    EnvConfigProvider,
    load_settings,
)
from jwtauth.core import Reason, RefreshResult, TokenPair, TokenService, ValidationResult
from jwtauth.errors import (
    ConfigurationError,
    InvalidClaims,
    IssuanceFailed,
    JWTAuthError,
    RateLimitExceeded,
    SignatureInvalid,
    TokenError,
    TokenExpired,
    TokenMalformed,
)
from jwtauth.ratelimit import FixedWindowRateLimiter
from jwtauth.revocation import InMemoryRevocationStore, RevocationStore, SQLiteRevocationStore

__all__ = [
    "__version__",
    "TokenService",
    "TokenPair",
    "ValidationResult",
    "RefreshResult",
    "Reason",
    "AuthSettings",
    "ConfigProvider",
    "DictConfigProvider",
    "EnvConfigProvider",
    "load_settings",
    "Algorithm",
    "AlgorithmManager",
    "RefreshingCache",
    "ResolvedAlgorithm",
    "load_rsa_private_key",
    "load_rsa_public_key",
    "TokenClaims",
    "TokenType",
    "decode_claims",
    "encode_claims",
    "verify_claims",
    "RevocationStore",
    "InMemoryRevocationStore",
    "SQLiteRevocationStore",
    "FixedWindowRateLimiter",
    "AuditEvent",
    "AuditHook",
    "LoggingAuditHook",
    "BackgroundAuditHook",
    "JWTAuthError",
    "ConfigurationError",
    "RateLimitExceeded",
    "IssuanceFailed",
    "TokenError",
    "TokenMalformed",
    "SignatureInvalid",
    "TokenExpired",
    "InvalidClaims",
]

__version__ = "0.1.0"
