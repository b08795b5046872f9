"""Codificacao e decodificacao de tokens JWT.

Formato no fio: ``header.payload.signature`` em base64url, com as claims
``sub``, ``iss``, ``aud``, ``userId``, ``type``, ``clientIp``, ``tokenId``,
``iat``, ``nbf`` e ``exp``.
"""

import base64
import itertools
import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

import jwt

from jwtauth.algorithms import ResolvedAlgorithm
from jwtauth.errors import InvalidClaims, SignatureInvalid, TokenExpired, TokenMalformed

_token_sequence = itertools.count()


class TokenType(str, Enum):
    """Tipo do token, gravado na claim ``type``."""

    ACCESS = "access"
    REFRESH = "refresh"


@dataclass(frozen=True)
class TokenClaims:
    """Claims de um token emitido ou decodificado."""

    subject: str
    token_type: Optional[Union[TokenType, str]]
    token_id: Optional[str]
    issued_at: Optional[int]
    not_before: Optional[int]
    expires_at: Optional[int]
    issuer: Optional[str]
    audience: Optional[str]
    client_ip: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "sub": self.subject,
            "iss": self.issuer,
            "aud": self.audience,
            "userId": self.subject,
            "type": getattr(self.token_type, "value", self.token_type),
            "tokenId": self.token_id,
            "iat": self.issued_at,
            "nbf": self.not_before,
            "exp": self.expires_at,
        }
        if self.client_ip is not None:
            payload["clientIp"] = self.client_ip
        return {key: value for key, value in payload.items() if value is not None}

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "TokenClaims":
        """Monta TokenClaims a partir de um payload ja decodificado.

        Raises:
            TokenMalformed: Se subject ou datas numericas tiverem tipo invalido.
        """
        subject = payload.get("userId") or payload.get("sub")
        if not isinstance(subject, str) or not subject:
            raise TokenMalformed("Token sem subject")

        raw_type = payload.get("type")
        token_type: Optional[Union[TokenType, str]] = None
        if raw_type is not None:
            try:
                token_type = TokenType(raw_type)
            except ValueError:
                token_type = str(raw_type)

        audience = payload.get("aud")
        if isinstance(audience, list):
            audience = audience[0] if audience else None

        return cls(
            subject=subject,
            token_type=token_type,
            token_id=_optional_str(payload.get("tokenId")),
            issued_at=_numeric_date(payload, "iat"),
            not_before=_numeric_date(payload, "nbf"),
            expires_at=_numeric_date(payload, "exp"),
            issuer=_optional_str(payload.get("iss")),
            audience=_optional_str(audience),
            client_ip=_optional_str(payload.get("clientIp")),
        )


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _numeric_date(payload: Dict[str, Any], claim: str) -> Optional[int]:
    value = payload.get(claim)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TokenMalformed(f"Claim {claim} deve ser numerica")
    if isinstance(value, float) and not math.isfinite(value):
        raise TokenMalformed(f"Claim {claim} deve ser um numero finito")
    return int(value)


def new_token_id() -> str:
    """Gera um identificador unico derivado do relogio em nanossegundos."""
    raw = f"{time.time_ns()}:{next(_token_sequence)}".encode("ascii")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def encode_claims(claims: TokenClaims, algorithm: ResolvedAlgorithm) -> str:
    """Assina as claims com o algoritmo ativo.

    Raises:
        TypeError, ValueError, jwt.InvalidKeyError: Repassados do PyJWT.
    """
    token = jwt.encode(
        payload=claims.to_payload(),
        key=algorithm.signing_key,
        algorithm=algorithm.name,
    )
    if isinstance(token, bytes):
        token = token.decode("utf-8")
    return token


def decode_claims(token: str) -> TokenClaims:
    """Decodifica o token sem verificar assinatura nem datas.

    Raises:
        TokenMalformed: Se o token nao puder ser interpretado.
    """
    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError as e:
        raise TokenMalformed("Token nao pode ser decodificado") from e
    return TokenClaims.from_payload(payload)


def verify_claims(
    token: str,
    algorithm: ResolvedAlgorithm,
    issuer: str,
    audience: str,
    now: int,
) -> TokenClaims:
    """Verifica assinatura, issuer, audience e expiracao e retorna as claims.

    A expiracao e comparada com ``now`` fornecido pelo chamador; ``nbf`` e
    ``iat`` nao sao verificados aqui.

    Args:
        token (str): Token JWT.
        algorithm (ResolvedAlgorithm): Algoritmo e chave de verificacao.
        issuer (str): Issuer esperado.
        audience (str): Audience esperado.
        now (int): Instante atual em segundos desde a epoca.

    Returns:
        TokenClaims: Claims verificadas.

    Raises:
        TokenExpired: Se ``now`` for posterior ao ``exp``.
        SignatureInvalid: Se a assinatura ou o algoritmo do header nao conferirem.
        InvalidClaims: Se issuer, audience ou claims obrigatorias nao conferirem.
        TokenMalformed: Se o token nao puder ser interpretado.
    """
    try:
        payload = jwt.decode(
            token,
            key=algorithm.verification_key,
            algorithms=[algorithm.name],
            audience=audience,
            issuer=issuer,
            options={
                "verify_exp": False,
                "verify_nbf": False,
                "verify_iat": False,
                "require": ["exp", "iat"],
            },
        )
    except (jwt.InvalidSignatureError, jwt.InvalidAlgorithmError) as e:
        raise SignatureInvalid("Assinatura invalida") from e
    except jwt.DecodeError as e:
        raise TokenMalformed("Token nao pode ser decodificado") from e
    except (jwt.InvalidIssuerError, jwt.InvalidAudienceError, jwt.MissingRequiredClaimError) as e:
        raise InvalidClaims(str(e)) from e
    except jwt.InvalidTokenError as e:
        raise TokenMalformed(str(e)) from e

    claims = TokenClaims.from_payload(payload)
    if claims.expires_at is not None and now > claims.expires_at:
        raise TokenExpired("Token expirado")
    return claims


def is_token_expired(token: str, now: int) -> bool:
    """Indica se o token passou do exp; tokens ilegiveis contam como expirados."""
    try:
        claims = decode_claims(token)
    except TokenMalformed:
        return True
    return claims.expires_at is not None and now > claims.expires_at
