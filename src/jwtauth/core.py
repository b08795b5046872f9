"""Servico de emissao e validacao de tokens JWT de acesso e refresh.

Este modulo reune o pipeline completo: limite de requisicoes, resolucao do
algoritmo, lista de revogacao, politica de IP e auditoria.

Classes principais:
    - TokenService: Emite, valida, renova e revoga tokens
    - TokenPair: Par de tokens de acesso e refresh
    - ValidationResult: Resultado estruturado de uma validacao
    - RefreshResult: Resultado estruturado de uma renovacao
    - Reason: Codigos de diagnostico das validacoes
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Tuple

import jwt

from jwtauth.algorithms import AlgorithmManager
from jwtauth.audit import AuditEvent, AuditHook, LoggingAuditHook
from jwtauth.codec import (
    TokenClaims,
    TokenType,
    decode_claims,
    encode_claims,
    is_token_expired,
    new_token_id,
    verify_claims,
)
from jwtauth.config import AuthSettings, ConfigProvider, load_settings
from jwtauth.errors import (
    ConfigurationError,
    IssuanceFailed,
    RateLimitExceeded,
    SignatureInvalid,
    TokenError,
    TokenExpired,
    TokenMalformed,
)
from jwtauth.ratelimit import FixedWindowRateLimiter
from jwtauth.revocation import InMemoryRevocationStore, RevocationStore


class Reason(str, Enum):
    """Codigos de diagnostico retornados em ValidationResult e RefreshResult."""

    VALID = "valid"
    REVOKED = "revoked"
    EXPIRED = "expired"
    INVALID = "invalid"
    INVALID_TYPE = "invalid token type"
    IP_MISMATCH = "IP address mismatch"
    NOT_YET_VALID = "not yet valid"
    INVALID_REFRESH_TYPE = "invalid token type for refresh"


@dataclass(frozen=True)
class TokenPair:
    """Par de tokens devolvido por uma emissao."""

    access_token: str = field(repr=False)
    refresh_token: str = field(repr=False)
    access_expires_in: int


@dataclass(frozen=True)
class ValidationResult:
    """Resultado da validacao de um token JWT."""

    valid: bool
    reason: Reason
    subject: Optional[str] = None


@dataclass(frozen=True)
class RefreshResult:
    """Resultado da renovacao de um par de tokens."""

    valid: bool
    reason: Reason
    subject: Optional[str] = None
    tokens: Optional[TokenPair] = None


class TokenService:
    """Servico para emissao, validacao, renovacao e revogacao de tokens JWT."""

    def __init__(
        self,
        settings: AuthSettings,
        algorithms: AlgorithmManager,
        logger: logging.Logger,
        revocation_store: Optional[RevocationStore] = None,
        rate_limiter: Optional[FixedWindowRateLimiter] = None,
        audit_hook: Optional[AuditHook] = None,
        time_fn: Callable[[], float] = time.time,
    ) -> None:
        """Inicializa o servico de tokens.

        Args:
            settings (AuthSettings): Parametros validados.
            algorithms (AlgorithmManager): Fonte do algoritmo de assinatura.
            logger: Logger do servico.
            revocation_store: Backend de revogacao. Usa InMemoryRevocationStore se omitido.
            rate_limiter: Limitador usado quando ``rate_limit_enabled`` esta ativo. Se
                omitido, um FixedWindowRateLimiter e criado com o limite configurado.
            audit_hook: Destino dos eventos de auditoria. Usa LoggingAuditHook se omitido.
            time_fn: Relogio em segundos desde a epoca, usado nas claims de data.
        """
        self._settings = settings
        self._algorithms = algorithms
        self._logger = logger
        self._time_fn = time_fn
        self._revocation_store: RevocationStore = (
            revocation_store if revocation_store is not None else InMemoryRevocationStore(time_fn)
        )
        self._audit_hook: AuditHook = (
            audit_hook if audit_hook is not None else LoggingAuditHook(logger)
        )

        self._rate_limiter: Optional[FixedWindowRateLimiter] = None
        if settings.rate_limit_enabled:
            self._rate_limiter = rate_limiter or FixedWindowRateLimiter(
                settings.rate_limit_per_minute
            )

        self._debug("TokenService inicializado: %s", self.security_info())

    @classmethod
    def from_provider(
        cls, provider: ConfigProvider, logger: logging.Logger, **kwargs: Any
    ) -> "TokenService":
        """Cria o servico lendo parametros e algoritmo do mesmo provider.

        Args:
            provider: Fonte das opcoes ``jwt.*``.
            logger: Logger do servico.
            **kwargs: Repassados ao construtor (revocation_store, audit_hook, ...).
        """
        settings = load_settings(provider, logger)
        return cls(settings, AlgorithmManager(provider, logger), logger, **kwargs)

    @property
    def settings(self) -> AuthSettings:
        return self._settings

    def _get_now(self) -> int:
        return int(self._time_fn())

    def _debug(self, msg: str, *args: Any) -> None:
        if self._settings.debug_logging:
            self._logger.debug(msg, *args)

    def _audit(
        self,
        operation: str,
        subject: Optional[str],
        client_ip: Optional[str],
        success: bool,
        message: str,
    ) -> None:
        if not self._settings.audit_enabled:
            return
        event = AuditEvent(operation, subject, client_ip, success, message, self._time_fn())
        try:
            self._audit_hook(event)
        except Exception:
            # Auditoria nunca altera o resultado da operacao.
            self._logger.warning("Falha ao gravar auditoria JWT", exc_info=True)

    def _enforce_rate_limit(self) -> None:
        if self._rate_limiter is None:
            return
        try:
            self._rate_limiter.admit()
        except RateLimitExceeded:
            self._logger.warning(
                "Rate limit JWT excedido (limite: %s/min)", self._rate_limiter.limit_per_minute
            )
            raise

    def _build_claims(
        self,
        subject: str,
        token_type: TokenType,
        client_ip: Optional[str],
        now: int,
        ttl_seconds: int,
    ) -> TokenClaims:
        return TokenClaims(
            subject=subject,
            token_type=token_type,
            token_id=new_token_id(),
            issued_at=now,
            not_before=now,
            expires_at=now + ttl_seconds,
            issuer=self._settings.issuer,
            audience=self._settings.audience,
            client_ip=client_ip,
        )

    def issue(self, subject: Any, client_ip: Optional[str] = None) -> TokenPair:
        """Emite um par de tokens de acesso e refresh.

        Args:
            subject (Any): Identificador do principal (convertido para string).
            client_ip (Optional[str]): IP do cliente, gravado na claim ``clientIp``.

        Returns:
            TokenPair: Tokens assinados e a validade do token de acesso em segundos.

        Raises:
            ValueError: Se subject for None ou vazio.
            RateLimitExceeded: Se o limite de requisicoes for excedido.
            ConfigurationError: Se o segredo ou as chaves forem invalidos.
            IssuanceFailed: Se houver falha ao codificar os tokens.
        """
        if subject is None:
            raise ValueError("subject deve ser informado")

        subject_str = str(subject)
        if not subject_str.strip():
            raise ValueError("subject nao pode ser vazio")

        self._enforce_rate_limit()
        return self._issue(subject_str, client_ip)

    def _issue(self, subject: str, client_ip: Optional[str]) -> TokenPair:
        try:
            algorithm = self._algorithms.resolve()
        except ConfigurationError:
            self._audit("issue", subject, client_ip, False, "Falha de configuracao do algoritmo")
            raise

        now = self._get_now()
        access_claims = self._build_claims(
            subject, TokenType.ACCESS, client_ip, now, self._settings.access_ttl_seconds
        )
        refresh_claims = self._build_claims(
            subject, TokenType.REFRESH, client_ip, now, self._settings.refresh_ttl_seconds
        )

        try:
            access_token = encode_claims(access_claims, algorithm)
            refresh_token = encode_claims(refresh_claims, algorithm)
        except (TypeError, ValueError, jwt.InvalidKeyError) as e:
            self._logger.exception("Falha ao gerar par de tokens. subject=%s", subject)
            self._audit("issue", subject, client_ip, False, f"Falha ao gerar token: {e}")
            raise IssuanceFailed("Falha ao gerar token") from e
        except Exception as e:
            # Ultima barreira. Qualquer outra falha de codificacao vira IssuanceFailed.
            self._logger.exception("Falha inesperada ao gerar par de tokens. subject=%s", subject)
            self._audit("issue", subject, client_ip, False, f"Falha inesperada ao gerar token: {e}")
            raise IssuanceFailed("Falha inesperada ao gerar token") from e

        self._audit("issue", subject, client_ip, True, "Par de tokens gerado")
        self._debug(
            "Par de tokens gerado para subject=%s com algoritmo %s", subject, algorithm.name
        )
        return TokenPair(access_token, refresh_token, self._settings.access_ttl_seconds)

    def validate(self, token: str, client_ip: Optional[str] = None) -> ValidationResult:
        """Valida um token JWT e retorna um resultado estruturado.

        As verificacoes seguem esta ordem e param na primeira falha: revogacao,
        assinatura/issuer/audience/expiracao, claim ``type``, IP (se habilitado)
        e ``nbf``. Falhas de validacao nunca sao lancadas como excecao.

        Args:
            token (str): Token JWT a ser validado.
            client_ip (Optional[str]): IP da requisicao atual. Sem IP a verificacao de
                IP e ignorada.

        Returns:
            ValidationResult: ``valid``, ``reason`` e ``subject`` (quando conhecido).

        Raises:
            RateLimitExceeded: Se o limite de requisicoes for excedido.
            ConfigurationError: Se o segredo ou as chaves forem invalidos.
        """
        self._enforce_rate_limit()
        result, _ = self._validate(token, client_ip)
        return result

    def _validate(
        self, token: Any, client_ip: Optional[str]
    ) -> Tuple[ValidationResult, Optional[TokenClaims]]:
        if not isinstance(token, str) or not token.strip():
            self._audit("validate", None, client_ip, False, "Token ausente")
            return ValidationResult(valid=False, reason=Reason.INVALID), None
        token = token.strip()

        if self._revocation_store.contains(token):
            self._audit("validate", None, client_ip, False, "Token revogado")
            self._debug("Validacao falhou: token revogado")
            return ValidationResult(valid=False, reason=Reason.REVOKED), None

        try:
            algorithm = self._algorithms.resolve()
        except ConfigurationError:
            self._audit("validate", None, client_ip, False, "Falha de configuracao do algoritmo")
            raise

        now = self._get_now()
        try:
            claims = verify_claims(
                token, algorithm, self._settings.issuer, self._settings.audience, now
            )
        except TokenExpired:
            self._logger.info("JWT expirado")
            self._audit("validate", None, client_ip, False, "Token expirado")
            return ValidationResult(valid=False, reason=Reason.EXPIRED), None
        except SignatureInvalid:
            self._logger.warning("Assinatura invalida no JWT")
            self._audit("validate", None, client_ip, False, "Assinatura invalida")
            return ValidationResult(valid=False, reason=Reason.INVALID), None
        except TokenError as e:
            self._debug("Validacao falhou: %s", e)
            self._audit("validate", None, client_ip, False, f"Token invalido: {e}")
            return ValidationResult(valid=False, reason=Reason.INVALID), None

        subject = claims.subject
        if claims.token_type is None:
            self._audit("validate", subject, client_ip, False, "Tipo de token ausente")
            return ValidationResult(valid=False, reason=Reason.INVALID_TYPE, subject=subject), None

        if (
            self._settings.ip_validation_enabled
            and client_ip is not None
            and claims.client_ip is not None
            and client_ip != claims.client_ip
        ):
            self._logger.warning(
                "IP divergente para subject %s: IP do token=%s, IP da requisicao=%s",
                subject,
                claims.client_ip,
                client_ip,
            )
            self._audit(
                "validate",
                subject,
                client_ip,
                False,
                f"IP divergente: IP do token={claims.client_ip}, IP da requisicao={client_ip}",
            )
            return ValidationResult(valid=False, reason=Reason.IP_MISMATCH, subject=subject), None

        if claims.not_before is not None and now < claims.not_before:
            self._audit("validate", subject, client_ip, False, "Token ainda nao valido (nbf)")
            return ValidationResult(valid=False, reason=Reason.NOT_YET_VALID, subject=subject), None

        self._audit("validate", subject, client_ip, True, "Token valido")
        self._debug("Token valido para subject=%s com algoritmo %s", subject, algorithm.name)
        return ValidationResult(valid=True, reason=Reason.VALID, subject=subject), claims

    def refresh(self, refresh_token: str, client_ip: Optional[str] = None) -> RefreshResult:
        """Emite um novo par de tokens a partir de um refresh token valido.

        Com rotacao habilitada o refresh token apresentado e revogado antes da
        emissao, de modo que so pode ser usado uma vez.

        Args:
            refresh_token (str): Refresh token apresentado pelo cliente.
            client_ip (Optional[str]): IP da requisicao; o novo par e vinculado a ele.

        Returns:
            RefreshResult: Novo par em ``tokens`` quando ``valid`` for True; caso
                contrario ``reason`` indica o motivo.

        Raises:
            RateLimitExceeded: Se o limite de requisicoes for excedido.
            ConfigurationError: Se o segredo ou as chaves forem invalidos.
            IssuanceFailed: Se houver falha ao codificar o novo par.
        """
        self._enforce_rate_limit()

        result, claims = self._validate(refresh_token, client_ip)
        if not result.valid or claims is None:
            self._logger.warning("Refresh token invalido: %s", result.reason.value)
            self._audit(
                "refresh",
                result.subject,
                client_ip,
                False,
                f"Refresh token invalido: {result.reason.value}",
            )
            return RefreshResult(valid=False, reason=result.reason, subject=result.subject)

        subject = claims.subject
        if claims.token_type != TokenType.REFRESH:
            token_type = getattr(claims.token_type, "value", claims.token_type)
            self._logger.warning("Tipo de token invalido para refresh: %s", token_type)
            self._audit(
                "refresh",
                subject,
                client_ip,
                False,
                f"Tipo de token invalido para refresh: {token_type}",
            )
            return RefreshResult(valid=False, reason=Reason.INVALID_REFRESH_TYPE, subject=subject)

        if self._settings.refresh_rotation_enabled:
            if not self._revocation_store.add(refresh_token.strip()):
                # Outro chamador concorrente ja rotacionou este refresh token.
                self._audit("refresh", subject, client_ip, False, "Refresh token ja utilizado")
                return RefreshResult(valid=False, reason=Reason.REVOKED, subject=subject)
            self._audit("revoke", subject, client_ip, True, "Refresh token revogado na rotacao")

        tokens = self._issue(subject, client_ip)
        self._audit("refresh", subject, client_ip, True, "Access token renovado")
        return RefreshResult(valid=True, reason=Reason.VALID, subject=subject, tokens=tokens)

    def revoke(self, token: str) -> bool:
        """Revoga um token adicionando-o a lista de revogacao.

        Args:
            token (str): Token JWT a ser revogado.

        Returns:
            bool: True se o token foi revogado agora, False se estava vazio ou ja
                estava revogado.

        Raises:
            RateLimitExceeded: Se o limite de requisicoes for excedido.
        """
        if not isinstance(token, str) or not token.strip():
            return False

        self._enforce_rate_limit()

        token = token.strip()
        if not self._revocation_store.add(token):
            self._debug("Token ja estava revogado")
            return False

        try:
            subject = decode_claims(token).subject
        except TokenMalformed:
            self._audit("revoke", None, None, True, "Token revogado (subject nao extraido)")
            self._debug("Token revogado, mas o subject nao pode ser extraido")
            return True

        self._audit("revoke", subject, None, True, "Token revogado")
        self._debug("Token revogado para subject=%s", subject)
        return True

    def sweep_revoked(self) -> int:
        """Remove da lista de revogacao os tokens que ja expiraram naturalmente.

        Returns:
            int: Quantidade de entradas removidas.
        """
        removed = self._revocation_store.sweep()
        if removed:
            self._debug("%s tokens expirados removidos da lista de revogacao", removed)
        return removed

    def subject_of(self, token: str) -> Optional[str]:
        """Retorna o subject do token sem verificar assinatura, ou None se ilegivel."""
        try:
            return decode_claims(token).subject
        except TokenMalformed:
            self._debug("Falha ao decodificar token para obter subject")
            return None

    def is_token_expired(self, token: str) -> bool:
        """Indica se o token expirou; tokens ilegiveis contam como expirados."""
        return is_token_expired(token, self._get_now())

    def remaining_seconds(self, token: str) -> int:
        """Segundos ate o exp do token, com minimo -1 (tambem para tokens ilegiveis)."""
        try:
            expires_at = decode_claims(token).expires_at
        except TokenMalformed:
            self._debug("Falha ao calcular tempo restante do token")
            return -1
        if expires_at is None:
            return -1
        return max(expires_at - self._get_now(), -1)

    def algorithm_info(self) -> str:
        return "Algorithm: {}, Issuer: {}, Audience: {}".format(
            self._algorithms.configured_name(), self._settings.issuer, self._settings.audience
        )

    def security_info(self) -> str:
        return "IP Validation: {}, Rate Limiting: {}, Audit: {}, Debug: {}".format(
            self._settings.ip_validation_enabled,
            self._settings.rate_limit_enabled,
            self._settings.audit_enabled,
            self._settings.debug_logging,
        )
