"""Provedores de configuracao e parametros do servico de tokens."""

import logging
import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Mapping, Optional, Protocol

from jwtauth.errors import ConfigurationError

CONFIG_SECRET = "jwt.secret"
CONFIG_ISSUER = "jwt.issuer"
CONFIG_AUDIENCE = "jwt.audience"
CONFIG_ALGORITHM = "jwt.algorithm"
CONFIG_ACCESS_EXPIRE_MINUTES = "jwt.access.expire.minutes"
CONFIG_REFRESH_EXPIRE_DAYS = "jwt.refresh.expire.days"
CONFIG_IP_VALIDATION = "jwt.ip.validation.enabled"
CONFIG_AUDIT_ENABLED = "jwt.audit.enabled"
CONFIG_DEBUG_LOGGING = "jwt.debug.logging"
CONFIG_PRIVATE_KEY_PATH = "jwt.private.key.path"
CONFIG_PUBLIC_KEY_PATH = "jwt.public.key.path"
CONFIG_RATE_LIMIT_ENABLED = "jwt.rate.limit.enabled"
CONFIG_RATE_LIMIT_RPM = "jwt.rate.limit.requests.per.minute"
CONFIG_REFRESH_ROTATION = "jwt.refresh.rotation.enabled"

DEFAULT_ALGORITHM = "HS256"
DEFAULT_ISSUER = "jwtauth"
DEFAULT_AUDIENCE = "jwtauth-app"
DEFAULT_ACCESS_EXPIRE_MINUTES = 60
DEFAULT_REFRESH_EXPIRE_DAYS = 30
DEFAULT_RATE_LIMIT_RPM = 60


class ConfigProvider(Protocol):
    """Interface de leitura de configuracao chave -> string."""

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Retorna o valor configurado para a chave ou o default.

        Args:
            key (str): Nome da opcao, por exemplo ``jwt.secret``.
            default (Optional[str]): Valor usado quando a chave esta ausente ou vazia.

        Returns:
            Optional[str]: Valor sem espacos nas pontas, ou o default.
        """


class DictConfigProvider:
    """Configuracao lida de um dict.

    Mantem referencia ao mapping recebido; alteracoes posteriores sao vistas na
    proxima leitura.
    """

    def __init__(self, values: Mapping[str, Any]) -> None:
        self._values = values

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self._values.get(key)
        if value is None:
            return default
        text = str(value).strip()
        return text if text else default


class EnvConfigProvider:
    """Configuracao lida de variaveis de ambiente (``jwt.secret`` -> ``JWT_SECRET``)."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None) -> None:
        self._environ = environ if environ is not None else os.environ

    @staticmethod
    def env_name(key: str) -> str:
        return key.replace(".", "_").upper()

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self._environ.get(self.env_name(key))
        if value is None or not value.strip():
            return default
        return value.strip()


@dataclass(frozen=True)
class AuthSettings:
    """Parametros do TokenService que nao dependem de material criptografico."""

    issuer: str = DEFAULT_ISSUER
    audience: str = DEFAULT_AUDIENCE
    access_ttl: timedelta = timedelta(minutes=DEFAULT_ACCESS_EXPIRE_MINUTES)
    refresh_ttl: timedelta = timedelta(days=DEFAULT_REFRESH_EXPIRE_DAYS)
    ip_validation_enabled: bool = False
    audit_enabled: bool = True
    debug_logging: bool = False
    rate_limit_enabled: bool = False
    rate_limit_per_minute: int = DEFAULT_RATE_LIMIT_RPM
    refresh_rotation_enabled: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.issuer, str) or not self.issuer.strip():
            raise ConfigurationError(f"{CONFIG_ISSUER} deve ser uma string valida")

        if not isinstance(self.audience, str) or not self.audience.strip():
            raise ConfigurationError(f"{CONFIG_AUDIENCE} deve ser uma string valida")

        if self.access_ttl.total_seconds() <= 0:
            raise ConfigurationError(f"{CONFIG_ACCESS_EXPIRE_MINUTES} deve ser positivo")

        if self.refresh_ttl.total_seconds() <= 0:
            raise ConfigurationError(f"{CONFIG_REFRESH_EXPIRE_DAYS} deve ser positivo")

        if not isinstance(self.rate_limit_per_minute, int) or self.rate_limit_per_minute <= 0:
            raise ConfigurationError(f"{CONFIG_RATE_LIMIT_RPM} deve ser um inteiro positivo")

    @property
    def access_ttl_seconds(self) -> int:
        return int(self.access_ttl.total_seconds())

    @property
    def refresh_ttl_seconds(self) -> int:
        return int(self.refresh_ttl.total_seconds())


def get_bool(provider: ConfigProvider, key: str, default: bool) -> bool:
    value = provider.get(key)
    if value is None:
        return default
    return value.lower() == "true"


def get_int(provider: ConfigProvider, key: str, default: int, logger: logging.Logger) -> int:
    value = provider.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Valor invalido para %s, usando default: %s", key, default)
        return default


def load_settings(
    provider: ConfigProvider, logger: Optional[logging.Logger] = None
) -> AuthSettings:
    """Carrega AuthSettings a partir de um ConfigProvider.

    Booleanos aceitam apenas ``true`` (sem diferenciar maiusculas). Inteiros
    invalidos geram um warning e caem no default.

    Args:
        provider: Fonte das opcoes ``jwt.*``.
        logger: Logger para avisos de configuracao.

    Returns:
        AuthSettings: Parametros validados.

    Raises:
        ConfigurationError: Se algum valor resultante for invalido (ex.: TTL zero).
    """
    logger = logger or logging.getLogger(__name__)

    access_minutes = get_int(
        provider, CONFIG_ACCESS_EXPIRE_MINUTES, DEFAULT_ACCESS_EXPIRE_MINUTES, logger
    )
    refresh_days = get_int(
        provider, CONFIG_REFRESH_EXPIRE_DAYS, DEFAULT_REFRESH_EXPIRE_DAYS, logger
    )

    return AuthSettings(
        issuer=provider.get(CONFIG_ISSUER, DEFAULT_ISSUER) or DEFAULT_ISSUER,
        audience=provider.get(CONFIG_AUDIENCE, DEFAULT_AUDIENCE) or DEFAULT_AUDIENCE,
        access_ttl=timedelta(minutes=access_minutes),
        refresh_ttl=timedelta(days=refresh_days),
        ip_validation_enabled=get_bool(provider, CONFIG_IP_VALIDATION, False),
        audit_enabled=get_bool(provider, CONFIG_AUDIT_ENABLED, True),
        debug_logging=get_bool(provider, CONFIG_DEBUG_LOGGING, False),
        rate_limit_enabled=get_bool(provider, CONFIG_RATE_LIMIT_ENABLED, False),
        rate_limit_per_minute=get_int(
            provider, CONFIG_RATE_LIMIT_RPM, DEFAULT_RATE_LIMIT_RPM, logger
        ),
        refresh_rotation_enabled=get_bool(provider, CONFIG_REFRESH_ROTATION, False),
    )
