"""Resolucao e cache do algoritmo de assinatura.

Classes principais:
    - Algorithm: Enum com os seis algoritmos suportados
    - ResolvedAlgorithm: Algoritmo com as chaves de assinatura e verificacao
    - RefreshingCache: Celula calculada uma vez e recalculada apos expirar
    - AlgorithmManager: Le a configuracao e entrega o algoritmo ativo
"""

import base64
import binascii
import logging
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Generic, Optional, TypeVar

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from jwtauth.config import (
    CONFIG_ALGORITHM,
    CONFIG_DEBUG_LOGGING,
    CONFIG_PRIVATE_KEY_PATH,
    CONFIG_PUBLIC_KEY_PATH,
    CONFIG_SECRET,
    DEFAULT_ALGORITHM,
    ConfigProvider,
    get_bool,
)
from jwtauth.errors import ConfigurationError

ALGORITHM_CACHE_SECONDS = 5 * 60

_PEM_MARKER = re.compile(r"-----(BEGIN|END) [A-Z ]+-----")

T = TypeVar("T")


class Algorithm(Enum):
    """Algoritmos de assinatura aceitos em ``jwt.algorithm``."""

    HS256 = "HS256"
    HS384 = "HS384"
    HS512 = "HS512"
    RS256 = "RS256"
    RS384 = "RS384"
    RS512 = "RS512"

    @property
    def is_hmac(self) -> bool:
        return self.value.startswith("HS")


@dataclass(frozen=True)
class ResolvedAlgorithm:
    """Algoritmo ativo com o material de chave ja carregado."""

    algorithm: Algorithm
    signing_key: Any = field(repr=False)
    verification_key: Any = field(repr=False)

    @property
    def name(self) -> str:
        return self.algorithm.value


@dataclass(frozen=True)
class _CacheEntry(Generic[T]):
    value: T
    loaded_at: float


class RefreshingCache(Generic[T]):
    """Valor calculado uma vez e recalculado quando o intervalo expira.

    Leituras dentro do intervalo nao pegam lock: o snapshot e imutavel e
    substituido por inteiro. Apos a expiracao apenas um chamador executa o
    loader; os demais aguardam o lock e reutilizam o valor recem calculado.
    """

    def __init__(
        self,
        loader: Callable[[], T],
        ttl_seconds: float,
        time_fn: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds deve ser positivo")
        self._loader = loader
        self._ttl_seconds = ttl_seconds
        self._time_fn = time_fn
        self._lock = Lock()
        self._entry: Optional[_CacheEntry[T]] = None

    def _fresh(self, entry: Optional[_CacheEntry[T]], now: float) -> bool:
        return entry is not None and now - entry.loaded_at < self._ttl_seconds

    def get(self) -> T:
        entry = self._entry
        if self._fresh(entry, self._time_fn()):
            return entry.value  # type: ignore[union-attr]

        with self._lock:
            entry = self._entry
            now = self._time_fn()
            if self._fresh(entry, now):
                return entry.value  # type: ignore[union-attr]
            value = self._loader()
            self._entry = _CacheEntry(value, now)
            return value

    def invalidate(self) -> None:
        with self._lock:
            self._entry = None


def _read_der(path: Optional[str], label: str) -> bytes:
    if not path:
        raise ConfigurationError(f"Caminho da chave {label} RSA nao configurado")

    try:
        content = Path(path).read_text(encoding="ascii")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Nao foi possivel ler a chave {label} RSA: {path}") from e

    body = "".join(_PEM_MARKER.sub("", content).split())
    if not body:
        raise ConfigurationError(f"Arquivo de chave {label} RSA vazio: {path}")
    try:
        return base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ConfigurationError(f"Chave {label} RSA nao e base64 valido: {path}") from e


def load_rsa_public_key(path: Optional[str]) -> rsa.RSAPublicKey:
    """Carrega uma chave publica RSA de um arquivo PEM.

    Os marcadores BEGIN/END e as quebras de linha sao removidos e o corpo e
    decodificado como DER (SubjectPublicKeyInfo ou PKCS#1).

    Raises:
        ConfigurationError: Se o caminho estiver ausente, o arquivo nao puder ser
            lido ou o conteudo nao for uma chave publica RSA.
    """
    der = _read_der(path, "publica")
    try:
        key = serialization.load_der_public_key(der)
    except (ValueError, UnsupportedAlgorithm) as e:
        raise ConfigurationError(f"Chave publica RSA invalida: {path}") from e
    if not isinstance(key, rsa.RSAPublicKey):
        raise ConfigurationError(f"Chave publica nao e RSA: {path}")
    return key


def load_rsa_private_key(path: Optional[str]) -> rsa.RSAPrivateKey:
    """Carrega uma chave privada RSA (PKCS#8 ou PKCS#1, sem senha) de um arquivo PEM.

    Raises:
        ConfigurationError: Se o caminho estiver ausente, o arquivo nao puder ser
            lido ou o conteudo nao for uma chave privada RSA.
    """
    der = _read_der(path, "privada")
    try:
        key = serialization.load_der_private_key(der, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise ConfigurationError(f"Chave privada RSA invalida: {path}") from e
    if not isinstance(key, rsa.RSAPrivateKey):
        raise ConfigurationError(f"Chave privada nao e RSA: {path}")
    return key


class AlgorithmManager:
    """Entrega o algoritmo configurado, recarregando-o a cada intervalo.

    O nome do algoritmo, o segredo e os caminhos das chaves sao relidos do
    provider a cada recarga, permitindo rotacao de chaves sem reiniciar o
    processo.
    """

    def __init__(
        self,
        provider: ConfigProvider,
        logger: logging.Logger,
        refresh_interval_seconds: float = ALGORITHM_CACHE_SECONDS,
        time_fn: Callable[[], float] = time.monotonic,
    ) -> None:
        self._provider = provider
        self._logger = logger
        self._cache: RefreshingCache[ResolvedAlgorithm] = RefreshingCache(
            self._load, refresh_interval_seconds, time_fn
        )

    def resolve(self) -> ResolvedAlgorithm:
        """Retorna o algoritmo ativo.

        Raises:
            ConfigurationError: Se o segredo ou as chaves RSA estiverem ausentes ou
                forem invalidos.
        """
        return self._cache.get()

    def invalidate(self) -> None:
        """Descarta o algoritmo em cache; a proxima chamada le a configuracao de novo."""
        self._cache.invalidate()

    def configured_name(self) -> str:
        name = self._provider.get(CONFIG_ALGORITHM, DEFAULT_ALGORITHM) or DEFAULT_ALGORITHM
        return name.upper()

    def _load_secret(self) -> str:
        secret = self._provider.get(CONFIG_SECRET)
        if not secret:
            self._logger.error("Segredo JWT nao configurado. Defina '%s'.", CONFIG_SECRET)
            raise ConfigurationError(f"{CONFIG_SECRET} deve ser configurado")
        return secret

    def _load(self) -> ResolvedAlgorithm:
        name = self.configured_name()
        try:
            algorithm = Algorithm[name]
        except KeyError:
            # Compatibilidade: nome desconhecido cai em HS256 em vez de falhar.
            self._logger.warning("Algoritmo nao suportado: %s, usando %s", name, DEFAULT_ALGORITHM)
            algorithm = Algorithm.HS256

        try:
            if algorithm.is_hmac:
                secret = self._load_secret()
                resolved = ResolvedAlgorithm(algorithm, secret, secret)
            else:
                private_key = load_rsa_private_key(self._provider.get(CONFIG_PRIVATE_KEY_PATH))
                public_key = load_rsa_public_key(self._provider.get(CONFIG_PUBLIC_KEY_PATH))
                resolved = ResolvedAlgorithm(algorithm, private_key, public_key)
        except ConfigurationError:
            self._logger.exception("Falha ao inicializar algoritmo JWT: %s", algorithm.value)
            raise

        if get_bool(self._provider, CONFIG_DEBUG_LOGGING, False):
            self._logger.debug("Algoritmo JWT inicializado: %s", algorithm.value)
        return resolved
