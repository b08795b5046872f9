"""Abstracoes e implementacoes de revogacao."""

import hashlib
import sqlite3
import time
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Optional, Protocol, Set

from jwtauth.codec import decode_claims, is_token_expired
from jwtauth.errors import TokenMalformed

# Faixa do tipo INTEGER do SQLite.
_SQLITE_MIN_INTEGER = -(2**63)
_SQLITE_MAX_INTEGER = 2**63 - 1
_UNDECODABLE_EXPIRES_AT = 0


class RevocationStore(Protocol):
    """Interface para backends de revogacao."""

    def add(self, token: str) -> bool:
        """Registra a revogacao de um token.

        Args:
            token (str): Token JWT completo.

        Returns:
            bool: True se a revogacao foi inserida agora, False se ja existia.
        """

    def contains(self, token: str) -> bool:
        """Verifica se um token esta revogado.

        Args:
            token (str): Token JWT completo.

        Returns:
            bool: True se o token estiver na lista de revogacao.
        """

    def sweep(self) -> int:
        """Remove tokens revogados que ja expiraram naturalmente.

        Returns:
            int: Quantidade de entradas removidas.
        """


def token_fingerprint(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class InMemoryRevocationStore:
    """Revogacao em memoria, segura para acesso concorrente."""

    def __init__(self, time_fn: Callable[[], float] = time.time) -> None:
        self._time_fn = time_fn
        self._lock = Lock()
        self._tokens: Set[str] = set()

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)

    def add(self, token: str) -> bool:
        with self._lock:
            if token in self._tokens:
                return False
            self._tokens.add(token)
            return True

    def contains(self, token: str) -> bool:
        with self._lock:
            return token in self._tokens

    def sweep(self) -> int:
        """Remove entradas expiradas ou ilegiveis.

        A decodificacao acontece fora do lock; so entradas expiradas sao
        removidas, entao add/contains concorrentes nunca perdem uma revogacao
        ainda necessaria.
        """
        with self._lock:
            snapshot = list(self._tokens)

        now = int(self._time_fn())
        expired = {token for token in snapshot if is_token_expired(token, now)}
        if not expired:
            return 0

        with self._lock:
            before = len(self._tokens)
            self._tokens.difference_update(expired)
            return before - len(self._tokens)


class SQLiteRevocationStore:
    """Revogacao persistida em SQLite.

    Guarda apenas o SHA-256 do token e o seu ``exp``; o token em si nunca e
    gravado em disco. Tokens sem ``exp`` ficam com ``expires_at`` NULL e nunca
    sao removidos pela limpeza. Tokens que nao puderam ser decodificados sao
    gravados com ``expires_at`` 0 e saem na proxima limpeza.
    """

    def __init__(self, db_path: str, time_fn: Callable[[], float] = time.time) -> None:
        """Inicializa o store de revogacao com SQLite.

        Args:
            db_path (str): Caminho do arquivo do banco de dados SQLite. O diretorio sera criado
                se nao existir.
            time_fn: Relogio usado pela limpeza.

        Raises:
            ValueError: Se db_path for vazio ou se nao for possivel criar o diretorio.
        """
        if not isinstance(db_path, str) or not db_path.strip():
            raise ValueError("db_path deve ser uma string valida")

        db_file_path = Path(db_path).resolve()
        db_dir = db_file_path.parent

        if not db_dir.exists():
            try:
                db_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ValueError(f"Nao foi possivel criar o diretorio {db_dir}: {e}") from e

        if not db_dir.is_dir():
            raise ValueError(f"O caminho {db_dir} existe mas nao e um diretorio")

        self._db_path = str(db_file_path)
        self._time_fn = time_fn
        self._lock = Lock()
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS revoked_tokens (
                fingerprint TEXT PRIMARY KEY,
                expires_at INTEGER NULL,
                created_at INTEGER NOT NULL
            )
            """
        )
        self._conn.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_revoked_tokens_expires_at
            ON revoked_tokens(expires_at)
            """
        )
        self._conn.commit()

    def close(self) -> None:
        """Fecha a conexao com o SQLite."""
        with self._lock:
            self._conn.close()

    def __enter__(self) -> "SQLiteRevocationStore":
        """Suporte para context manager."""
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Fecha a conexao ao sair do contexto."""
        self.close()

    def __len__(self) -> int:
        with self._lock:
            row = self._conn.execute("SELECT COUNT(*) FROM revoked_tokens").fetchone()
        return int(row[0])

    def add(self, token: str) -> bool:
        expires_at: Optional[int]
        try:
            expires_at = decode_claims(token).expires_at
        except TokenMalformed:
            expires_at = _UNDECODABLE_EXPIRES_AT
        if expires_at is not None:
            expires_at = min(max(expires_at, _SQLITE_MIN_INTEGER), _SQLITE_MAX_INTEGER)

        now = int(self._time_fn())
        with self._lock:
            cursor = self._conn.execute(
                """
                INSERT OR IGNORE INTO revoked_tokens (fingerprint, expires_at, created_at)
                VALUES (?, ?, ?)
                """,
                (token_fingerprint(token), expires_at, now),
            )
            self._conn.commit()
        return cursor.rowcount == 1

    def contains(self, token: str) -> bool:
        with self._lock:
            cursor = self._conn.execute(
                "SELECT 1 FROM revoked_tokens WHERE fingerprint = ? LIMIT 1",
                (token_fingerprint(token),),
            )
            return cursor.fetchone() is not None

    def sweep(self) -> int:
        now = int(self._time_fn())
        with self._lock:
            cursor = self._conn.execute(
                "DELETE FROM revoked_tokens WHERE expires_at < ?",
                (now,),
            )
            self._conn.commit()
        return cursor.rowcount
