"""Limitador de requisicoes por minuto com janela fixa."""

import time
from threading import Lock
from typing import Callable

from jwtauth.errors import RateLimitExceeded

WINDOW_SECONDS = 60.0


class FixedWindowRateLimiter:
    """Rate limiter com janela fixa de um minuto.

    O contador e o inicio da janela sao atualizados sob o mesmo lock: o
    reset acontece uma unica vez por janela e nenhum incremento se perde.
    """

    def __init__(self, limit_per_minute: int, time_fn: Callable[[], float] = time.monotonic):
        if not isinstance(limit_per_minute, int) or limit_per_minute <= 0:
            raise ValueError("limit_per_minute deve ser um inteiro positivo")
        self._limit_per_minute = limit_per_minute
        self._time_fn = time_fn
        self._lock = Lock()
        self._count = 0
        self._window_start = time_fn()

    @property
    def limit_per_minute(self) -> int:
        return self._limit_per_minute

    def admit(self) -> bool:
        """Conta uma requisicao na janela atual.

        Returns:
            bool: True quando a requisicao esta dentro do limite.

        Raises:
            RateLimitExceeded: Se a contagem da janela passar do limite.
        """
        with self._lock:
            now = self._time_fn()
            if now - self._window_start >= WINDOW_SECONDS:
                self._count = 0
                self._window_start = now
            self._count += 1
            count = self._count

        if count > self._limit_per_minute:
            raise RateLimitExceeded(
                f"Rate limit excedido: {count} requisicoes por minuto "
                f"(limite: {self._limit_per_minute})"
            )
        return True
