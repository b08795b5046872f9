"""Eventos de auditoria das operacoes de token."""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class AuditEvent:
    """Registro de uma operacao de emissao, validacao, renovacao ou revogacao."""

    operation: str
    subject: Optional[str]
    client_ip: Optional[str]
    success: bool
    message: str
    timestamp: float


class AuditHook(Protocol):
    """Destino dos eventos de auditoria."""

    def __call__(self, event: AuditEvent) -> None:
        """Recebe um evento. Excecoes sao registradas e ignoradas pelo chamador."""


class LoggingAuditHook:
    """Grava cada evento no logger informado."""

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def __call__(self, event: AuditEvent) -> None:
        self._logger.info(
            "audit operation=%s subject=%s client_ip=%s success=%s message=%s",
            event.operation,
            event.subject or "unknown",
            event.client_ip,
            event.success,
            event.message,
        )


class BackgroundAuditHook:
    """Entrega eventos a outro hook em uma thread separada.

    Usado quando a persistencia da auditoria faz I/O: a operacao de token
    retorna sem esperar a entrega. Falhas sao registradas pela thread de
    entrega.
    """

    def __init__(self, hook: AuditHook, logger: logging.Logger, max_workers: int = 1) -> None:
        self._hook = hook
        self._logger = logger
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="jwtauth-audit"
        )

    def __call__(self, event: AuditEvent) -> None:
        future = self._executor.submit(self._hook, event)
        future.add_done_callback(self._report_failure)

    def _report_failure(self, future: "Future[None]") -> None:
        exc = future.exception()
        if exc is not None:
            self._logger.warning("Falha ao gravar auditoria JWT", exc_info=exc)

    def close(self, wait: bool = True) -> None:
        """Encerra a thread de entrega, aguardando os eventos pendentes por padrao."""
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "BackgroundAuditHook":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
