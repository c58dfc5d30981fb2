"""Structured logging para o SpeechBridge.

Usa structlog com stdlib logging como backend. Dois formatos:
- console: legivel para desenvolvimento (default)
- json: estruturado para producao

Contexto por sessao (``session_id``) e propagado via contextvars: o dispatcher
chama ``bind_session_context()`` no inicio da task da sessao e todo log emitido
dentro dela (inclusive pelo provider) carrega o campo automaticamente.
"""

from __future__ import annotations

import logging
import os

import structlog

_configured = False

# Loggers de terceiros que poluem o output em nivel INFO
_NOISY_LOGGERS = ("uvicorn.access", "websockets.client", "httpx", "httpcore")


def _build_renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def configure_logging(
    log_format: str | None = None,
    level: str | None = None,
) -> None:
    """Configura logging estruturado para o runtime.

    Idempotente: chamadas subsequentes sao ignoradas.

    Args:
        log_format: "json" ou "console". Default via SPEECHBRIDGE_LOG_FORMAT env ou "console".
        level: Nivel de log (DEBUG, INFO, WARNING, ERROR). Default via
            SPEECHBRIDGE_LOG_LEVEL env ou "INFO".
    """
    global _configured
    if _configured:
        return

    resolved_format = log_format or os.environ.get("SPEECHBRIDGE_LOG_FORMAT", "console")
    resolved_level = level or os.environ.get("SPEECHBRIDGE_LOG_LEVEL", "INFO")

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _build_renderer(resolved_format),
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, resolved_level.upper(), logging.INFO))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Retorna logger com contexto de componente.

    Args:
        component: Nome do componente (ex: "server.dispatcher", "provider.google").

    Returns:
        BoundLogger com campo component vinculado.
    """
    configure_logging()
    return structlog.get_logger().bind(component=component)  # type: ignore[no-any-return]


def bind_session_context(session_id: str) -> None:
    """Vincula ``session_id`` ao contexto da task asyncio corrente."""
    structlog.contextvars.bind_contextvars(session_id=session_id)


def clear_session_context() -> None:
    """Remove o contexto de sessao da task corrente."""
    structlog.contextvars.unbind_contextvars("session_id")
