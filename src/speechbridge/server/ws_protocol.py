"""Protocol handler para frames do call leg.

Recebe frames do Transport e retorna um resultado tipado: audio bytes,
request de controle, response do cliente, ou None para frames ignorados.
Frames binarios nunca sao interpretados como controle.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from speechbridge.logging import get_logger

if TYPE_CHECKING:
    from speechbridge.server.transport import InboundFrame

logger = get_logger("server.ws_protocol")

# Tamanho maximo do texto bruto incluido em logs
_LOG_RAW_LIMIT = 200


@dataclass(frozen=True, slots=True)
class AudioFrameResult:
    """Resultado de parsing: frame de audio binario."""

    data: bytes


@dataclass(frozen=True, slots=True)
class RequestResult:
    """Resultado de parsing: objeto JSON com campo ``request``."""

    message: dict[str, Any]


@dataclass(frozen=True, slots=True)
class ResponseResult:
    """Resultado de parsing: objeto JSON com campo ``response``."""

    message: dict[str, Any]


# Union type para resultado de parsing
ParseResult = AudioFrameResult | RequestResult | ResponseResult


def parse_frame(frame: InboundFrame) -> ParseResult | None:
    """Classifica um frame recebido.

    Returns:
        ``AudioFrameResult`` para frames binarios, ``RequestResult`` ou
        ``ResponseResult`` para texto JSON, ou ``None`` se o frame deve ser
        ignorado (JSON invalido, nao-objeto, ou sem ``request``/``response``).
    """
    if frame.is_binary:
        data = frame.data if isinstance(frame.data, bytes) else frame.data.encode()
        return AudioFrameResult(data=data)

    raw_text = frame.data if isinstance(frame.data, str) else frame.data.decode("utf-8", "replace")
    logger.debug("control_message", raw=raw_text[:_LOG_RAW_LIMIT])

    try:
        data = json.loads(raw_text)
    except (json.JSONDecodeError, ValueError) as exc:
        logger.warning("malformed_json", error=str(exc), raw=raw_text[:_LOG_RAW_LIMIT])
        return None

    if not isinstance(data, dict):
        logger.warning("invalid_message_format", raw=raw_text[:_LOG_RAW_LIMIT])
        return None

    if "request" in data:
        return RequestResult(message=data)
    if "response" in data:
        return ResponseResult(message=data)

    logger.debug("message_ignored", keys=list(data.keys()))
    return None
