"""Transport: canal bidirecional de mensagens de um call leg.

O dispatcher consome apenas o protocolo ``Transport``; ``WebSocketTransport``
adapta um WebSocket do Starlette/FastAPI.
"""

from __future__ import annotations

import contextlib
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from starlette.websockets import WebSocketDisconnect, WebSocketState

from speechbridge.logging import get_logger

if TYPE_CHECKING:
    from fastapi import WebSocket

logger = get_logger("server.transport")


@dataclass(frozen=True, slots=True)
class InboundFrame:
    """Frame recebido do cliente: audio (binario) ou controle (texto)."""

    data: bytes | str
    is_binary: bool


class Transport(Protocol):
    """Canal de mensagens consumido pelo dispatcher."""

    async def receive(self) -> InboundFrame | None:
        """Proximo frame, ou None quando a conexao foi fechada."""
        ...

    async def send_text(self, text: str) -> None: ...

    async def close(self, code: int = 1000, reason: str = "") -> None: ...


class WebSocketTransport:
    """Transport sobre um WebSocket ja aceito."""

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket

    async def receive(self) -> InboundFrame | None:
        while True:
            try:
                message = await self._websocket.receive()
            except WebSocketDisconnect:
                return None

            if message.get("type") == "websocket.disconnect":
                return None

            raw_bytes = message.get("bytes")
            if raw_bytes is not None:
                return InboundFrame(data=raw_bytes, is_binary=True)

            raw_text = message.get("text")
            if raw_text is not None:
                return InboundFrame(data=raw_text, is_binary=False)

            # Mensagem ASGI sem payload: ignorar
            logger.debug("empty_message_ignored", message_type=message.get("type"))

    async def send_text(self, text: str) -> None:
        if self._websocket.client_state != WebSocketState.CONNECTED:
            logger.debug("send_skipped_not_connected")
            return
        await self._websocket.send_text(text)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self._websocket.client_state != WebSocketState.CONNECTED:
            return
        with contextlib.suppress(WebSocketDisconnect, RuntimeError, OSError):
            await self._websocket.close(code=code, reason=reason)
