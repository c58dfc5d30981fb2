"""WS /* -- endpoint WebSocket de um call leg (audio + protocolo de controle)."""

from __future__ import annotations

from fastapi import APIRouter, WebSocket

from speechbridge.exceptions import SpeechBridgeError
from speechbridge.logging import get_logger
from speechbridge.server.dispatcher import CLOSE_CODE_PROVIDER_FAILED, Dispatcher
from speechbridge.server.transport import WebSocketTransport
from speechbridge.session.session import create_session

logger = get_logger("server.speech")

router = APIRouter()


@router.websocket("/{path:path}")
async def speech_endpoint(websocket: WebSocket, path: str = "") -> None:
    """Endpoint WebSocket de um call leg. Aceita conexoes em qualquer path.

    Protocolo:
        1. Accept e criacao da sessao (provider proprio, em IDLE).
        2. Frames binarios: audio no codec negociado.
        3. Frames texto: requests ``get``/``set``/``setup`` em JSON.
        4. Resultados finais chegam como push ``set`` com id novo.
        5. On disconnect: ``provider.end()`` exatamente uma vez.
    """
    await websocket.accept()
    transport = WebSocketTransport(websocket)

    state = websocket.app.state
    try:
        session = create_session(state.config, provider_factory=state.provider_factory)
    except SpeechBridgeError as exc:
        logger.error("session_create_failed", path=path, error=str(exc))
        await transport.close(code=CLOSE_CODE_PROVIDER_FAILED, reason=str(exc)[:120])
        return

    logger.info("connection_accepted", session_id=session.session_id, path=f"/{path}")
    await Dispatcher(session, transport).run()
