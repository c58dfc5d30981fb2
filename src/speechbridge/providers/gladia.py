"""Adapter Gladia Live STT (API v2).

Cada sessao remota:
    1. POST /v2/live com encoding/sample rate/idioma -> ``{id, url}``
    2. WebSocket em ``url``: audio como frames binarios
    3. Mensagens ``transcript`` com ``data.is_final`` e ``data.utterance``
    4. Fim de stream: ``{"type": "stop_recording"}``; o Gladia entrega os
       resultados pendentes e fecha com codigo 1000

Mensagens ``error`` e fechamento com codigo diferente de 1000 sao fatais. Um
fechamento limpo iniciado pelo Gladia leva a um restart da sessao remota.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import httpx
import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, WebSocketException

from speechbridge._types import EngineSettings, TranscriptResult, clamp_confidence
from speechbridge.exceptions import ConfigError, ProviderFatalError
from speechbridge.logging import get_logger
from speechbridge.providers.interface import RecognizerClient, RecognizerStream

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Sequence

    from speechbridge._types import Codec

logger = get_logger("provider.gladia")

PROVIDER_NAME = "gladia"

DEFAULT_API_URL = "https://api.gladia.io/v2/live"
DEFAULT_LANGUAGES = ("en-US", "en-GB", "es-ES", "pt-BR", "de-DE", "it-IT")

# Codec do call leg -> (encoding Gladia, bit depth)
GLADIA_ENCODINGS: dict[str, tuple[str, int]] = {
    "slin16": ("wav/pcm", 16),
    "ulaw": ("wav/ulaw", 8),
    "alaw": ("wav/alaw", 8),
}

_HTTP_TIMEOUT_S = 10.0
_STOP_RECORDING = json.dumps({"type": "stop_recording"})


def _gladia_language(language: str) -> str:
    """BCP-47 -> ISO 639-1 (ex: "en-US" -> "en")."""
    return language.split("-", 1)[0].lower()


class GladiaRecognizerStream(RecognizerStream):
    """WebSocket de uma sessao live do Gladia."""

    def __init__(self, session_id: str, websocket: Any) -> None:
        self._session_id = session_id
        self._websocket = websocket
        self._finished = False
        self._closed_normally = False

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def closed_normally(self) -> bool:
        return self._closed_normally

    async def send_audio(self, chunk: bytes) -> None:
        try:
            await self._websocket.send(chunk)
        except ConnectionClosed as exc:
            raise ProviderFatalError(PROVIDER_NAME, f"WebSocket fechado: {exc}") from exc

    async def receive_results(self) -> AsyncIterator[TranscriptResult]:
        try:
            async for raw in self._websocket:
                result = self._parse_message(raw)
                if result is not None:
                    yield result
        except ConnectionClosedError as exc:
            raise ProviderFatalError(
                PROVIDER_NAME, f"WebSocket fechado inesperadamente: {exc}"
            ) from exc

        # Iteracao termina sem erro apenas com close 1000/1001
        self._closed_normally = True
        logger.debug(
            "gladia_socket_closed",
            session_id=self._session_id,
            requested=self._finished,
        )

    def _parse_message(self, raw: str | bytes) -> TranscriptResult | None:
        try:
            message = json.loads(raw)
        except (json.JSONDecodeError, ValueError):
            logger.warning("gladia_malformed_message", session_id=self._session_id)
            return None

        if not isinstance(message, dict):
            logger.warning("gladia_malformed_message", session_id=self._session_id)
            return None

        message_type = message.get("type")
        data = message.get("data") or {}
        if not isinstance(data, dict):
            logger.warning(
                "gladia_malformed_message",
                session_id=self._session_id,
                message_type=message_type,
            )
            return None

        if message_type == "error":
            reason = data.get("message") or "erro desconhecido"
            raise ProviderFatalError(PROVIDER_NAME, f"erro do WebSocket Gladia: {reason}")

        if message_type != "transcript":
            return None

        utterance = data.get("utterance") or {}
        if not isinstance(utterance, dict):
            logger.warning("gladia_malformed_message", session_id=self._session_id)
            return None
        return TranscriptResult(
            text=(utterance.get("text") or "").strip(),
            confidence=clamp_confidence(utterance.get("confidence")),
            is_final=bool(data.get("is_final")),
        )

    async def finish(self) -> None:
        if self._finished:
            return
        self._finished = True
        try:
            await self._websocket.send(_STOP_RECORDING)
        except ConnectionClosed:
            logger.debug("gladia_stop_on_closed_socket", session_id=self._session_id)

    async def abort(self) -> None:
        self._finished = True
        await self._websocket.close(code=1000, reason="session aborted")


class GladiaRecognizer(RecognizerClient):
    """Cliente Gladia Live para um provider de sessao.

    Args:
        api_key: Chave da API (``X-Gladia-Key``).
        api_url: Endpoint de inicializacao de sessao live.
        languages: Idiomas aceitos (codigos BCP-47).
        http_client: ``httpx.AsyncClient`` pre-construido (testes).
        connect: Funcao que abre o WebSocket (default: ``websockets.connect``).

    Raises:
        ConfigError: Se a chave da API nao foi informada.
    """

    def __init__(
        self,
        api_key: str | None,
        api_url: str = DEFAULT_API_URL,
        languages: Sequence[str] = DEFAULT_LANGUAGES,
        http_client: httpx.AsyncClient | None = None,
        connect: Callable[[str], Awaitable[Any]] | None = None,
    ) -> None:
        if not api_key:
            raise ConfigError("Chave da API Gladia ausente (GLADIA_API_KEY)")
        self._api_key = api_key
        self._api_url = api_url
        self._languages = frozenset(languages)
        self._http_client = http_client
        self._connect = connect or websockets.connect

    @property
    def name(self) -> str:
        return PROVIDER_NAME

    def supports_codec(self, codec_name: str) -> bool:
        return codec_name in GLADIA_ENCODINGS

    def supports_language(self, language: str) -> bool:
        return language in self._languages

    def build_settings(self, codec: Codec, language: str) -> EngineSettings:
        encoding, bit_depth = GLADIA_ENCODINGS[codec.name]
        return EngineSettings(
            encoding=encoding,
            sample_rate=codec.sample_rate,
            language=_gladia_language(language),
            extra={"bit_depth": bit_depth, "channels": 1},
        )

    def _init_body(self, settings: EngineSettings) -> dict[str, Any]:
        return {
            "encoding": settings.encoding,
            "sample_rate": settings.sample_rate,
            "bit_depth": settings.extra["bit_depth"],
            "channels": settings.extra["channels"],
            "language_config": {"languages": [settings.language], "code_switching": False},
        }

    async def open_stream(self, settings: EngineSettings) -> GladiaRecognizerStream:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=_HTTP_TIMEOUT_S)

        try:
            response = await self._http_client.post(
                self._api_url,
                json=self._init_body(settings),
                headers={"X-Gladia-Key": self._api_key},
            )
        except httpx.HTTPError as exc:
            raise ProviderFatalError(PROVIDER_NAME, f"falha ao iniciar sessao: {exc}") from exc

        if response.is_error:
            raise ProviderFatalError(
                PROVIDER_NAME,
                f"falha ao iniciar sessao ({response.status_code}): {response.text}",
            )

        payload = response.json()
        session_id = str(payload.get("id", ""))
        session_url = payload.get("url")
        if not session_url:
            raise ProviderFatalError(PROVIDER_NAME, "resposta de init sem 'url'")

        try:
            websocket = await self._connect(session_url)
        except (OSError, WebSocketException) as exc:
            raise ProviderFatalError(PROVIDER_NAME, f"falha ao conectar WebSocket: {exc}") from exc

        logger.info("gladia_session_initiated", gladia_session_id=session_id)
        return GladiaRecognizerStream(session_id, websocket)

    async def close(self) -> None:
        client, self._http_client = self._http_client, None
        if client is not None:
            await client.aclose()
