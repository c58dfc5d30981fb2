"""Adapter Google Cloud Speech-to-Text (streaming_recognize).

Abre uma chamada bidirecional por sessao remota: o primeiro request leva o
``StreamingRecognitionConfig`` e os seguintes o audio. Fim de stream e
sinalizado encerrando o iterator de requests; o Google entrega os resultados
pendentes e fecha o lado de resposta.

O Google encerra streams longos por conta propria, por isso o provider faz
restart proativo a cada ``restart_time_s``.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from google.api_core import exceptions as google_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import speech

from speechbridge._types import EngineSettings, TranscriptResult, clamp_confidence
from speechbridge.exceptions import ProviderFatalError
from speechbridge.logging import get_logger
from speechbridge.providers.interface import RecognizerClient, RecognizerStream

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, AsyncIterator, Sequence

    from speechbridge._types import Codec

logger = get_logger("provider.google")

PROVIDER_NAME = "google"

# Codec do call leg -> AudioEncoding do Google
GOOGLE_ENCODINGS: dict[str, str] = {
    "ulaw": "MULAW",
    "slin16": "LINEAR16",
    "opus": "OGG_OPUS",
}

DEFAULT_LANGUAGES = ("en-US",)
DEFAULT_RESTART_TIME_S = 10.0


class GoogleRecognizerStream(RecognizerStream):
    """Uma chamada ``streaming_recognize`` em andamento."""

    def __init__(
        self,
        audio_queue: asyncio.Queue[bytes | None],
        responses: AsyncIterable[Any],
    ) -> None:
        self._audio_queue = audio_queue
        self._responses = responses
        self._finished = False

    async def send_audio(self, chunk: bytes) -> None:
        if self._finished:
            raise ProviderFatalError(PROVIDER_NAME, "stream ja finalizado")
        self._audio_queue.put_nowait(chunk)

    async def receive_results(self) -> AsyncIterator[TranscriptResult]:
        try:
            async for response in self._responses:
                if response.error.code:
                    raise ProviderFatalError(PROVIDER_NAME, response.error.message)

                if not response.results:
                    logger.debug("google_response_without_results")
                    continue

                for result in response.results:
                    if not result.alternatives:
                        continue
                    alternative = result.alternatives[0]
                    # 0.0 e o sentinel de "confidence nao informada"
                    confidence = alternative.confidence or None
                    yield TranscriptResult(
                        text=alternative.transcript.strip(),
                        confidence=clamp_confidence(confidence),
                        is_final=bool(result.is_final),
                    )
        except google_exceptions.GoogleAPICallError as exc:
            raise ProviderFatalError(PROVIDER_NAME, exc.message or str(exc)) from exc

    async def finish(self) -> None:
        if self._finished:
            return
        self._finished = True
        self._audio_queue.put_nowait(None)

    async def abort(self) -> None:
        await self.finish()
        cancel = getattr(self._responses, "cancel", None)
        if callable(cancel):
            cancel()


class GoogleRecognizer(RecognizerClient):
    """Cliente Google Cloud Speech para um provider de sessao.

    Args:
        languages: Idiomas aceitos (codigos BCP-47).
        restart_time_s: Intervalo do restart proativo (0 desabilita).
        model: Modelo de reconhecimento do Google (opcional).
        interim_results: Pede hipoteses intermediarias (descartadas pelo provider).
        speech_client: ``SpeechAsyncClient`` pre-construido (testes). Por default
            e criado no primeiro ``open_stream`` usando as credenciais do ambiente.
    """

    def __init__(
        self,
        languages: Sequence[str] = DEFAULT_LANGUAGES,
        restart_time_s: float = DEFAULT_RESTART_TIME_S,
        model: str | None = None,
        interim_results: bool = True,
        speech_client: Any = None,
    ) -> None:
        self._languages = frozenset(languages)
        self._restart_time_s = restart_time_s
        self._model = model
        self._interim_results = interim_results
        self._speech_client = speech_client

    @property
    def name(self) -> str:
        return PROVIDER_NAME

    @property
    def restart_interval_s(self) -> float | None:
        return self._restart_time_s or None

    def supports_codec(self, codec_name: str) -> bool:
        return codec_name in GOOGLE_ENCODINGS

    def supports_language(self, language: str) -> bool:
        return language in self._languages

    def build_settings(self, codec: Codec, language: str) -> EngineSettings:
        extra: dict[str, Any] = {}
        if self._model:
            extra["model"] = self._model
        return EngineSettings(
            encoding=GOOGLE_ENCODINGS[codec.name],
            sample_rate=codec.sample_rate,
            language=language,
            extra=extra,
        )

    def _build_streaming_config(self, settings: EngineSettings) -> Any:
        config = speech.RecognitionConfig(
            encoding=getattr(speech.RecognitionConfig.AudioEncoding, settings.encoding),
            sample_rate_hertz=settings.sample_rate,
            language_code=settings.language,
            **settings.extra,
        )
        return speech.StreamingRecognitionConfig(
            config=config,
            interim_results=self._interim_results,
        )

    async def open_stream(self, settings: EngineSettings) -> GoogleRecognizerStream:
        streaming_config = self._build_streaming_config(settings)
        audio_queue: asyncio.Queue[bytes | None] = asyncio.Queue()

        async def _requests() -> AsyncIterator[Any]:
            yield speech.StreamingRecognizeRequest(streaming_config=streaming_config)
            while True:
                chunk = await audio_queue.get()
                if chunk is None:
                    return
                yield speech.StreamingRecognizeRequest(audio_content=chunk)

        try:
            if self._speech_client is None:
                self._speech_client = speech.SpeechAsyncClient()
            responses = await self._speech_client.streaming_recognize(requests=_requests())
        except (google_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError) as exc:
            raise ProviderFatalError(PROVIDER_NAME, str(exc)) from exc

        logger.debug(
            "google_stream_opened",
            encoding=settings.encoding,
            sample_rate=settings.sample_rate,
            language=settings.language,
        )
        return GoogleRecognizerStream(audio_queue, responses)

    async def close(self) -> None:
        client, self._speech_client = self._speech_client, None
        transport = getattr(client, "transport", None)
        if transport is not None:
            await transport.close()
