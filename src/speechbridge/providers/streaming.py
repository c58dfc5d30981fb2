"""StreamingProvider: ciclo de vida de uma sessao remota de reconhecimento.

Implementacao unica de ``SpeechProvider`` sobre qualquer ``RecognizerClient``.
Toda a logica de estado fica aqui; o adapter de vendor so conhece o protocolo
de rede.

Maquina de estados:
    IDLE -> LISTENING -> RESTARTING -> LISTENING ... -> ENDED

Regras:
- Operacoes de ciclo de vida (start, restart, end, restart proativo) e envio
  de audio sao serializados por um ``asyncio.Lock``. Um chunk nunca e enviado
  a uma sessao remota que ja esta parando.
- ``write()`` fora de LISTENING, ou com uma operacao de ciclo de vida em
  andamento, enfileira o chunk. A fila e reenviada (em ordem) logo apos o
  proximo start/restart bem sucedido. A fila e limitada por bytes; o excesso
  descarta os chunks mais antigos.
- ``restart()`` so abre a nova sessao depois que a anterior recebeu fim de
  stream e entregou os resultados pendentes (ou estourou ``stop_timeout_s``).
- Sessao remota encerrada de forma limpa pelo vendor (``closed_normally``)
  e reaberta com restart ``remote_closed``; qualquer outro fim e fatal.
- Apenas resultados finais sao armazenados e emitidos.
- Falha fatal (handshake, envio, recepcao) leva a ENDED e emite
  ``ProviderFailedEvent`` no canal da sessao.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections import deque
from typing import TYPE_CHECKING

from speechbridge._types import ProviderState, RecognitionConfig
from speechbridge.exceptions import (
    ProviderFatalError,
    UnsupportedCodecError,
    UnsupportedLanguageError,
)
from speechbridge.logging import get_logger
from speechbridge.providers.interface import (
    ProviderFailedEvent,
    ProviderResultEvent,
    SpeechProvider,
)
from speechbridge.session.metrics import (
    HAS_METRICS,
    provider_failures_total,
    provider_restarts_total,
    results_final_total,
)
from speechbridge.session.result_buffer import DEFAULT_MAX_RESULTS, ResultBuffer

if TYPE_CHECKING:
    from speechbridge._types import Codec, EngineSettings, TranscriptResult
    from speechbridge.providers.interface import EventSink, RecognizerClient, RecognizerStream

logger = get_logger("provider.streaming")

DEFAULT_STOP_TIMEOUT_S = 5.0
DEFAULT_MAX_PENDING_AUDIO_BYTES = 1_920_000


class StreamingProvider(SpeechProvider):
    """Provider de sessao sobre um adapter de vendor.

    Args:
        client: Adapter do vendor (Google, Gladia, ...).
        on_event: Callback sincrono que publica eventos no canal da sessao.
        default_codec: Codec inicial.
        default_language: Idioma inicial.
        max_results: Capacidade do buffer de resultados finais.
        restart_interval_s: Intervalo do restart proativo. None usa o default
            do vendor; 0 desabilita.
        stop_timeout_s: Tempo maximo aguardando resultados ao parar a sessao remota.
        max_pending_audio_bytes: Limite da fila de audio sem sessao ativa.
    """

    def __init__(
        self,
        client: RecognizerClient,
        on_event: EventSink,
        *,
        default_codec: Codec,
        default_language: str,
        max_results: int = DEFAULT_MAX_RESULTS,
        restart_interval_s: float | None = None,
        stop_timeout_s: float = DEFAULT_STOP_TIMEOUT_S,
        max_pending_audio_bytes: int = DEFAULT_MAX_PENDING_AUDIO_BYTES,
    ) -> None:
        self._client = client
        self._on_event = on_event
        self._codec = default_codec
        self._language = default_language
        self._settings: EngineSettings | None = None

        self._results = ResultBuffer(max_results)
        self._restart_interval_s = (
            client.restart_interval_s if restart_interval_s is None else restart_interval_s
        )
        self._stop_timeout_s = stop_timeout_s

        self._state = ProviderState.IDLE
        self._lock = asyncio.Lock()
        self._stream: RecognizerStream | None = None
        self._receiver_task: asyncio.Task[None] | None = None
        self._restart_timer: asyncio.Task[None] | None = None
        self._end_requested = False

        # Audio recebido sem sessao remota pronta
        self._pending: deque[bytes] = deque()
        self._pending_bytes = 0
        self._max_pending_bytes = max_pending_audio_bytes
        self._dropped_chunks = 0

    @property
    def name(self) -> str:
        return self._client.name

    @property
    def state(self) -> ProviderState:
        return self._state

    @property
    def config(self) -> RecognitionConfig:
        """Codec e idioma da configuracao interna (ultima aplicada)."""
        return RecognitionConfig(codec=self._codec, language=self._language)

    @property
    def pending_audio_bytes(self) -> int:
        return self._pending_bytes

    def drain_results(self) -> list[TranscriptResult]:
        return self._results.drain()

    # ------------------------------------------------------------------
    # Configuracao
    # ------------------------------------------------------------------

    def set_config(self, config: RecognitionConfig) -> None:
        codec = config.codec or self._codec
        language = config.language or self._language

        if not self._client.supports_codec(codec.name):
            raise UnsupportedCodecError(codec.name, self.name)
        if not self._client.supports_language(language):
            raise UnsupportedLanguageError(language, self.name)

        settings = self._client.build_settings(codec, language)
        self._codec = codec
        self._language = language
        self._settings = settings
        logger.debug(
            "provider_config_applied",
            provider=self.name,
            encoding=settings.encoding,
            sample_rate=settings.sample_rate,
            language=settings.language,
        )

    # ------------------------------------------------------------------
    # Ciclo de vida
    # ------------------------------------------------------------------

    async def start(self, config: RecognitionConfig | None = None) -> None:
        async with self._lock:
            await self._start_locked(config)

    async def restart(self, config: RecognitionConfig | None = None) -> None:
        async with self._lock:
            await self._restart_locked(config, reason="config")

    async def end(self) -> None:
        if self._end_requested:
            return
        self._end_requested = True

        async with self._lock:
            if self._state is not ProviderState.ENDED:
                await self._stop_locked()
                self._state = ProviderState.ENDED
            self._clear_pending()

        await self._client.close()
        logger.info(
            "provider_ended",
            provider=self.name,
            dropped_chunks=self._dropped_chunks,
            dropped_results=self._results.dropped,
        )

    async def _start_locked(self, config: RecognitionConfig | None) -> None:
        if self._state is ProviderState.ENDED:
            raise ProviderFatalError(self.name, "provider ja encerrado")
        if self._stream is not None:
            return

        if config is not None:
            self.set_config(config)
        elif self._settings is None:
            self.set_config(RecognitionConfig())
        assert self._settings is not None

        try:
            stream = await self._client.open_stream(self._settings)
        except ProviderFatalError as exc:
            await self._fail(exc)
            raise

        self._stream = stream
        self._receiver_task = asyncio.create_task(self._receive_loop(stream))
        self._state = ProviderState.LISTENING
        logger.info(
            "provider_started",
            provider=self.name,
            codec=self._codec.name,
            sample_rate=self._codec.sample_rate,
            language=self._language,
            pending_bytes=self._pending_bytes,
        )

        await self._flush_pending(stream)
        if self._state is ProviderState.LISTENING:
            self._arm_restart_timer(stream)

    async def _restart_locked(self, config: RecognitionConfig | None, reason: str) -> None:
        if self._state is ProviderState.ENDED:
            raise ProviderFatalError(self.name, "provider ja encerrado")

        # Valida antes de derrubar a sessao atual
        if config is not None:
            self.set_config(config)

        if self._stream is not None:
            self._state = ProviderState.RESTARTING
            await self._stop_locked()

        if HAS_METRICS and provider_restarts_total is not None:
            provider_restarts_total.labels(provider=self.name, reason=reason).inc()
        logger.debug("provider_restarting", provider=self.name, reason=reason)

        await self._start_locked(None)

    async def _stop_locked(self) -> None:
        """Fim de stream na sessao remota, aguardando resultados pendentes."""
        self._cancel_restart_timer()

        stream, self._stream = self._stream, None
        task, self._receiver_task = self._receiver_task, None
        if stream is None:
            return

        try:
            await stream.finish()
        except ProviderFatalError as exc:
            logger.warning("provider_finish_failed", provider=self.name, error=str(exc))

        if task is None:
            return

        done, _ = await asyncio.wait({task}, timeout=self._stop_timeout_s)
        if not done:
            logger.warning(
                "provider_stop_timeout",
                provider=self.name,
                timeout_s=self._stop_timeout_s,
            )
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            await stream.abort()

    # ------------------------------------------------------------------
    # Audio
    # ------------------------------------------------------------------

    async def write(self, chunk: bytes) -> None:
        if self._state is ProviderState.ENDED:
            logger.debug("audio_dropped_provider_ended", size_bytes=len(chunk))
            return

        if self._state is not ProviderState.LISTENING or self._lock.locked():
            self._enqueue(chunk)
            return

        async with self._lock:
            stream = self._stream
            if stream is None or self._state is not ProviderState.LISTENING:
                self._enqueue(chunk)
                return
            try:
                await stream.send_audio(chunk)
            except ProviderFatalError as exc:
                await self._fail(exc)

    def _enqueue(self, chunk: bytes) -> None:
        if self._max_pending_bytes <= 0:
            self._dropped_chunks += 1
            logger.warning("audio_dropped_not_ready", size_bytes=len(chunk))
            return

        self._pending.append(chunk)
        self._pending_bytes += len(chunk)

        dropped = 0
        while self._pending_bytes > self._max_pending_bytes and self._pending:
            oldest = self._pending.popleft()
            self._pending_bytes -= len(oldest)
            dropped += 1
        if dropped:
            self._dropped_chunks += dropped
            logger.warning(
                "pending_audio_overflow",
                dropped_chunks=dropped,
                max_pending_bytes=self._max_pending_bytes,
            )

    async def _flush_pending(self, stream: RecognizerStream) -> None:
        while self._pending and self._stream is stream:
            chunk = self._pending.popleft()
            self._pending_bytes -= len(chunk)
            try:
                await stream.send_audio(chunk)
            except ProviderFatalError as exc:
                await self._fail(exc)
                return

    def _clear_pending(self) -> None:
        self._pending.clear()
        self._pending_bytes = 0

    # ------------------------------------------------------------------
    # Resultados
    # ------------------------------------------------------------------

    async def _receive_loop(self, stream: RecognizerStream) -> None:
        try:
            async for result in stream.receive_results():
                if not result.is_final:
                    continue
                self._results.append(result)
                if HAS_METRICS and results_final_total is not None:
                    results_final_total.labels(provider=self.name).inc()
                logger.debug("final_result", provider=self.name, text_len=len(result.text))
                self._on_event(ProviderResultEvent(result=result))
        except ProviderFatalError as exc:
            if stream is self._stream:
                await self._fail(exc)
            else:
                logger.debug("stale_stream_error", provider=self.name, error=str(exc))
            return
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("provider_receive_error", provider=self.name)
            if stream is self._stream:
                await self._fail(ProviderFatalError(self.name, str(exc) or type(exc).__name__))
            return

        if stream is not self._stream or self._state is not ProviderState.LISTENING:
            return

        if not stream.closed_normally:
            await self._fail(ProviderFatalError(self.name, "sessao remota encerrada inesperadamente"))
            return

        # Close limpo do vendor: audio enfileirado ate a nova sessao.
        # Restart fora desta task: _stop_locked aguarda o receiver.
        logger.info("remote_session_closed", provider=self.name)
        self._state = ProviderState.RESTARTING
        self._cancel_restart_timer()
        self._restart_timer = asyncio.create_task(
            self._restart_after(0, stream, reason="remote_closed"),
        )

    async def _fail(self, error: ProviderFatalError) -> None:
        """Transita para ENDED e notifica a sessao. Idempotente, sem lock."""
        if self._state is ProviderState.ENDED:
            return

        logger.error("provider_failed", provider=self.name, reason=error.reason)
        self._state = ProviderState.ENDED
        self._cancel_restart_timer()
        self._clear_pending()

        stream, self._stream = self._stream, None
        task, self._receiver_task = self._receiver_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
        if stream is not None:
            await stream.abort()

        if HAS_METRICS and provider_failures_total is not None:
            provider_failures_total.labels(provider=self.name).inc()

        self._on_event(ProviderFailedEvent(error=error))
        await self._client.close()

    # ------------------------------------------------------------------
    # Restart proativo
    # ------------------------------------------------------------------

    def _arm_restart_timer(self, stream: RecognizerStream) -> None:
        if not self._restart_interval_s:
            return
        self._restart_timer = asyncio.create_task(
            self._restart_after(self._restart_interval_s, stream),
        )

    def _cancel_restart_timer(self) -> None:
        timer, self._restart_timer = self._restart_timer, None
        if timer is not None and timer is not asyncio.current_task():
            timer.cancel()

    async def _restart_after(
        self, delay_s: float, stream: RecognizerStream, reason: str = "timer"
    ) -> None:
        await asyncio.sleep(delay_s)
        async with self._lock:
            # Sessao ja substituida por restart explicito ou encerrada
            if self._stream is not stream or self._state is ProviderState.ENDED:
                return
            self._restart_timer = None
            try:
                await self._restart_locked(None, reason=reason)
            except ProviderFatalError:
                # Ja notificado via ProviderFailedEvent
                return
