"""Dispatcher: protocolo de controle e push de resultados de uma sessao.

Uma task por sessao consome o canal da sessao em ordem de chegada:

- ``InboundFrame`` binario -> ``provider.write(bytes)`` sem modificacao
- ``InboundFrame`` texto com ``request`` -> handler do verbo, sempre
  exatamente uma response com o mesmo verbo e id
- ``InboundFrame`` texto com ``response`` -> no-op (sem protocolo de ack)
- ``ProviderResultEvent`` -> push ``{request: "set", id: <novo>, params: {results}}``
- ``ProviderFailedEvent`` -> push com ``error_msg`` e fechamento do transport
- ``TransportClosed`` -> encerra o loop; ``provider.end()`` exatamente uma vez

Uma task auxiliar le o transport e publica os frames no mesmo canal, de modo
que selecoes de codec/idioma e o buffer de resultados so sao tocados pela
task do dispatcher.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import time
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from speechbridge._types import ProviderState, RecognitionConfig, RequestVerb
from speechbridge.exceptions import ProtocolError, SpeechBridgeError
from speechbridge.logging import bind_session_context, clear_session_context, get_logger
from speechbridge.providers.interface import ProviderFailedEvent, ProviderResultEvent
from speechbridge.server.models.messages import (
    PushMessage,
    RequestMessage,
    ResponseMessage,
    ResultPayload,
)
from speechbridge.server.transport import InboundFrame
from speechbridge.server.ws_protocol import (
    AudioFrameResult,
    RequestResult,
    ResponseResult,
    parse_frame,
)
from speechbridge.session.metrics import HAS_METRICS, active_sessions, session_duration_seconds
from speechbridge.session.session import TransportClosed

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from speechbridge._types import TranscriptResult
    from speechbridge.server.transport import Transport
    from speechbridge.session.session import SessionItem, SpeechSession

logger = get_logger("server.dispatcher")

# Codigo de fechamento apos falha fatal do provider (internal error)
CLOSE_CODE_PROVIDER_FAILED = 1011

# Campo "codec" do get responde sob a chave "codecs" (selecao atual)
CODEC_FIELDS = ("codec", "codecs")


def _result_payload(result: TranscriptResult) -> ResultPayload:
    return ResultPayload(text=result.text, confidence=result.confidence)


# ---------------------------------------------------------------------------
# Verb handlers
# ---------------------------------------------------------------------------


async def _handle_get(
    session: SpeechSession,
    request: RequestMessage,
    response: ResponseMessage,
) -> None:
    """Le campos da sessao sem efeitos colaterais (exceto drain de ``results``)."""
    fields = request.params
    if not isinstance(fields, list) or not fields:
        raise ProtocolError("'params' deve ser uma lista nao vazia de campos")

    params: dict[str, Any] = {}
    for field_name in fields:
        if field_name in CODEC_FIELDS:
            params["codecs"] = session.codecs.selected.to_wire()
        elif field_name == "language":
            params["language"] = session.languages.selected
        elif field_name == "results":
            drained = session.provider.drain_results()
            params["results"] = [_result_payload(r).model_dump(mode="json") for r in drained]
        else:
            logger.warning("get_unknown_field", field=field_name)
    response.params = params


async def _handle_set(
    session: SpeechSession,
    request: RequestMessage,
    response: ResponseMessage,
) -> None:
    """Negocia codec/idioma, valida no provider e so entao faz commit.

    Falha de validacao nao altera a selecao da sessao nem reinicia o provider.
    """
    if request.codecs is None:
        raise ProtocolError("Campo 'codecs' obrigatorio")
    if not isinstance(request.params, dict):
        raise ProtocolError("Campo 'params' deve ser um objeto")

    current_codec = session.codecs.selected
    current_language = session.languages.selected

    pending_codec = session.codecs.first(request.codecs)
    pending_language = current_language
    language_requested = False
    for key, value in request.params.items():
        if key == "language":
            pending_language = session.languages.first(value)
            language_requested = True
        else:
            logger.warning("set_unknown_param", param=key)

    pending = RecognitionConfig(codec=pending_codec, language=pending_language)
    provider = session.provider
    provider.set_config(pending)

    changed = pending_codec != current_codec or pending_language != current_language
    if changed:
        await provider.restart(pending)
    elif provider.state is ProviderState.IDLE:
        await provider.start(pending)

    session.codecs.selected = pending_codec
    session.languages.selected = pending_language

    response.codecs = [pending_codec.to_wire()]
    if language_requested:
        response.params = {"language": pending_language}
    logger.info(
        "session_configured",
        codec=pending_codec.name,
        sample_rate=pending_codec.sample_rate,
        language=pending_language,
        restarted=changed,
    )


_HANDLERS: dict[
    RequestVerb,
    Callable[[SpeechSession, RequestMessage, ResponseMessage], Awaitable[None]],
] = {
    RequestVerb.GET: _handle_get,
    RequestVerb.SET: _handle_set,
    RequestVerb.SETUP: _handle_set,
}


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


class Dispatcher:
    """Loop de uma sessao sobre um transport.

    Args:
        session: Sessao (selecoes, provider e canal).
        transport: Canal de mensagens com o cliente.
    """

    def __init__(self, session: SpeechSession, transport: Transport) -> None:
        self._session = session
        self._transport = transport
        self._reader_task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def session(self) -> SpeechSession:
        return self._session

    @property
    def closed(self) -> bool:
        return self._closed

    async def run(self) -> None:
        """Processa o canal da sessao ate o transport fechar."""
        session = self._session
        bind_session_context(session.session_id)
        if HAS_METRICS and active_sessions is not None:
            active_sessions.inc()
        logger.info("session_started", provider=session.provider.name)

        self._reader_task = asyncio.create_task(self._pump_transport())
        try:
            while True:
                item = await session.channel.get()
                if isinstance(item, TransportClosed):
                    break
                await self.handle_item(item)
        finally:
            await self.close()
            if HAS_METRICS and active_sessions is not None:
                active_sessions.dec()
            if HAS_METRICS and session_duration_seconds is not None:
                session_duration_seconds.observe(time.monotonic() - session.created_at)
            logger.info("session_closed")
            clear_session_context()

    async def _pump_transport(self) -> None:
        """Le frames do transport e publica no canal da sessao."""
        channel = self._session.channel
        try:
            while True:
                frame = await self._transport.receive()
                if frame is None:
                    break
                channel.put_nowait(frame)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("transport_receive_error")
        channel.put_nowait(TransportClosed())

    async def handle_item(self, item: SessionItem) -> None:
        """Processa um item do canal da sessao."""
        if isinstance(item, InboundFrame):
            await self.handle_frame(item)
        elif isinstance(item, ProviderResultEvent):
            await self._push_result(item.result)
        elif isinstance(item, ProviderFailedEvent):
            await self._push_failure(item)

    async def handle_frame(self, frame: InboundFrame) -> None:
        parsed = parse_frame(frame)
        if parsed is None:
            return

        if isinstance(parsed, AudioFrameResult):
            await self._session.provider.write(parsed.data)
            return

        if isinstance(parsed, ResponseResult):
            # Sem protocolo de ack: responses do cliente sao aceitas e ignoradas
            logger.debug("client_response_ignored", response=parsed.message.get("response"))
            return

        if isinstance(parsed, RequestResult):
            response = await self.handle_request(parsed.message)
            await self._send(response.to_wire())

    async def handle_request(self, message: dict[str, Any]) -> ResponseMessage:
        """Executa o handler do verbo e constroi a response.

        Qualquer exception do handler vira ``error_msg`` na propria response.
        """
        verb_name = str(message.get("request"))
        response = ResponseMessage(response=verb_name, id=_echo_id(message.get("id")))

        try:
            try:
                request = RequestMessage.model_validate(message)
            except ValidationError as exc:
                raise ProtocolError(f"Request invalido: {exc.errors()[0]['msg']}") from exc

            try:
                verb = RequestVerb(request.request)
            except ValueError:
                raise ProtocolError(f"Request '{request.request}' nao suportado") from None

            handler = _HANDLERS[verb]
            await handler(self._session, request, response)
        except SpeechBridgeError as exc:
            logger.warning("request_failed", request=verb_name, error=str(exc))
            _fail_response(response, str(exc))
        except Exception as exc:
            logger.exception("request_handler_error", request=verb_name)
            _fail_response(response, str(exc) or type(exc).__name__)

        return response

    async def _push_result(self, result: TranscriptResult) -> None:
        push = PushMessage.results([_result_payload(result)])
        await self._send(push.to_wire())

    async def _push_failure(self, event: ProviderFailedEvent) -> None:
        error = event.error
        logger.error("provider_failure_relayed", provider=error.provider_name, reason=error.reason)
        await self._send(PushMessage.error(str(error)).to_wire())
        await self._transport.close(code=CLOSE_CODE_PROVIDER_FAILED, reason="provider failed")

    async def _send(self, payload: dict[str, Any]) -> None:
        try:
            await self._transport.send_text(json.dumps(payload))
        except Exception:
            logger.warning("send_failed", exc_info=True)

    async def close(self) -> None:
        """Encerra a sessao: para o leitor e finaliza o provider. Idempotente."""
        if self._closed:
            return
        self._closed = True

        reader, self._reader_task = self._reader_task, None
        if reader is not None and not reader.done():
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader

        try:
            await self._session.provider.end()
        except Exception:
            logger.exception("provider_end_error")


def _echo_id(raw_id: Any) -> str | int | None:
    if raw_id is None or isinstance(raw_id, (str, int)):
        return raw_id
    return str(raw_id)


def _fail_response(response: ResponseMessage, error_msg: str) -> None:
    response.params = None
    response.codecs = None
    response.error_msg = error_msg
