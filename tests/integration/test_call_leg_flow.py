"""Teste de integracao do fluxo de um call leg.

Dispatcher, sessao, negociacao e StreamingProvider reais; apenas o vendor e
substituido por um recognizer de eco que "transcreve" cada chunk de audio
como um resultado final com o texto do proprio chunk.

Executar com:
    python -m pytest tests/integration/test_call_leg_flow.py -v --tb=short
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import pytest

from speechbridge._types import Codec, EngineSettings, ProviderState, TranscriptResult
from speechbridge.providers.interface import RecognizerClient, RecognizerStream
from speechbridge.providers.streaming import StreamingProvider
from speechbridge.server.dispatcher import Dispatcher
from speechbridge.session.session import create_session

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from speechbridge.config.bridge import BridgeConfig
    from speechbridge.providers.interface import EventSink

pytestmark = pytest.mark.integration


class EchoStream(RecognizerStream):
    def __init__(self, settings: EngineSettings) -> None:
        self.settings = settings
        self.received: list[bytes] = []
        self._results: asyncio.Queue[TranscriptResult | None] = asyncio.Queue()

    async def send_audio(self, chunk: bytes) -> None:
        self.received.append(chunk)
        text = f"{self.settings.language}:{chunk.decode()}"
        self._results.put_nowait(TranscriptResult(text=text, confidence=0.9, is_final=False))
        self._results.put_nowait(TranscriptResult(text=text, confidence=0.9, is_final=True))

    async def receive_results(self) -> AsyncIterator[TranscriptResult]:
        while True:
            result = await self._results.get()
            if result is None:
                return
            yield result

    async def finish(self) -> None:
        self._results.put_nowait(None)

    async def abort(self) -> None:
        self._results.put_nowait(None)


class EchoClient(RecognizerClient):
    def __init__(self) -> None:
        self.streams: list[EchoStream] = []
        self.closed = False

    @property
    def name(self) -> str:
        return "echo"

    def supports_codec(self, codec_name: str) -> bool:
        return codec_name in ("ulaw", "slin16")

    def supports_language(self, language: str) -> bool:
        return language in ("en-US", "es-ES")

    def build_settings(self, codec: Codec, language: str) -> EngineSettings:
        return EngineSettings(encoding=codec.name, sample_rate=codec.sample_rate, language=language)

    async def open_stream(self, settings: EngineSettings) -> EchoStream:
        stream = EchoStream(settings)
        self.streams.append(stream)
        return stream

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def echo_client() -> EchoClient:
    return EchoClient()


@pytest.fixture
def providers() -> list[StreamingProvider]:
    return []


@pytest.fixture
def dispatcher(
    bridge_config: BridgeConfig,
    echo_client: EchoClient,
    providers: list[StreamingProvider],
    fake_transport: Any,
) -> Dispatcher:
    def factory(name: str, config: BridgeConfig, on_event: EventSink) -> StreamingProvider:
        provider = StreamingProvider(
            echo_client,
            on_event,
            default_codec=config.default_codec,
            default_language=config.language,
            max_results=config.max_results,
            stop_timeout_s=1.0,
        )
        providers.append(provider)
        return provider

    session = create_session(bridge_config, provider_factory=factory)
    return Dispatcher(session, fake_transport)


async def _wait_for(predicate: Any, timeout: float = 1.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condicao nao atingida a tempo")
        await asyncio.sleep(0.01)


def _pushed_texts(sent: list[dict[str, Any]]) -> list[str]:
    return [
        message["params"]["results"][0]["text"]
        for message in sent
        if message.get("request") == "set" and "results" in message.get("params", {})
    ]


async def test_setup_audio_and_results_roundtrip(
    dispatcher: Dispatcher,
    fake_transport: Any,
    echo_client: EchoClient,
    providers: list[StreamingProvider],
) -> None:
    task = asyncio.create_task(dispatcher.run())

    # Audio antes do setup fica na fila do provider
    fake_transport.feed_bytes(b"early")
    fake_transport.feed_json(
        {
            "request": "setup",
            "id": "s1",
            "codecs": [{"name": "slin16", "sampleRate": 16000}],
            "params": {"language": "es-ES"},
        }
    )
    fake_transport.feed_bytes(b"hola")

    await _wait_for(lambda: len(_pushed_texts(fake_transport.sent)) == 2)

    fake_transport.feed_json({"request": "get", "id": "g1", "params": ["results", "codec"]})
    await _wait_for(lambda: any(m.get("id") == "g1" for m in fake_transport.sent))

    fake_transport.disconnect()
    await asyncio.wait_for(task, timeout=2.0)

    assert _pushed_texts(fake_transport.sent) == ["es-ES:early", "es-ES:hola"]
    get_response = next(m for m in fake_transport.sent if m.get("id") == "g1")
    assert get_response["params"]["results"] == [
        {"text": "es-ES:early", "confidence": 0.9, "final": True},
        {"text": "es-ES:hola", "confidence": 0.9, "final": True},
    ]
    assert get_response["params"]["codecs"]["name"] == "slin16"
    assert echo_client.streams[0].settings.sample_rate == 16000
    assert providers[0].state is ProviderState.ENDED
    assert echo_client.closed


async def test_reconfiguration_keeps_every_chunk_exactly_once(
    dispatcher: Dispatcher,
    fake_transport: Any,
    echo_client: EchoClient,
) -> None:
    task = asyncio.create_task(dispatcher.run())

    fake_transport.feed_json({"request": "set", "id": "1", "codecs": ["ulaw"], "params": {}})
    for chunk in (b"a", b"b"):
        fake_transport.feed_bytes(chunk)
    fake_transport.feed_json(
        {"request": "set", "id": "2", "codecs": ["ulaw"], "params": {"language": "es-ES"}}
    )
    for chunk in (b"c", b"d"):
        fake_transport.feed_bytes(chunk)

    await _wait_for(lambda: len(_pushed_texts(fake_transport.sent)) == 4)
    fake_transport.disconnect()
    await asyncio.wait_for(task, timeout=2.0)

    assert len(echo_client.streams) == 2
    assert echo_client.streams[0].received == [b"a", b"b"]
    assert echo_client.streams[1].received == [b"c", b"d"]
    assert _pushed_texts(fake_transport.sent) == ["en-US:a", "en-US:b", "es-ES:c", "es-ES:d"]


async def test_unsupported_language_keeps_session_running(
    dispatcher: Dispatcher,
    fake_transport: Any,
    echo_client: EchoClient,
) -> None:
    task = asyncio.create_task(dispatcher.run())

    fake_transport.feed_json({"request": "set", "id": "1", "codecs": ["ulaw"], "params": {}})
    fake_transport.feed_json(
        {"request": "set", "id": "2", "codecs": ["slin16"], "params": {"language": "fr-FR"}}
    )
    fake_transport.feed_json({"request": "get", "id": "3", "params": ["codec", "language"]})
    await _wait_for(lambda: any(m.get("id") == "3" for m in fake_transport.sent))

    fake_transport.disconnect()
    await asyncio.wait_for(task, timeout=2.0)

    responses = {m["id"]: m for m in fake_transport.sent if "response" in m}
    assert "error_msg" not in responses["1"]
    assert "fr-FR" in responses["2"]["error_msg"]
    assert responses["3"]["params"] == {
        "codecs": {"name": "ulaw", "sampleRate": 8000, "attributes": []},
        "language": "en-US",
    }
    assert len(echo_client.streams) == 1
