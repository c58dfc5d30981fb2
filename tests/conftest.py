"""Fixtures compartilhadas para todos os testes."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from speechbridge._types import ProviderState, RecognitionConfig, TranscriptResult
from speechbridge.config.bridge import BridgeConfig
from speechbridge.exceptions import (
    ProviderFatalError,
    UnsupportedCodecError,
    UnsupportedLanguageError,
)
from speechbridge.providers.interface import (
    EventSink,
    ProviderFailedEvent,
    ProviderResultEvent,
    SpeechProvider,
)
from speechbridge.server.transport import InboundFrame
from speechbridge.session.result_buffer import ResultBuffer


class FakeProvider(SpeechProvider):
    """Provider em memoria que registra todas as chamadas."""

    SUPPORTED_CODECS = frozenset({"ulaw", "slin16"})
    SUPPORTED_LANGUAGES = frozenset({"en-US", "es-ES", "pt-BR"})

    def __init__(self, on_event: EventSink, max_results: int = 100) -> None:
        self._on_event = on_event
        self._state = ProviderState.IDLE
        self._results = ResultBuffer(max_results)
        self.config: RecognitionConfig | None = None
        self.set_config_calls: list[RecognitionConfig] = []
        self.start_calls: list[RecognitionConfig | None] = []
        self.restart_calls: list[RecognitionConfig | None] = []
        self.writes: list[bytes] = []
        self.end_calls = 0
        self.restart_error: Exception | None = None
        self.fail_on_start: str | None = None

    @property
    def name(self) -> str:
        return "fake"

    @property
    def state(self) -> ProviderState:
        return self._state

    def set_config(self, config: RecognitionConfig) -> None:
        self.set_config_calls.append(config)
        if config.codec is not None and config.codec.name not in self.SUPPORTED_CODECS:
            raise UnsupportedCodecError(config.codec.name, self.name)
        if config.language is not None and config.language not in self.SUPPORTED_LANGUAGES:
            raise UnsupportedLanguageError(config.language, self.name)
        self.config = config

    async def start(self, config: RecognitionConfig | None = None) -> None:
        self.start_calls.append(config)
        if self.fail_on_start is not None:
            raise self.fail(self.fail_on_start)
        self._state = ProviderState.LISTENING

    async def write(self, chunk: bytes) -> None:
        self.writes.append(chunk)

    async def restart(self, config: RecognitionConfig | None = None) -> None:
        self.restart_calls.append(config)
        if self.restart_error is not None:
            raise self.restart_error
        self._state = ProviderState.LISTENING

    async def end(self) -> None:
        self.end_calls += 1
        self._state = ProviderState.ENDED

    def drain_results(self) -> list[TranscriptResult]:
        return self._results.drain()

    # --- Helpers de teste ---

    def emit_final(self, text: str, confidence: float = 0.9) -> TranscriptResult:
        result = TranscriptResult(text=text, confidence=confidence, is_final=True)
        self._results.append(result)
        self._on_event(ProviderResultEvent(result=result))
        return result

    def fail(self, reason: str = "boom") -> ProviderFatalError:
        error = ProviderFatalError(self.name, reason)
        self._state = ProviderState.ENDED
        self._on_event(ProviderFailedEvent(error=error))
        return error


class FakeTransport:
    """Transport em memoria: frames de entrada via fila, saida registrada."""

    def __init__(self) -> None:
        self._inbound: asyncio.Queue[InboundFrame | None] = asyncio.Queue()
        self.sent: list[dict[str, Any]] = []
        self.closed_with: tuple[int, str] | None = None

    def feed_json(self, message: Any) -> None:
        self._inbound.put_nowait(InboundFrame(data=json.dumps(message), is_binary=False))

    def feed_text(self, text: str) -> None:
        self._inbound.put_nowait(InboundFrame(data=text, is_binary=False))

    def feed_bytes(self, data: bytes) -> None:
        self._inbound.put_nowait(InboundFrame(data=data, is_binary=True))

    def disconnect(self) -> None:
        self._inbound.put_nowait(None)

    async def receive(self) -> InboundFrame | None:
        return await self._inbound.get()

    async def send_text(self, text: str) -> None:
        self.sent.append(json.loads(text))

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self.closed_with is None:
            self.closed_with = (code, reason)
        self._inbound.put_nowait(None)


@pytest.fixture
def bridge_config() -> BridgeConfig:
    """Config default (ulaw@8000, en-US) sem dependencia de env."""
    return BridgeConfig()


@pytest.fixture
def fake_providers() -> list[FakeProvider]:
    """Providers criados pela ``fake_provider_factory``, em ordem."""
    return []


@pytest.fixture
def fake_provider_factory(fake_providers: list[FakeProvider]) -> Any:
    """Factory compativel com ``create_provider`` que cria ``FakeProvider``."""

    def _factory(name: str, config: BridgeConfig, on_event: EventSink) -> FakeProvider:
        provider = FakeProvider(on_event, max_results=config.max_results)
        fake_providers.append(provider)
        return provider

    return _factory


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()
