"""Interfaces abstratas para providers de reconhecimento de fala.

Duas camadas:

- ``SpeechProvider``: contrato consumido pelo dispatcher (uma instancia por
  sessao). Gerencia o ciclo de vida da sessao remota, enfileira audio,
  armazena resultados finais e emite eventos no canal da sessao.
- ``RecognizerClient`` / ``RecognizerStream``: adapter de vendor (Google,
  Gladia). Conhece apenas o protocolo de rede do vendor e converte resultados
  nativos para ``TranscriptResult``. Adicionar um vendor requer implementar
  estas duas classes e registra-lo em ``providers.factory``. Zero mudancas no
  dispatcher.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from speechbridge._types import (
        Codec,
        EngineSettings,
        ProviderState,
        RecognitionConfig,
        TranscriptResult,
    )
    from speechbridge.exceptions import ProviderFatalError


# ---------------------------------------------------------------------------
# Provider -> Dispatcher events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ProviderResultEvent:
    """Resultado final emitido pelo provider."""

    result: TranscriptResult


@dataclass(frozen=True, slots=True)
class ProviderFailedEvent:
    """Falha fatal da sessao remota; o provider ja esta em ENDED."""

    error: ProviderFatalError


ProviderEvent = ProviderResultEvent | ProviderFailedEvent

# Callback sincrono (nao bloqueante) que publica no canal da sessao
EventSink = Callable[[ProviderEvent], None]


class SpeechProvider(ABC):
    """Contrato que todo provider de sessao deve implementar.

    O dispatcher interage com o backend de reconhecimento exclusivamente
    atraves desta interface.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Nome do provider (ex: "google", "gladia")."""
        ...

    @property
    @abstractmethod
    def state(self) -> ProviderState:
        """Estado atual do ciclo de vida."""
        ...

    @abstractmethod
    def set_config(self, config: RecognitionConfig) -> None:
        """Valida e aplica codec/idioma na configuracao interna.

        Valida TODOS os campos antes de aplicar qualquer um. Nao afeta uma
        sessao remota ativa; vale a partir do proximo start/restart.

        Raises:
            UnsupportedCodecError: Codec fora do conjunto suportado.
            UnsupportedLanguageError: Idioma fora do conjunto suportado.
        """
        ...

    @abstractmethod
    async def start(self, config: RecognitionConfig | None = None) -> None:
        """Abre a sessao remota. No-op se ja houver uma ativa."""
        ...

    @abstractmethod
    async def write(self, chunk: bytes) -> None:
        """Encaminha um chunk de audio (ou enfileira se nao houver sessao ativa)."""
        ...

    @abstractmethod
    async def restart(self, config: RecognitionConfig | None = None) -> None:
        """Para a sessao remota atual (com flush) e abre uma nova."""
        ...

    @abstractmethod
    async def end(self) -> None:
        """Finaliza a sessao remota e libera recursos. Idempotente."""
        ...

    @abstractmethod
    def drain_results(self) -> list[TranscriptResult]:
        """Remove e retorna os resultados finais armazenados."""
        ...


class RecognizerStream(ABC):
    """Handle para uma sessao remota de reconhecimento em streaming.

    Lifecycle tipico:
        1. RecognizerClient.open_stream() cria o handle (handshake concluido)
        2. send_audio() envia chunks
        3. receive_results() consome resultados (partial e final)
        4. finish() sinaliza fim de utterance; receive_results() termina
           depois que o vendor entrega os resultados pendentes
        5. abort() encerra imediatamente
    """

    @abstractmethod
    async def send_audio(self, chunk: bytes) -> None:
        """Envia audio ao vendor.

        Raises:
            ProviderFatalError: Se a conexao com o vendor falhou.
        """
        ...

    @abstractmethod
    def receive_results(self) -> AsyncIterator[TranscriptResult]:
        """Itera resultados convertidos para a forma canonica.

        Raises:
            ProviderFatalError: Erro de transporte, fechamento inesperado ou
                payload de erro do vendor.
        """
        ...

    @abstractmethod
    async def finish(self) -> None:
        """Sinaliza fim de stream ao vendor. Idempotente."""
        ...

    @abstractmethod
    async def abort(self) -> None:
        """Encerra a sessao remota sem aguardar resultados pendentes."""
        ...

    @property
    def closed_normally(self) -> bool:
        """True se o vendor encerrou a sessao de forma limpa (sem erro).

        Consultado quando ``receive_results()`` termina sem ``finish()``: um
        encerramento limpo leva a restart, qualquer outro e fatal.
        """
        return False


class RecognizerClient(ABC):
    """Adapter de vendor: capacidades suportadas e abertura de streams."""

    @property
    @abstractmethod
    def name(self) -> str: ...

    @property
    def restart_interval_s(self) -> float | None:
        """Intervalo de restart proativo (limite de sessao do vendor), ou None."""
        return None

    @abstractmethod
    def supports_codec(self, codec_name: str) -> bool: ...

    @abstractmethod
    def supports_language(self, language: str) -> bool: ...

    @abstractmethod
    def build_settings(self, codec: Codec, language: str) -> EngineSettings:
        """Traduz codec/idioma ja validados para o vocabulario do vendor."""
        ...

    @abstractmethod
    async def open_stream(self, settings: EngineSettings) -> RecognizerStream:
        """Abre uma sessao remota (pode envolver round trip de rede).

        Raises:
            ProviderFatalError: Se o handshake com o vendor falhar.
        """
        ...

    async def close(self) -> None:
        """Libera recursos do cliente (canais, pools de conexao)."""
        return None
