"""SpeechSession: estado de um call leg.

Uma conexao = uma sessao. A sessao agrupa as selecoes de codec/idioma, o
provider e o canal unico consumido pelo dispatcher. Tudo que chega para a
sessao (frames do transport, eventos do provider, fechamento) passa pelo
canal, em ordem de chegada.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from speechbridge.logging import get_logger
from speechbridge.providers.factory import create_provider
from speechbridge.providers.interface import ProviderFailedEvent, ProviderResultEvent
from speechbridge.server.transport import InboundFrame
from speechbridge.session.negotiation import CodecSelection, LanguageSelection

if TYPE_CHECKING:
    from collections.abc import Callable

    from speechbridge.config.bridge import BridgeConfig
    from speechbridge.providers.interface import EventSink, SpeechProvider

logger = get_logger("session")


@dataclass(frozen=True, slots=True)
class TransportClosed:
    """Marcador: o cliente fechou a conexao."""


# Itens do canal da sessao
SessionItem = InboundFrame | ProviderResultEvent | ProviderFailedEvent | TransportClosed


def _new_session_id() -> str:
    return f"sess_{uuid.uuid4().hex[:12]}"


@dataclass
class SpeechSession:
    """Estado mutavel de uma sessao.

    Mutado apenas pela task do dispatcher da sessao.
    """

    codecs: CodecSelection
    languages: LanguageSelection
    provider: SpeechProvider
    channel: asyncio.Queue[SessionItem]
    session_id: str = field(default_factory=_new_session_id)
    created_at: float = field(default_factory=time.monotonic)


def create_session(
    config: BridgeConfig,
    provider_name: str | None = None,
    provider_factory: Callable[[str, BridgeConfig, EventSink], SpeechProvider] = create_provider,
) -> SpeechSession:
    """Cria uma sessao nova com provider proprio.

    O callback de eventos do provider publica direto no canal da sessao
    (``put_nowait``: o canal e ilimitado e o dispatcher e o unico consumidor).

    Raises:
        ProviderNotFoundError: Nome de provider desconhecido.
        ConfigError: Configuracao obrigatoria do provider ausente.
    """
    channel: asyncio.Queue[SessionItem] = asyncio.Queue()
    name = provider_name or config.provider
    provider = provider_factory(name, config, channel.put_nowait)

    session = SpeechSession(
        codecs=CodecSelection(config.default_codec),
        languages=LanguageSelection(config.language),
        provider=provider,
        channel=channel,
    )
    logger.info(
        "session_created",
        session_id=session.session_id,
        provider=provider.name,
        codec=session.codecs.selected.name,
        language=session.languages.selected,
    )
    return session
