"""Factory de providers por nome.

Chamada uma vez por sessao, na construcao da sessao. Nao ha registry global
mutavel: os vendors conhecidos sao enumerados aqui.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from speechbridge.exceptions import ProviderNotFoundError
from speechbridge.providers.streaming import StreamingProvider

if TYPE_CHECKING:
    from speechbridge.config.bridge import BridgeConfig
    from speechbridge.providers.interface import EventSink, RecognizerClient, SpeechProvider

SUPPORTED_PROVIDERS = ("google", "gladia")


def create_recognizer(name: str, config: BridgeConfig) -> RecognizerClient:
    """Cria o adapter de vendor para ``name``.

    Raises:
        ProviderNotFoundError: Nome desconhecido.
        ConfigError: Configuracao obrigatoria do vendor ausente.
    """
    if name == "google":
        from speechbridge.providers.google import GoogleRecognizer

        return GoogleRecognizer(
            languages=config.google.languages,
            restart_time_s=config.restart_time_s,
            model=config.google.model,
            interim_results=config.google.interim_results,
        )

    if name == "gladia":
        from speechbridge.providers.gladia import GladiaRecognizer

        return GladiaRecognizer(
            api_key=config.gladia_api_key,
            api_url=config.gladia_api_url,
            languages=config.gladia_languages,
        )

    raise ProviderNotFoundError(name)


def create_provider(
    name: str,
    config: BridgeConfig,
    on_event: EventSink,
) -> SpeechProvider:
    """Cria o provider de uma sessao.

    Args:
        name: Nome do vendor ("google" ou "gladia").
        config: Configuracao do runtime.
        on_event: Callback que publica eventos no canal da sessao.
    """
    return StreamingProvider(
        create_recognizer(name.lower(), config),
        on_event,
        default_codec=config.default_codec,
        default_language=config.language,
        max_results=config.max_results,
        stop_timeout_s=config.stop_timeout_s,
        max_pending_audio_bytes=config.max_pending_audio_bytes,
    )
