"""FastAPI application factory para o SpeechBridge."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import FastAPI

import speechbridge
from speechbridge.config.bridge import BridgeConfig
from speechbridge.providers.factory import create_provider
from speechbridge.server.routes import health, speech

if TYPE_CHECKING:
    from collections.abc import Callable

    from speechbridge.providers.interface import EventSink, SpeechProvider


def create_app(
    config: BridgeConfig | None = None,
    provider_factory: Callable[[str, BridgeConfig, EventSink], SpeechProvider] = create_provider,
) -> FastAPI:
    """Cria a aplicacao FastAPI.

    Args:
        config: Configuracao do runtime (default: ``BridgeConfig()``).
        provider_factory: Cria o provider de cada sessao. Testes injetam
            providers fake por aqui.

    Returns:
        FastAPI application configurada.
    """
    app = FastAPI(
        title="SpeechBridge",
        version=speechbridge.__version__,
        description="Ponte entre call legs de telefonia e reconhecimento de fala em streaming",
    )

    app.state.config = config or BridgeConfig()
    app.state.provider_factory = provider_factory

    app.include_router(health.router)
    app.include_router(speech.router)

    return app
