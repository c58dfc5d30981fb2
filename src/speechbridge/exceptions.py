"""Exceptions tipadas do SpeechBridge.

Hierarquia:
    SpeechBridgeError (base)
    +-- ConfigError
    +-- ProtocolError
    +-- ProviderError
        +-- ProviderNotFoundError
        +-- UnsupportedCodecError
        +-- UnsupportedLanguageError
        +-- ProviderFatalError
"""

from __future__ import annotations


class SpeechBridgeError(Exception):
    """Base para todas as exceptions do SpeechBridge."""


# --- Configuracao ---


class ConfigError(SpeechBridgeError):
    """Erro de configuracao do runtime (env, CLI, credenciais)."""


# --- Protocolo ---


class ProtocolError(SpeechBridgeError):
    """Request malformado ou com campos obrigatorios faltando.

    Reportado ao cliente via ``error_msg`` na response correspondente.
    A conexao continua aberta.
    """

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


# --- Provider ---


class ProviderError(SpeechBridgeError):
    """Erro relacionado a providers de reconhecimento de fala."""


class ProviderNotFoundError(ProviderError):
    """Nome de provider desconhecido pela factory."""

    def __init__(self, provider_name: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"Provider de fala '{provider_name}' nao suportado")


class UnsupportedCodecError(ProviderError):
    """Codec nao suportado pelo provider."""

    def __init__(self, codec_name: str, provider_name: str) -> None:
        self.codec_name = codec_name
        self.provider_name = provider_name
        super().__init__(f"Codec '{codec_name}' nao suportado pelo provider '{provider_name}'")


class UnsupportedLanguageError(ProviderError):
    """Idioma nao suportado pelo provider."""

    def __init__(self, language: str, provider_name: str) -> None:
        self.language = language
        self.provider_name = provider_name
        super().__init__(f"Idioma '{language}' nao suportado pelo provider '{provider_name}'")


class ProviderFatalError(ProviderError):
    """Falha irrecuperavel da sessao remota de reconhecimento.

    Erro de transporte, fechamento inesperado ou payload de erro do vendor.
    O provider transita para ENDED e a sessao e encerrada.
    """

    def __init__(self, provider_name: str, reason: str) -> None:
        self.provider_name = provider_name
        self.reason = reason
        super().__init__(f"Provider '{provider_name}' falhou: {reason}")
