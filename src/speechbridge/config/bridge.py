"""Configuracao do SpeechBridge (listener, sessao e providers)."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field, ValidationError

from speechbridge._types import Codec
from speechbridge.exceptions import ConfigError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 9099
DEFAULT_PROVIDER = "google"

# Mapeamento env var -> campo do BridgeConfig
_ENV_FIELDS: dict[str, str] = {
    "PROVIDER": "provider",
    "SPEECHBRIDGE_HOST": "host",
    "SPEECHBRIDGE_PORT": "port",
    "SPEECHBRIDGE_PROVIDER": "provider",
    "SPEECHBRIDGE_CODEC": "codec_name",
    "SPEECHBRIDGE_SAMPLE_RATE": "codec_sample_rate",
    "SPEECHBRIDGE_LANGUAGE": "language",
    "SPEECHBRIDGE_MAX_RESULTS": "max_results",
    "SPEECHBRIDGE_RESTART_TIME": "restart_time_s",
    "GLADIA_API_KEY": "gladia_api_key",
    "GLADIA_API_URL": "gladia_api_url",
}

# Lista separada por virgula; substitui os idiomas aceitos de todos os providers
LANGUAGES_ENV = "SPEECHBRIDGE_LANGUAGES"


def parse_languages(raw: str | Sequence[str] | None) -> list[str]:
    """Normaliza uma lista de idiomas ("en-US, es-ES" ou sequencia)."""
    if not raw:
        return []
    items = raw.split(",") if isinstance(raw, str) else raw
    return [item.strip() for item in items if item.strip()]


class GoogleConfig(BaseModel):
    """Opcoes do provider Google Cloud Speech."""

    languages: list[str] = Field(default_factory=lambda: ["en-US"])
    model: str | None = None
    interim_results: bool = True


class BridgeConfig(BaseModel):
    """Configuracao do runtime.

    Valores vem de opcoes da CLI, variaveis de ambiente (``from_env``) ou
    defaults. Uma instancia e compartilhada (somente leitura) por todas as
    sessoes; cada sessao cria seu proprio provider a partir dela.
    """

    host: str = DEFAULT_HOST
    port: int = Field(default=DEFAULT_PORT, gt=0, lt=65536)
    provider: str = DEFAULT_PROVIDER

    # Selecao default de codec/idioma de toda sessao nova
    codec_name: str = "ulaw"
    codec_sample_rate: int = Field(default=8000, gt=0)
    language: str = "en-US"

    # Buffer de resultados finais por sessao
    max_results: int = Field(default=100, ge=1)

    # Restart proativo da sessao remota (0 desabilita)
    restart_time_s: float = Field(default=10.0, ge=0.0)
    # Tempo maximo aguardando resultados pendentes ao parar uma sessao remota
    stop_timeout_s: float = Field(default=5.0, gt=0.0)
    # Audio enfileirado enquanto nao ha sessao remota ativa (~60s de slin16)
    max_pending_audio_bytes: int = Field(default=1_920_000, ge=0)

    google: GoogleConfig = Field(default_factory=GoogleConfig)

    gladia_api_key: str | None = None
    gladia_api_url: str = "https://api.gladia.io/v2/live"
    gladia_languages: list[str] = Field(
        default_factory=lambda: ["en-US", "en-GB", "es-ES", "pt-BR", "de-DE", "it-IT"]
    )

    @property
    def default_codec(self) -> Codec:
        """Codec inicial de toda sessao."""
        return Codec(name=self.codec_name, sample_rate=self.codec_sample_rate)

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        **overrides: object,
    ) -> BridgeConfig:
        """Cria BridgeConfig a partir de variaveis de ambiente.

        Args:
            environ: Mapeamento de env vars (default: ``os.environ``).
            **overrides: Valores explicitos (ex: opcoes da CLI); ``None`` e ignorado.
                ``languages`` (lista ou string separada por virgula) define os
                idiomas aceitos pelo Google e pelo Gladia.

        Raises:
            ConfigError: Se algum valor for invalido.
        """
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}
        for env_name, field_name in _ENV_FIELDS.items():
            raw = env.get(env_name)
            if raw:
                values[field_name] = raw.lower() if field_name == "provider" else raw

        languages = parse_languages(overrides.pop("languages", None))  # type: ignore[arg-type]
        if not languages:
            languages = parse_languages(env.get(LANGUAGES_ENV))
        if languages:
            values["google"] = {"languages": languages}
            values["gladia_languages"] = languages

        values.update({k: v for k, v in overrides.items() if v is not None})

        try:
            return cls.model_validate(values)
        except ValidationError as exc:
            errors = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
            )
            raise ConfigError(f"Configuracao invalida: {errors}") from exc
