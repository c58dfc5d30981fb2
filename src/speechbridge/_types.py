"""Tipos fundamentais do SpeechBridge.

Este modulo define enums, dataclasses e type aliases compartilhados pelo
dispatcher, pela negociacao de codec/idioma e pelos providers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class RequestVerb(Enum):
    """Verbos de request aceitos no protocolo de controle.

    ``set`` e ``setup`` tem tratamento identico.
    """

    GET = "get"
    SET = "set"
    SETUP = "setup"


class ProviderState(Enum):
    """Estado de um provider de reconhecimento.

    Transicoes validas:
        IDLE -> LISTENING (start)
        LISTENING -> RESTARTING (restart ou timer proativo)
        RESTARTING -> LISTENING (nova sessao remota aberta)
        Qualquer -> ENDED (end ou falha fatal; terminal)
    """

    IDLE = "idle"
    LISTENING = "listening"
    RESTARTING = "restarting"
    ENDED = "ended"


@dataclass(frozen=True, slots=True)
class Codec:
    """Codec de audio negociado para o call leg.

    ``attributes`` e repassado sem interpretacao (formato do cliente).
    """

    name: str
    sample_rate: int
    attributes: tuple[Any, ...] = ()

    def to_wire(self) -> dict[str, Any]:
        """Representacao no protocolo (camelCase, como enviado pelo cliente)."""
        return {
            "name": self.name,
            "sampleRate": self.sample_rate,
            "attributes": list(self.attributes),
        }


@dataclass(frozen=True, slots=True)
class RecognitionConfig:
    """Configuracao pedida ao provider: codec e idioma.

    Campos None significam "manter o valor atual do provider".
    """

    codec: Codec | None = None
    language: str | None = None


@dataclass(frozen=True, slots=True)
class TranscriptResult:
    """Hipotese de transcricao na forma canonica.

    Todo adapter de vendor converte seus campos nativos para esta forma.
    Apenas resultados com ``is_final=True`` chegam ao dispatcher.
    """

    text: str
    confidence: float
    is_final: bool


@dataclass(frozen=True, slots=True)
class EngineSettings:
    """Configuracao efetiva de uma sessao remota, no vocabulario do vendor.

    Produzida pelo RecognizerClient a partir de um RecognitionConfig validado.
    """

    encoding: str
    sample_rate: int
    language: str
    extra: dict[str, Any] = field(default_factory=dict)


def clamp_confidence(value: float | None, default: float = 1.0) -> float:
    """Normaliza confidence de vendor para o intervalo [0, 1]."""
    if value is None:
        return default
    return min(1.0, max(0.0, float(value)))
