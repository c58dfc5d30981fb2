"""Modelos Pydantic para o protocolo de controle do call leg.

Tres formas de mensagem em text frames:

- Request (cliente -> bridge): ``{request, id, params, codecs?}``
- Response (bridge -> cliente): ``{response, id, params?, codecs?, error_msg?}``
- Push (bridge -> cliente, nao solicitado): mesmo formato de um request ``set``,
  com ``id`` sempre novo, carregando ``params.results``.
"""

from __future__ import annotations

import uuid
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Shared models
# ---------------------------------------------------------------------------


class CodecDescriptor(BaseModel):
    """Descritor de codec como enviado pelo cliente.

    Campos ausentes permanecem None e sao herdados da selecao atual
    durante a negociacao.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str | None = Field(default=None, min_length=1)
    sample_rate: int | None = Field(default=None, alias="sampleRate", gt=0)
    attributes: list[Any] | dict[str, Any] | None = None


class ResultPayload(BaseModel):
    """Resultado final na forma canonica do protocolo."""

    model_config = ConfigDict(frozen=True)

    text: str
    confidence: float = Field(ge=0.0, le=1.0)
    final: Literal[True] = True


# ---------------------------------------------------------------------------
# Client -> Server
# ---------------------------------------------------------------------------


class RequestMessage(BaseModel):
    """Envelope de request recebido do cliente.

    Validacao estrutural minima: ``params`` e ``codecs`` sao validados pelos
    handlers de cada verbo, para que a falha vire ``error_msg`` na response.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    request: str
    id: str | int | None = None
    params: Any = None
    codecs: Any = None


# ---------------------------------------------------------------------------
# Server -> Client
# ---------------------------------------------------------------------------


class ResponseMessage(BaseModel):
    """Response a um request; sempre com o mesmo verbo e id do request."""

    model_config = ConfigDict(frozen=False)

    response: str
    id: str | int | None = None
    params: dict[str, Any] | None = None
    codecs: list[dict[str, Any]] | None = None
    error_msg: str | None = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


def _new_message_id() -> str:
    return str(uuid.uuid4())


class PushMessage(BaseModel):
    """Mensagem nao solicitada (resultados ou erro fatal do provider).

    Formato de request ``set`` com id novo; nunca reutiliza o id de um
    request do cliente.
    """

    model_config = ConfigDict(frozen=True)

    request: Literal["set"] = "set"
    id: str = Field(default_factory=_new_message_id)
    params: dict[str, Any] = Field(default_factory=dict)
    error_msg: str | None = None

    @classmethod
    def results(cls, results: list[ResultPayload]) -> PushMessage:
        return cls(params={"results": [r.model_dump(mode="json") for r in results]})

    @classmethod
    def error(cls, message: str) -> PushMessage:
        return cls(error_msg=message)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
