"""Negociacao de codec e idioma ("first acceptable").

Dada uma proposta (valor unico ou lista ordenada), a primeira entrada vira o
candidato e e mesclada na selecao atual. A negociacao NAO consulta o provider:
a validacao contra os codecs/idiomas suportados acontece depois, em
``SpeechProvider.set_config``. ``first()`` nunca altera ``selected``: o commit
e feito pelo dispatcher apenas apos o provider aceitar a configuracao.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from pydantic import ValidationError

from speechbridge._types import Codec
from speechbridge.exceptions import ProtocolError
from speechbridge.server.models.messages import CodecDescriptor


def _first_entry(proposal: Any, what: str) -> Any:
    if isinstance(proposal, list):
        if not proposal:
            raise ProtocolError(f"Lista de {what} vazia")
        return proposal[0]
    return proposal


class CodecSelection:
    """Codec selecionado de uma sessao.

    Args:
        default: Codec inicial (sempre valido).
    """

    def __init__(self, default: Codec) -> None:
        self.selected = default

    def first(self, proposal: Any) -> Codec:
        """Retorna o primeiro codec proposto mesclado na selecao atual.

        Args:
            proposal: Descritor ``{name, sampleRate, attributes}`` ou lista deles.

        Raises:
            ProtocolError: Se a proposta estiver vazia ou malformada.
        """
        entry = _first_entry(proposal, "codecs")
        if isinstance(entry, str):
            # Forma abreviada: apenas o nome do codec
            entry = {"name": entry}
        if not isinstance(entry, dict):
            raise ProtocolError(f"Descritor de codec invalido: {entry!r}")

        try:
            descriptor = CodecDescriptor.model_validate(entry)
        except ValidationError as exc:
            raise ProtocolError(f"Descritor de codec invalido: {exc.errors()[0]['msg']}") from exc

        candidate = self.selected
        if descriptor.name is not None:
            candidate = replace(candidate, name=descriptor.name)
        if descriptor.sample_rate is not None:
            candidate = replace(candidate, sample_rate=descriptor.sample_rate)
        if descriptor.attributes is not None:
            attributes = descriptor.attributes
            if isinstance(attributes, dict):
                attributes = [attributes]
            candidate = replace(candidate, attributes=tuple(attributes))
        return candidate


class LanguageSelection:
    """Idioma selecionado de uma sessao (codigo BCP-47, ex: "en-US")."""

    def __init__(self, default: str) -> None:
        self.selected = default

    def first(self, proposal: Any) -> str:
        """Retorna o primeiro idioma proposto.

        Raises:
            ProtocolError: Se a proposta estiver vazia ou nao for string.
        """
        entry = _first_entry(proposal, "idiomas")
        if not isinstance(entry, str) or not entry.strip():
            raise ProtocolError(f"Idioma invalido: {entry!r}")
        return entry.strip()
