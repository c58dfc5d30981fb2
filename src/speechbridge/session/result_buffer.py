"""ResultBuffer: fila limitada de resultados finais de transcricao.

FIFO com capacidade fixa K: ao inserir com o buffer cheio, o resultado mais
antigo e descartado. ``drain()`` remove e retorna tudo de uma vez (entrega
"pull" via ``get results``); o push ao cliente e independente do buffer.

Sem threading/locking: single-threaded no event loop asyncio. ``drain()``
nao contem await, portanto e atomico em relacao as demais tasks.
"""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from speechbridge._types import TranscriptResult

DEFAULT_MAX_RESULTS = 100


class ResultBuffer:
    """Buffer limitado, ordenado e com perda no overflow.

    Args:
        max_results: Capacidade K (>= 1).
    """

    __slots__ = ("_dropped", "_items")

    def __init__(self, max_results: int = DEFAULT_MAX_RESULTS) -> None:
        if max_results < 1:
            msg = f"Capacidade do buffer de resultados deve ser >= 1, got {max_results}"
            raise ValueError(msg)
        self._items: deque[TranscriptResult] = deque(maxlen=max_results)
        self._dropped = 0

    @property
    def capacity(self) -> int:
        return self._items.maxlen or 0

    @property
    def dropped(self) -> int:
        """Total de resultados descartados por overflow desde a criacao."""
        return self._dropped

    def __len__(self) -> int:
        return len(self._items)

    def append(self, result: TranscriptResult) -> None:
        """Insere resultado final, descartando o mais antigo se cheio.

        Raises:
            ValueError: Se o resultado nao for final.
        """
        if not result.is_final:
            msg = "Apenas resultados finais podem ser armazenados"
            raise ValueError(msg)
        if len(self._items) == self.capacity:
            self._dropped += 1
        self._items.append(result)

    def drain(self) -> list[TranscriptResult]:
        """Remove e retorna todos os resultados, na ordem de chegada."""
        drained = list(self._items)
        self._items.clear()
        return drained
