"""Testes do ResultBuffer (buffer FIFO limitado de resultados finais)."""

from __future__ import annotations

import pytest

from speechbridge._types import TranscriptResult
from speechbridge.session.result_buffer import DEFAULT_MAX_RESULTS, ResultBuffer


def _final(text: str) -> TranscriptResult:
    return TranscriptResult(text=text, confidence=1.0, is_final=True)


class TestResultBuffer:
    def test_default_capacity(self) -> None:
        assert ResultBuffer().capacity == DEFAULT_MAX_RESULTS == 100

    def test_invalid_capacity(self) -> None:
        with pytest.raises(ValueError, match=">= 1"):
            ResultBuffer(0)

    def test_drain_returns_in_insertion_order_and_empties(self) -> None:
        buffer = ResultBuffer(5)
        buffer.append(_final("a"))
        buffer.append(_final("b"))

        assert [r.text for r in buffer.drain()] == ["a", "b"]
        assert len(buffer) == 0
        assert buffer.drain() == []

    def test_oldest_evicted_when_full(self) -> None:
        """Capacidade N: mantem os N mais recentes."""
        buffer = ResultBuffer(3)
        for text in ("a", "b", "c", "d", "e"):
            buffer.append(_final(text))

        assert len(buffer) == 3
        assert buffer.dropped == 2
        assert [r.text for r in buffer.drain()] == ["c", "d", "e"]

    def test_rejects_interim_results(self) -> None:
        buffer = ResultBuffer()
        with pytest.raises(ValueError):
            buffer.append(TranscriptResult(text="partial", confidence=0.2, is_final=False))
        assert len(buffer) == 0
