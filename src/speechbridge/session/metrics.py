"""Metricas Prometheus para sessoes e providers.

Metricas sao opcionais: se prometheus_client nao estiver instalado,
o modulo exporta None para cada metrica e o codigo consumidor deve
verificar antes de usar.

Metricas definidas:
- speechbridge_active_sessions: Gauge de sessoes (conexoes) ativas
- speechbridge_session_duration_seconds: Duracao de sessoes encerradas
- speechbridge_results_final_total: Resultados finais recebidos, por provider
- speechbridge_provider_restarts_total: Restarts da sessao remota, por motivo
- speechbridge_provider_failures_total: Falhas fatais de provider
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prometheus_client import Counter, Gauge, Histogram

try:
    from prometheus_client import Counter as _Counter
    from prometheus_client import Gauge as _Gauge
    from prometheus_client import Histogram as _Histogram

    active_sessions: Gauge | None = _Gauge(
        "speechbridge_active_sessions",
        "Number of active call leg sessions",
    )

    session_duration_seconds: Histogram | None = _Histogram(
        "speechbridge_session_duration_seconds",
        "Total duration of completed call leg sessions",
        buckets=(1, 5, 10, 30, 60, 120, 300, 600, 1800, 3600),
    )

    results_final_total: Counter | None = _Counter(
        "speechbridge_results_final_total",
        "Final transcription results received from the recognizer",
        ["provider"],
    )

    provider_restarts_total: Counter | None = _Counter(
        "speechbridge_provider_restarts_total",
        "Remote recognition session restarts by reason",
        ["provider", "reason"],
    )

    provider_failures_total: Counter | None = _Counter(
        "speechbridge_provider_failures_total",
        "Fatal remote recognition session failures",
        ["provider"],
    )

    HAS_METRICS = True

except ImportError:
    active_sessions = None
    session_duration_seconds = None
    results_final_total = None
    provider_restarts_total = None
    provider_failures_total = None

    HAS_METRICS = False
