"""Comando `speechbridge serve` - inicia o listener WebSocket."""

from __future__ import annotations

import asyncio
import signal
import sys

import click
from dotenv import load_dotenv

from speechbridge.cli.main import cli
from speechbridge.config.bridge import DEFAULT_HOST, DEFAULT_PORT, BridgeConfig
from speechbridge.exceptions import SpeechBridgeError
from speechbridge.logging import configure_logging, get_logger
from speechbridge.providers.factory import SUPPORTED_PROVIDERS, create_recognizer

logger = get_logger("cli.serve")


@cli.command()
@click.option("--host", default=None, help=f"Host do listener. [default: {DEFAULT_HOST}]")
@click.option(
    "--port",
    "-p",
    default=None,
    type=int,
    help=f"Porta do listener. [default: {DEFAULT_PORT}]",
)
@click.option(
    "--provider",
    type=click.Choice(SUPPORTED_PROVIDERS, case_sensitive=False),
    default=None,
    help="Provider de reconhecimento. [default: google]",
)
@click.option("--max-results", type=int, default=None, help="Resultados finais por sessao.")
@click.option(
    "--restart-time",
    type=float,
    default=None,
    help="Intervalo do restart proativo em segundos (0 desabilita).",
)
@click.option(
    "--languages",
    default=None,
    help="Idiomas aceitos, separados por virgula (ex: en-US,es-ES).",
)
@click.option(
    "--log-format",
    type=click.Choice(["console", "json"]),
    default="console",
    show_default=True,
    help="Formato de log.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    default="INFO",
    show_default=True,
    help="Nivel de log.",
)
def serve(
    host: str | None,
    port: int | None,
    provider: str | None,
    max_results: int | None,
    restart_time: float | None,
    languages: str | None,
    log_format: str,
    log_level: str,
) -> None:
    """Inicia o SpeechBridge (listener WebSocket para call legs)."""
    load_dotenv()
    configure_logging(log_format=log_format, level=log_level)

    try:
        config = BridgeConfig.from_env(
            host=host,
            port=port,
            provider=provider.lower() if provider else None,
            max_results=max_results,
            restart_time_s=restart_time,
            languages=languages,
        )
        # Falha cedo para provider desconhecido ou credencial ausente
        create_recognizer(config.provider, config)
    except SpeechBridgeError as exc:
        logger.error("invalid_configuration", error=str(exc))
        click.echo(f"Erro: {exc}", err=True)
        sys.exit(1)

    asyncio.run(_serve(config))


async def _serve(config: BridgeConfig) -> None:
    """Fluxo async principal do serve."""
    import uvicorn

    from speechbridge.server.app import create_app

    app = create_app(config)

    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _handle_signal(s: signal.Signals) -> None:
        logger.info("shutdown_signal", signal=s.name)
        shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _handle_signal, sig)

    logger.info(
        "server_starting",
        host=config.host,
        port=config.port,
        provider=config.provider,
        max_results=config.max_results,
        restart_time_s=config.restart_time_s,
    )

    uvicorn_config = uvicorn.Config(app, host=config.host, port=config.port, log_level="warning")
    server = uvicorn.Server(uvicorn_config)

    server_task = asyncio.create_task(server.serve())

    # Aguarda sinal de shutdown ou fim do servidor
    _done, _ = await asyncio.wait(
        [server_task, asyncio.create_task(shutdown_event.wait())],
        return_when=asyncio.FIRST_COMPLETED,
    )

    if not server_task.done():
        server.should_exit = True
        await server_task

    logger.info("server_stopped")
