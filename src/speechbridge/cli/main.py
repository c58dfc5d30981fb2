"""Grupo principal de comandos CLI do SpeechBridge."""

from __future__ import annotations

import click

import speechbridge


@click.group()
@click.version_option(version=speechbridge.__version__, prog_name="speechbridge")
def cli() -> None:
    """SpeechBridge - Ponte entre call legs de telefonia e reconhecimento de fala."""
