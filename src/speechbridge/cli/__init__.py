"""CLI do SpeechBridge.

Registra todos os comandos no grupo principal.
"""

from speechbridge.cli.main import cli
from speechbridge.cli.serve import serve

__all__ = [
    "cli",
    "serve",
]
