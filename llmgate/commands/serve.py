"""Serve command — run the gateway HTTP server."""

from __future__ import annotations

import logging
import sys
from typing import Optional

import click

from llmgate.errors import GatewayError

LOG_LEVELS = ("info", "debug", "trace")


def register(cli: click.Group) -> None:
    cli.add_command(serve)


def configure_logging(level: str) -> None:
    """Configure root logging for ``info``, ``debug`` or ``trace``.

    ``trace`` is DEBUG everywhere, including the httpx/httpcore wire logs
    that ``debug`` keeps at WARNING.
    """
    logging.basicConfig(
        level=logging.INFO if level == "info" else logging.DEBUG,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if level != "trace":
        for noisy in ("httpx", "httpcore"):
            logging.getLogger(noisy).setLevel(logging.WARNING)


@click.command()
@click.option("--port", "-p", default=8080, help="Port to listen on.")
@click.option("--host", default="0.0.0.0", help="Host to bind to.")
@click.option(
    "--log-level",
    "-l",
    default="info",
    type=click.Choice(LOG_LEVELS),
    help="Log verbosity (default: info).",
)
@click.option(
    "--models-file",
    default=None,
    type=click.Path(dir_okay=False),
    envvar="LLMGATE_MODELS_FILE",
    help="JSON file of model entries to register at startup.",
)
@click.option(
    "--router",
    "enable_router",
    is_flag=True,
    help="Expose POST /v1/router/inference for constraint-based model selection.",
)
def serve(
    port: int,
    host: str,
    log_level: str,
    models_file: Optional[str],
    enable_router: bool,
) -> None:
    """Start the gateway.

    Backend URLs and credentials come from the environment
    (OLLAMA_BASE_URL, LLAMA_CPP_BASE_URL, HUGGINGFACE_BASE_URL,
    HUGGINGFACE_API_KEY, OPENAI_BASE_URL, OPENAI_API_KEY) and are read on
    every request.
    """
    from llmgate.server import run_server

    configure_logging(log_level)
    click.echo(f"llmgate gateway on http://{host}:{port} (log level: {log_level})")

    try:
        run_server(
            port=port,
            host=host,
            log_level=log_level,
            models_file=models_file,
            enable_router=enable_router,
        )
    except GatewayError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
