"""
llmgate command-line interface.

Usage::

    llmgate serve --port 8080 --models-file models.json
    llmgate serve --log-level debug --router
    llmgate models list
    llmgate models register mistral --name "Mistral 7B" --backend ollama --context 8192
    llmgate models load mistral
    llmgate models unload mistral
    llmgate infer mistral "What is the meaning of life?" --stream
"""

from __future__ import annotations

import click

from llmgate import __version__

WELCOME_MESSAGE = """\
llmgate — one inference API for Ollama, llama.cpp, Hugging Face and OpenAI.

  llmgate serve            start the gateway
  llmgate models list      show registered models
  llmgate infer MODEL TEXT run a prompt through the gateway

Run 'llmgate --help' for all commands."""


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="llmgate")
@click.pass_context
def main(ctx: click.Context) -> None:
    """llmgate — uniform text generation API over heterogeneous backends."""
    if ctx.invoked_subcommand is None:
        click.echo(WELCOME_MESSAGE)


# ---------------------------------------------------------------------------
# Register command modules
# ---------------------------------------------------------------------------

from llmgate.commands import models, serve  # noqa: E402

for _mod in [serve, models]:
    _mod.register(main)
