"""Model operations against a running gateway — models list/register/load/unload, infer."""

from __future__ import annotations

import json
import sys
from typing import Optional

import click

from llmgate.client import DEFAULT_GATEWAY_URL, GatewayClient, GatewayClientError
from llmgate.errors import GatewayError
from llmgate.types import BackendKind, LatencyProfile, ModelCapability


def register(cli: click.Group) -> None:
    cli.add_command(models)
    cli.add_command(infer)


_url_option = click.option(
    "--url",
    default=DEFAULT_GATEWAY_URL,
    envvar="LLMGATE_URL",
    help=f"Gateway base URL (default: {DEFAULT_GATEWAY_URL}).",
)


def _fail(exc: Exception) -> None:
    click.echo(f"Error: {exc}", err=True)
    sys.exit(1)


@click.group()
def models() -> None:
    """Manage the gateway's model registry."""


@models.command("list")
@_url_option
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON.")
def list_cmd(url: str, as_json: bool) -> None:
    """List registered models."""
    try:
        entries = GatewayClient(url).list_models()
    except (GatewayClientError, GatewayError) as exc:
        _fail(exc)
        return

    if as_json:
        click.echo(json.dumps(entries, indent=2))
        return
    if not entries:
        click.echo("No models registered.")
        return

    click.echo(f"{'ID':<24} {'BACKEND':<12} {'CONTEXT':>8}  STATUS")
    for entry in entries:
        status = f"loaded {entry['loaded_at']}" if entry["loaded"] else "unloaded"
        click.echo(
            f"{entry['id']:<24} {entry['backend']:<12} {entry['context_length']:>8}  {status}"
        )


@models.command("register")
@click.argument("model_id")
@click.option("--name", default=None, help="Display name (default: MODEL_ID).")
@click.option(
    "--backend",
    "-b",
    required=True,
    type=click.Choice([k.value for k in BackendKind]),
    help="Backend serving this model.",
)
@click.option("--context", "context_length", default=4096, help="Context length in tokens.")
@click.option(
    "--capability",
    "-c",
    "capabilities",
    multiple=True,
    type=click.Choice([c.value for c in ModelCapability]),
    help="Model capability (repeatable).",
)
@click.option("--quant", default=None, help="Quantization label (e.g. Q4_K_M).")
@click.option(
    "--latency",
    default=None,
    type=click.Choice([p.value for p in LatencyProfile]),
    help="Latency profile.",
)
@click.option("--upstream-model", default=None, help="Identifier sent to the backend.")
@_url_option
def register_cmd(
    model_id: str,
    name: Optional[str],
    backend: str,
    context_length: int,
    capabilities: tuple[str, ...],
    quant: Optional[str],
    latency: Optional[str],
    upstream_model: Optional[str],
    url: str,
) -> None:
    """Register MODEL_ID with the gateway."""
    entry = {
        "id": model_id,
        "name": name or model_id,
        "backend": backend,
        "context_length": context_length,
        "capabilities": list(capabilities),
        "quantization": quant,
        "latency": latency,
        "upstream_model": upstream_model,
    }
    try:
        GatewayClient(url).register_model(entry)
    except (GatewayClientError, GatewayError) as exc:
        _fail(exc)
        return
    click.echo(f"Registered {model_id} ({backend})")


@models.command("load")
@click.argument("model_id")
@_url_option
def load_cmd(model_id: str, url: str) -> None:
    """Mark MODEL_ID as loaded."""
    try:
        GatewayClient(url).load_model(model_id)
    except (GatewayClientError, GatewayError) as exc:
        _fail(exc)
        return
    click.echo(f"Loaded {model_id}")


@models.command("unload")
@click.argument("model_id")
@_url_option
def unload_cmd(model_id: str, url: str) -> None:
    """Mark MODEL_ID as unloaded."""
    try:
        GatewayClient(url).unload_model(model_id)
    except (GatewayClientError, GatewayError) as exc:
        _fail(exc)
        return
    click.echo(f"Unloaded {model_id}")


@click.command()
@click.argument("model_id")
@click.argument("prompt")
@click.option("--max-tokens", "-n", default=100, help="Maximum tokens to generate.")
@click.option("--temperature", "-t", default=None, type=float, help="Sampling temperature.")
@click.option("--stream", is_flag=True, help="Print tokens as they arrive.")
@_url_option
def infer(
    model_id: str,
    prompt: str,
    max_tokens: int,
    temperature: Optional[float],
    stream: bool,
    url: str,
) -> None:
    """Run PROMPT through MODEL_ID."""
    client = GatewayClient(url, timeout=300.0)
    try:
        if stream:
            count = 0
            for token in client.inference_stream(model_id, prompt, max_tokens, temperature):
                click.echo(token.text, nl=False)
                if token.text:
                    count += 1
            click.echo()
            click.echo(f"[{count} tokens]", err=True)
        else:
            result = client.inference(model_id, prompt, max_tokens, temperature)
            click.echo(result.text)
            click.echo(f"[{result.tokens_generated} tokens]", err=True)
    except (GatewayClientError, GatewayError) as exc:
        _fail(exc)
