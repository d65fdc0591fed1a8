"""Typer CLI for running and inspecting the prompt relay."""

from __future__ import annotations

import asyncio
import json
from typing import Optional

import typer

from .config import ProxyConfig
from .config_loader import list_env_overrides
from .errors import ProviderError
from .expander import PromptExpander
from .provider import ProviderClient

app = typer.Typer(help="Prompt-rewriting chat completions proxy")


@app.command("serve")
def cmd_serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port"),
):  # noqa: D401 - CLI
    """Run the proxy with uvicorn."""
    import uvicorn

    from .app import _cfg, app as api_app

    uvicorn.run(api_app, host=host or _cfg.host, port=port or _cfg.port)


@app.command("config")
def cmd_config():
    """Print the effective configuration (API key redacted)."""
    cfg = ProxyConfig.load()
    typer.echo(
        json.dumps(
            {"config": cfg.redacted(), "env_overrides": list_env_overrides()},
            indent=2,
        )
    )


async def _expand_once(cfg: ProxyConfig, text: str) -> str:
    async with ProviderClient(cfg) as client:
        return await PromptExpander(client, cfg.expansion_model).expand(text)


@app.command("expand")
def cmd_expand(text: str = typer.Argument(..., help="Prompt to expand")):
    """Expand a single prompt with the configured expansion model."""
    if not text:
        typer.echo("Prompt must not be empty")
        raise typer.Exit(1)
    cfg = ProxyConfig.load()
    try:
        expanded = asyncio.run(_expand_once(cfg, text))
    except ProviderError as exc:
        typer.echo(f"Provider error: {exc.message}")
        raise typer.Exit(1)
    typer.echo(expanded)


def main():  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
