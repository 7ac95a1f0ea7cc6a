"""CLI entry point for ccdev."""

from __future__ import annotations

import asyncio
import sys
from dataclasses import replace

import click

from ccdev import __version__
from ccdev.cli.output import RichPrinter, print_message
from ccdev.core.config import load_config, resolve_api_key
from ccdev.core.conversation import Conversation
from ccdev.core.logging import configure_logging
from ccdev.core.loop import AgentLoop
from ccdev.errors import CcdevError
from ccdev.providers.anthropic import AnthropicProvider
from ccdev.sandbox.executor import create_executor
from ccdev.sandbox.policy import build_policy
from ccdev.tools.manager import ToolManager
from ccdev.types.providers import ChatMessage
from ccdev.types.sandbox import SandboxMode


@click.group()
@click.version_option(__version__, prog_name="ccdev")
def cli() -> None:
    """ccdev -- coding-assistant server with sandboxed tools and web terminals.

    \b
    Usage:
      ccdev serve --port 8787
      ccdev chat "list files in /workspace"
    """


@cli.command()
@click.option("--host", default=None, help="Bind address (default from config)")
@click.option("--port", type=int, default=None, help="Port (default from config)")
@click.option("--reload", is_flag=True, help="Reload on code changes (development)")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
def serve(host: str | None, port: int | None, reload: bool, verbose: bool) -> None:
    """Run the HTTP/WebSocket server."""
    import uvicorn

    config = _load_or_exit()
    level = "debug" if verbose else config.log_level.lower()
    configure_logging(level)
    if reload:
        uvicorn.run(
            "ccdev.server.app:create_app",
            factory=True,
            host=host or config.server.host,
            port=port or config.server.port,
            reload=True,
            log_level=level,
        )
        return

    from ccdev.server.app import create_app

    uvicorn.run(
        create_app(config),
        host=host or config.server.host,
        port=port or config.server.port,
        log_level=level,
    )


@cli.command()
@click.argument("prompt", nargs=-1, required=True)
@click.option("--model", "-m", default=None, help="Model ID")
@click.option(
    "--sandbox-mode",
    type=click.Choice([m.value for m in SandboxMode]),
    default=None,
    help="Sandbox backend (default from config)",
)
@click.option("--max-iterations", type=int, default=None, help="Maximum model round-trips")
@click.option("--yolo", is_flag=True, help="Let the agent act without describing destructive steps")
@click.option("--rich/--no-rich", default=None, help="Rich terminal output (default: auto)")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
def chat(
    prompt: tuple[str, ...],
    model: str | None,
    sandbox_mode: str | None,
    max_iterations: int | None,
    yolo: bool,
    rich: bool | None,
    verbose: bool,
) -> None:
    """Run one agent conversation locally and print its events."""
    config = _load_or_exit()
    configure_logging("debug" if verbose else config.log_level)

    prompt_text = " ".join(prompt).strip()
    if not prompt_text:
        click.echo("Error: empty prompt", err=True)
        sys.exit(1)

    api_key = resolve_api_key(config.agent.api_key)
    if not api_key:
        click.echo("Error: ANTHROPIC_API_KEY is not configured", err=True)
        sys.exit(1)

    agent_config = config.agent
    if model:
        agent_config = replace(agent_config, model=model)
    if max_iterations:
        agent_config = replace(agent_config, max_tool_iterations=max_iterations)
    sandbox_config = config.sandbox
    if sandbox_mode:
        sandbox_config = replace(sandbox_config, mode=sandbox_mode)

    use_rich = rich if rich is not None else sys.stderr.isatty()
    output_fn = RichPrinter().print_message if use_rich else print_message

    async def _run() -> None:
        sandbox = create_executor(build_policy(sandbox_config), "cli")
        loop = AgentLoop(
            AnthropicProvider(api_key=api_key, model=agent_config.model),
            ToolManager(sandbox),
            agent_config,
            yolo=yolo,
        )
        try:
            async for msg in loop.run(Conversation([ChatMessage(role="user", content=prompt_text)])):
                output_fn(msg)
        finally:
            await sandbox.cleanup()

    asyncio.run(_run())


def _load_or_exit():
    try:
        return load_config()
    except CcdevError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)


def main() -> None:
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
