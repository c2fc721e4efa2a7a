import asyncio
from typing import Optional, Tuple

import click
from rich.console import Console
from rich.panel import Panel

from config.logic import load_and_merge_configs
from config.models import Config
from core.context.formatter import ContextFormatter
from core.contracts.models import ChatMessage
from core.llm.context_provider import ContextAwareOptions
from core.llm.router import get_provider
from core.services import Services
from utils.errors import AIChatException
from utils.logger import setup_logger, logger


def apply_cli_overrides(config: Config, provider: Optional[str]) -> Config:
    """Applies command line options to the loaded configuration."""
    if provider:
        config.model.provider = provider
        logger.info(f"Overriding provider from CLI: {provider}")
    return config


async def run_context(config: Config, workspace: str, files: Tuple[str, ...], conversation_id: str):
    with Services(config) as services:
        context = await services.context.build_context(conversation_id, workspace, selected_files=list(files))
        return context, services.context.format_context(context), services.context.get_stats()


async def run_chat(
    config: Config,
    message: str,
    workspace: Optional[str],
    files: Tuple[str, ...],
    system: Optional[str],
    conversation_id: str,
    console: Console,
) -> str:
    """
    Sends one message through context injection and session-bound streaming.
    """
    with Services(config) as services:
        options = ContextAwareOptions(
            conversation_id=conversation_id,
            workspace_path=workspace,
            selected_files=list(files) or None,
        )
        provider = services.context_provider(get_provider(config.model), options)

        messages = []
        if system:
            messages.append(ChatMessage(role="system", content=system))
        messages.append(ChatMessage(role="user", content=message))

        reply = await provider.generate_response(
            conversation_id,
            messages,
            lambda chunk: console.print(chunk, end="", markup=False, highlight=False),
        )
        console.print()

        result = services.streaming.lookup(provider.wrapped_provider.last_session_id)
        if result.session is not None:
            console.print(
                f"[dim]{result.session.session_id}: {result.session.total_chunks} chunks, "
                f"{result.session.total_bytes} chars ({result.status.value})[/dim]"
            )
        return reply


@click.group()
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Enable verbose logging for debugging.",
)
@click.option(
    "-c", "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="Path to a custom configuration file.",
)
@click.pass_context
def cli(ctx, verbose: bool, config_path: Optional[str]):
    """
    Workspace-aware chat delivery: context injection and response streaming.
    """
    setup_logger(log_level="DEBUG" if verbose else "INFO")
    ctx.obj = {"verbose": verbose, "config_path": config_path}


@cli.command("context")
@click.argument("workspace", type=click.Path(exists=True, file_okay=False))
@click.option("-f", "--file", "files", multiple=True, help="File to include (repeatable).")
@click.option("--conversation", default="cli", show_default=True, help="Conversation id.")
@click.option("--prompt", "show_prompt", is_flag=True, help="Also print the block injected into the system message.")
@click.pass_context
def context_command(ctx, workspace: str, files: Tuple[str, ...], conversation: str, show_prompt: bool):
    """
    Build and show the context collected for a workspace.
    """
    console = Console()
    verbose = ctx.obj.get("verbose", False)
    try:
        config = load_and_merge_configs(custom_config_path=ctx.obj.get("config_path"))
        context, summary, stats = asyncio.run(run_context(config, workspace, files, conversation))

        console.print(Panel(
            summary or "(empty context)",
            title="[bold cyan]Context[/bold cyan]",
            border_style="cyan",
            expand=False,
        ))
        console.print(
            f"Sessions: {stats.active_sessions}  Cached files: {stats.cached_files}  "
            f"Context size: {stats.total_context_size} bytes"
        )
        if show_prompt:
            console.print(ContextFormatter().render(context), markup=False, highlight=False)
    except AIChatException as e:
        logger.opt(exception=verbose).error(f"Known error: {e}")
        console.print(f"[bold red]Error:[/bold red] {e}")
        ctx.exit(1)


@cli.command("chat")
@click.argument("message")
@click.option("-w", "--workspace", type=click.Path(exists=True, file_okay=False), help="Workspace to attach as context.")
@click.option("-f", "--file", "files", multiple=True, help="File to include (repeatable).")
@click.option("-s", "--system", help="System prompt.")
@click.option("--provider", type=str, help="Override the provider (e.g. 'echo').")
@click.option("--conversation", default="cli", show_default=True, help="Conversation id.")
@click.pass_context
def chat_command(
    ctx,
    message: str,
    workspace: Optional[str],
    files: Tuple[str, ...],
    system: Optional[str],
    provider: Optional[str],
    conversation: str,
):
    """
    Send a message and stream the reply.
    """
    console = Console()
    verbose = ctx.obj.get("verbose", False)
    try:
        config = load_and_merge_configs(custom_config_path=ctx.obj.get("config_path"))
        config = apply_cli_overrides(config, provider)
        asyncio.run(run_chat(config, message, workspace, files, system, conversation, console))
    except AIChatException as e:
        logger.opt(exception=verbose).error(f"Known error: {e}")
        console.print(f"[bold red]Error:[/bold red] {e}")
        ctx.exit(1)


if __name__ == "__main__":
    cli()
