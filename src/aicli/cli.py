"""
ai-cli - chat with a hosted language model from the terminal.

Usage:
    ai-cli login                      # Device authorization login
    ai-cli whoami                     # Show current user
    ai-cli wakeup                     # Chat, tool or agent mode
    ai-cli conversations              # List saved conversations
    ai-cli logout                     # Clear stored token
"""
from __future__ import annotations

import asyncio
import logging
import sys
import webbrowser
from pathlib import Path
from typing import NoReturn, Optional

import click

from aicli import __version__
from aicli.ai.tools import ToolRegistry
from aicli.chat import AgentGenerator, AgentSession, ChatSession, open_conversation, resolve_user
from aicli.client import DeviceAuthClient, DevicePoller, TokenResponse
from aicli.core.config import load_settings
from aicli.core.context import AppContext
from aicli.core.log import setup_logging
from aicli.errors import AICliError, AuthenticationError
from aicli.storage import ConversationMode
from aicli.ui import AICliConsole

logger = logging.getLogger(__name__)

MODE_OPTIONS = [
    ("chat", "Chat", "Simple chat with AI"),
    ("tool", "Tools", "Chat with tools (Google search, Code execution)"),
    ("agent", "Agent", "Generate complete applications"),
]


def _fail(ui: AICliConsole, error: BaseException) -> NoReturn:
    """Report an unrecoverable error and exit 1."""
    ui.print_error(str(error), recoverable=False)
    if isinstance(error, AuthenticationError):
        ui.console.print("Run: [cyan]ai-cli login[/]")
    sys.exit(1)


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="ai-cli")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool):
    """
    ai-cli - AI in your terminal.

    Quick start:
        ai-cli login
        ai-cli wakeup
    """
    setup_logging(verbose)

    if ctx.obj is None:
        settings = load_settings()
        ui = AICliConsole(verbose=verbose, history_path=settings.home / "history")
        ctx.obj = AppContext(settings=settings, ui=ui)
    ctx.call_on_close(ctx.obj.close)

    if ctx.invoked_subcommand is None:
        ctx.obj.ui.print_banner(__version__)
        click.echo(ctx.get_help())


@cli.command()
@click.option("--server-url", help="Authorization server URL")
@click.option("--client-id", help="OAuth client ID")
@click.pass_obj
def login(app: AppContext, server_url: Optional[str], client_id: Optional[str]):
    """
    Log in with the device authorization flow.

    Shows a code to enter in the browser, then waits for approval.
    Your token is stored in ~/.aicli/token.json
    """
    ui = app.ui
    updates = {}
    if server_url:
        updates["server_url"] = server_url
    if client_id:
        updates["client_id"] = client_id
    settings = app.settings.model_copy(update=updates)
    store = app.token_store

    if store.is_authenticated():
        if not ui.confirm("You are already logged in. Login again?", default=False):
            ui.print_info("Login cancelled.")
            return

    try:
        client = DeviceAuthClient(settings.auth_url, settings.require_client_id())
        token = asyncio.run(_device_login(ui, client))
    except AICliError as e:
        _fail(ui, e)
    except KeyboardInterrupt:
        ui.print_warning("Login cancelled.")
        return

    if not store.store(token):
        ui.print_warning("Could not save authentication token.")
        ui.print_warning("You may need to login again on next use.")
    else:
        ui.print_hint(f"Token saved to: {store.path}")

    ui.print_success("Login successful!")


async def _device_login(ui: AICliConsole, client: DeviceAuthClient) -> TokenResponse:
    with ui.thinking("Requesting device authorization..."):
        code = await client.request_device_code()

    ui.print_device_code(code.verification_uri, code.user_code)

    if ui.confirm("Open browser automatically?", default=True):
        webbrowser.open(code.browser_url)

    ui.print_hint(f"Waiting for authorization (expires in {code.expires_in // 60} minutes)...")

    with ui.thinking("Polling for authorization") as status:
        def on_tick(attempt: int) -> None:
            dots = attempt % 4
            status.update(f"[bold cyan]Polling for authorization{'.' * dots}{' ' * (3 - dots)}[/]")

        poller = DevicePoller(
            client,
            code.device_code,
            interval=code.interval,
            expires_in=code.expires_in,
            on_tick=on_tick,
        )
        return await poller.poll()


@cli.command()
@click.pass_obj
def logout(app: AppContext):
    """Log out and clear the stored token."""
    ui = app.ui
    store = app.token_store

    if store.load() is None:
        ui.print_info("You are not logged in.")
        return

    if not ui.confirm("Are you sure you want to logout?", default=False):
        ui.print_info("Logout cancelled.")
        return

    if store.clear():
        ui.print_success("Successfully logged out.")
    else:
        ui.print_warning("Could not clear token file.")


@cli.command()
@click.pass_obj
def whoami(app: AppContext):
    """Show the currently authenticated user."""
    ui = app.ui
    try:
        with ui.thinking("Fetching user information..."):
            user = resolve_user(app.token_store, app.chat_service)
    except AICliError as e:
        _fail(ui, e)

    ui.print_user(user.name, user.email)


@cli.command()
@click.option(
    "--mode",
    "-m",
    type=click.Choice([m.value for m in ConversationMode]),
    help="Skip the mode picker",
)
@click.option("--conversation-id", "-c", help="Resume an existing conversation")
@click.pass_obj
def wakeup(app: AppContext, mode: Optional[str], conversation_id: Optional[str]):
    """Wake up the AI: choose chat, tool or agent mode."""
    ui = app.ui

    try:
        with ui.thinking("Fetching user information..."):
            user = resolve_user(app.token_store, app.chat_service)
        ui.print_success(f"Welcome back, {user.name}!")

        if mode is None:
            mode = ui.select("Select an option", MODE_OPTIONS)

        asyncio.run(_run_mode(app, user, ConversationMode(mode), conversation_id))
    except (KeyboardInterrupt, EOFError):
        ui.print_goodbye("Session ended")
        sys.exit(0)
    except AICliError as e:
        _fail(ui, e)

    ui.print_goodbye("Thanks for chatting")


async def _run_mode(app: AppContext, user, mode: ConversationMode, conversation_id: Optional[str]) -> None:
    ui = app.ui
    gateway = app.gateway

    if mode is ConversationMode.AGENT:
        cwd = Path.cwd()
        if not ui.confirm(
            "The agent will create files and folders in the current directory. Continue?",
            default=True,
        ):
            ui.print_warning("Agent mode cancelled")
            return

        conversation = open_conversation(ui, app.chat_service, user, mode, conversation_id, working_dir=cwd)
        session = AgentSession(ui, AgentGenerator(gateway, ui), app.chat_service, conversation, cwd)
        await session.run()
        return

    tools = None
    if mode is ConversationMode.TOOL:
        tools = ToolRegistry()
        selected = ui.multi_select(
            "Select tools to enable",
            [(t.id, t.name, t.description) for t in tools.tools],
        )
        tools.enable(selected)
        if not selected:
            ui.print_warning("No tools enabled")

    conversation = open_conversation(ui, app.chat_service, user, mode, conversation_id)
    await ChatSession(ui, gateway, app.chat_service, conversation, tools).run()


@cli.command()
@click.option("--delete", "delete_id", help="Delete the conversation with this ID")
@click.pass_obj
def conversations(app: AppContext, delete_id: Optional[str]):
    """List your saved conversations."""
    ui = app.ui
    try:
        user = resolve_user(app.token_store, app.chat_service)
    except AICliError as e:
        _fail(ui, e)

    service = app.chat_service

    if delete_id:
        if service.delete_conversation(delete_id, user.id):
            ui.print_success(f"Deleted conversation {delete_id}")
        else:
            ui.print_error(f"Conversation not found: {delete_id}", recoverable=False)
            sys.exit(1)
        return

    items = service.get_user_conversations(user.id)
    if not items:
        ui.print_info("No conversations yet. Run 'ai-cli wakeup' to start one.")
        return

    for conversation in items:
        updated = conversation.updated_at.strftime("%Y-%m-%d %H:%M")
        ui.console.print(
            f"[bold]{conversation.display_title}[/]  [dim]{conversation.mode} · {updated} · {conversation.id}[/]"
        )


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
