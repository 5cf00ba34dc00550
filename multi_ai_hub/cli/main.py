"""
CLI interface for Multi AI Hub.

Provides command-line access to accounts, quota, routing, chats, and the
admin dashboard.
"""

import json
import logging
import math
import sys
from dataclasses import dataclass
from typing import List, Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from multi_ai_hub.config.loader import HubConfig, load_hub_config
from multi_ai_hub.core.avatars import AVATAR_PROFILES
from multi_ai_hub.core.model_selector import model_score, route_prompt
from multi_ai_hub.core.usage_limiter import UsageLimiter
from multi_ai_hub.sdk.gateway_client import (
    GatewayChatClient,
    GatewayConfigError,
    GatewayError,
    PremiumAvatarRequired,
    PromptQuotaExceeded,
)
from multi_ai_hub.storage.db import DEFAULT_DB_PATH
from multi_ai_hub.storage.models import SubscriptionTier, UserAccount
from multi_ai_hub.storage.repository import (
    AccountExistsError,
    AccountRepository,
    ChatNotFoundError,
    ChatRepository,
    compute_dashboard_stats,
    compute_user_activity,
    export_user_data,
    initialize_schema,
)

app = typer.Typer()
admin_app = typer.Typer(help="Admin dashboard operations.")
app.add_typer(admin_app, name="admin")
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1


@dataclass(frozen=True)
class CliState:
    db_path: str
    config: HubConfig

    def accounts(self) -> AccountRepository:
        limits = self.config.limits
        return AccountRepository(
            self.db_path,
            free_daily_prompts=limits.free_daily_prompts,
            unmetered_prompts_limit=limits.unmetered_prompts_limit
        )

    def limiter(self) -> UsageLimiter:
        return UsageLimiter(self.accounts(), admin_emails=self.config.admin_emails)


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/] {message}")
    sys.exit(EXIT_CODE_FAIL)


def _format_remaining(remaining: float) -> str:
    return "Unlimited" if math.isinf(remaining) else str(int(remaining))


def _load_account(state: CliState, email: str) -> UserAccount:
    account = state.accounts().find_by_email(email)
    if account is None:
        _fail(f"No account registered for {email}")
    return account


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    db: str = typer.Option(DEFAULT_DB_PATH, "--db", envvar="MULTI_AI_HUB_DB", help="SQLite database path"),
    config: Optional[str] = typer.Option(
        None, "--config", "-c", envvar="MULTI_AI_HUB_CONFIG", help="YAML configuration file"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")
):
    """Multi AI Hub CLI."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    try:
        hub_config = load_hub_config(config) if config else HubConfig.default()
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        _fail(str(e))
    ctx.obj = CliState(db_path=db, config=hub_config)

    if ctx.invoked_subcommand is None:
        console.print("Multi AI Hub - Use --help to see available commands")


@app.command()
def init(ctx: typer.Context):
    """Initialize the Multi AI Hub database."""
    try:
        initialize_schema(ctx.obj.db_path)
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def signup(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Display name"),
    email: str = typer.Argument(..., help="Account email"),
    plan: SubscriptionTier = typer.Option(SubscriptionTier.FREE, "--plan", "-p", help="Subscription plan")
):
    """Register a new account."""
    try:
        account = ctx.obj.accounts().create_account(name, email, plan)
    except (AccountExistsError, ValueError) as e:
        _fail(str(e))
    console.print(f"[green]✓[/] Created {account.tier.value} account [bold]{account.email}[/] ({account.id})")


@app.command()
def usage(ctx: typer.Context, email: str = typer.Argument(..., help="Account email")):
    """Show today's prompt usage for an account."""
    state = ctx.obj
    account = _load_account(state, email)
    remaining = state.limiter().remaining(account)

    console.print(f"[bold]{account.name}[/] <{account.email}> - plan: {account.tier.value}")
    if math.isinf(remaining):
        console.print("Unlimited prompts")
    else:
        console.print(f"{account.prompts_used}/{account.prompts_limit} prompts used today")
        console.print(f"Remaining: {_format_remaining(remaining)}")


@app.command()
def consume(ctx: typer.Context, email: str = typer.Argument(..., help="Account email")):
    """Consume one prompt from an account's daily quota."""
    state = ctx.obj
    account = _load_account(state, email)
    limiter = state.limiter()

    if not limiter.check_and_consume(account):
        console.print("[bold red]Rate limit reached[/] - no prompts left today")
        sys.exit(EXIT_CODE_FAIL)
    console.print(f"[green]✓[/] Allowed. Remaining: {_format_remaining(limiter.remaining(account))}")


@app.command()
def route(
    ctx: typer.Context,
    prompt: str = typer.Argument(..., help="Prompt text to route"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Pin a model id")
):
    """Show which model a prompt would be sent to."""
    try:
        decision = route_prompt(prompt, ctx.obj.config.catalog, model)
    except ValueError as e:
        _fail(str(e))

    category = "pinned" if decision.pinned else decision.category.value
    console.print(f"[bold]Category:[/bold] {category}")
    console.print(f"[bold]Model:[/bold] {decision.model.name} ({decision.model.id})")
    console.print(f"Score: {model_score(decision.model):.3f}")


@app.command()
def catalog(ctx: typer.Context):
    """List the model catalog with routing scores."""
    table = Table(title="Model Catalog")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Provider")
    table.add_column("Category")
    table.add_column("Latency (ms)", justify="right")
    table.add_column("Health", justify="right")
    table.add_column("Score", justify="right")

    for model in ctx.obj.config.catalog.models:
        table.add_row(
            model.id, model.name, model.provider, model.category.value,
            str(model.latency_ms), str(model.health), f"{model_score(model):.3f}"
        )
    console.print(table)


@app.command()
def avatars():
    """List available avatars."""
    table = Table(title="Avatars")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Title")
    table.add_column("Group")
    table.add_column("Plan")

    for avatar, profile in AVATAR_PROFILES.items():
        table.add_row(avatar.value, profile.name, profile.title, profile.group,
                      "premium" if profile.premium else "free")
    console.print(table)


@app.command()
def chats(
    ctx: typer.Context,
    email: str = typer.Argument(..., help="Account email"),
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Filter by title")
):
    """List an account's chats."""
    state = ctx.obj
    account = _load_account(state, email)
    repository = ChatRepository(state.db_path)
    threads = repository.search_chats(account.id, search) if search else repository.list_chats(account.id)

    if not threads:
        console.print("[dim]No chats yet.[/]")
        return

    table = Table(title=f"Chats for {account.email}")
    table.add_column("ID")
    table.add_column("Title")
    table.add_column("Avatar")
    table.add_column("Messages", justify="right")
    table.add_column("Updated")
    for chat in threads:
        title = f"📌 {chat.title}" if chat.pinned else chat.title
        table.add_row(chat.id, title, chat.avatar_id or "-", str(len(chat.messages)),
                      chat.updated_at.strftime("%Y-%m-%d %H:%M"))
    console.print(table)


@app.command()
def ask(
    ctx: typer.Context,
    email: str = typer.Argument(..., help="Account email"),
    prompt: str = typer.Argument(..., help="Prompt text"),
    chat_id: Optional[str] = typer.Option(None, "--chat", help="Continue an existing chat"),
    avatar: Optional[str] = typer.Option(None, "--avatar", "-a", help="Start the chat with an avatar"),
    model: Optional[List[str]] = typer.Option(
        None, "--model", "-m", help="Pin a model id; repeat to compare up to 3 models"
    )
):
    """Send a prompt through the gateway and print the reply."""
    state = ctx.obj
    account = _load_account(state, email)
    models = list(model or [])

    try:
        client = GatewayChatClient(state.accounts(), ChatRepository(state.db_path), state.config,
                                   limiter=state.limiter())
        if chat_id is None:
            chat_id = client.start_chat(account.id, avatar).id
        if len(models) > 1:
            reply = client.send_comparison(account.id, chat_id, prompt, models)
            messages = reply.messages
        else:
            reply = client.send_message(account.id, chat_id, prompt, pinned_model=models[0] if models else None)
            messages = (reply.message,)
    except PromptQuotaExceeded as e:
        console.print(f"[bold red]Rate limit reached:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)
    except (GatewayConfigError, GatewayError, PremiumAvatarRequired, ChatNotFoundError, ValueError) as e:
        _fail(str(e))

    for message in messages:
        console.print(f"[dim]{message.model} · chat {reply.chat.id}[/]")
        console.print(message.content)
    console.print(f"[dim]Remaining prompts: {_format_remaining(reply.remaining)}[/]")


@app.command()
def profile(
    ctx: typer.Context,
    email: str = typer.Argument(..., help="Account email"),
    name: Optional[str] = typer.Option(None, "--name", help="New display name"),
    new_email: Optional[str] = typer.Option(None, "--email", help="New account email")
):
    """Update an account's name or email."""
    state = ctx.obj
    account = _load_account(state, email)
    if name is None and new_email is None:
        _fail("Nothing to update; pass --name and/or --email")

    try:
        account = state.accounts().update_profile(account.id, name=name, email=new_email)
    except (AccountExistsError, ValueError) as e:
        _fail(str(e))
    console.print(f"[green]✓[/] Profile updated: {account.name} <{account.email}>")


@app.command()
def export(
    ctx: typer.Context,
    email: str = typer.Argument(..., help="Account email"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Destination JSON file")
):
    """Export an account and its chats to a JSON file."""
    state = ctx.obj
    account = _load_account(state, email)
    data = export_user_data(account.id, state.db_path)
    path = output or f"multi-ai-hub-export-{data['exportDate'][:10]}.json"

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
    console.print(f"[green]✓[/] Exported {len(data['chats'])} chats to {path}")


@admin_app.command("users")
def admin_users(ctx: typer.Context):
    """List all accounts with their usage."""
    state = ctx.obj
    limiter = state.limiter()
    table = Table(title="Users")
    table.add_column("Email")
    table.add_column("Name")
    table.add_column("Plan")
    table.add_column("Prompts", justify="right")
    table.add_column("Chats", justify="right")
    table.add_column("Last active")
    table.add_column("Joined")

    activity = compute_user_activity(state.db_path)
    for account in state.accounts().list_accounts():
        prompts = "Unlimited" if limiter.is_unmetered(account) else f"{account.prompts_used}/{account.prompts_limit}"
        user_activity = activity.get(account.id)
        chat_count = user_activity.chat_count if user_activity else 0
        last_active = user_activity.last_active.strftime("%Y-%m-%d %H:%M") if user_activity else "Never"
        table.add_row(account.email, account.name, account.tier.value, prompts, str(chat_count),
                      last_active, account.created_at.strftime("%Y-%m-%d"))
    console.print(table)


@admin_app.command("stats")
def admin_stats(ctx: typer.Context):
    """Show dashboard statistics."""
    stats = compute_dashboard_stats(ctx.obj.db_path)
    console.print("\n[bold]Dashboard[/bold]")
    console.print("-" * 40)
    console.print(f"Total users: {stats.total_users} (free {stats.free_users}, paid {stats.paid_users})")
    console.print(f"Active today: {stats.active_today}")
    console.print(f"Active this week: {stats.active_this_week}")
    console.print(f"Active this month: {stats.active_this_month}")
    console.print(f"Total chats: {stats.total_chats}")
    console.print(f"Total messages: {stats.total_messages}")
    console.print(f"Avg messages/chat: {stats.avg_messages_per_chat}")
    console.print(f"Avg chats/user: {stats.avg_chats_per_user}")


@admin_app.command("set-plan")
def admin_set_plan(
    ctx: typer.Context,
    email: str = typer.Argument(..., help="Account email"),
    plan: SubscriptionTier = typer.Argument(..., help="New plan")
):
    """Change an account's plan and reset its usage."""
    state = ctx.obj
    account = _load_account(state, email)
    account = state.accounts().change_tier(account.id, plan)
    console.print(f"[green]✓[/] {account.name}'s plan has been changed to {plan.value}")


@admin_app.command("refill")
def admin_refill(ctx: typer.Context, email: str = typer.Argument(..., help="Account email")):
    """Reset an account's prompt usage for today."""
    state = ctx.obj
    account = _load_account(state, email)
    state.accounts().refill_prompts(account.id)
    console.print(f"[green]✓[/] {account.name}'s prompts have been reset")


@admin_app.command("delete")
def admin_delete(
    ctx: typer.Context,
    email: str = typer.Argument(..., help="Account email"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation")
):
    """Delete an account and all of its chats."""
    state = ctx.obj
    account = _load_account(state, email)
    if not yes and not typer.confirm(f"Delete {account.email} and all chats?"):
        sys.exit(EXIT_CODE_FAIL)
    state.accounts().delete_account(account.id)
    console.print(f"[green]✓[/] Deleted {account.email}")


if __name__ == "__main__":
    app()
