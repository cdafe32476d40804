"""Command-line interface for RefHub."""

from typing import Annotated

import typer
import uvicorn
from rich.console import Console
from rich.table import Table

from refhub.auth.local import LocalAuthService
from refhub.cache.response_cache import ResponseCache
from refhub.email.service import EmailService
from refhub.logging_config import configure_logging, get_logger
from refhub.referral.codes import ReferralCodeGenerator
from refhub.referral.ledger import ReferralLedger
from refhub.referral.pipeline import AttributionPipeline
from refhub.rewards.ledger import RewardLedger
from refhub.settings import settings
from refhub.storage.db import Database

# Configure logging
configure_logging()
logger = get_logger(__name__)

# Create Typer app
app = typer.Typer(
    name="refhub",
    help="RefHub - referral and reward tracking",
    no_args_is_help=True,
)

# Rich console for pretty output
console = Console()


def _build_pipeline(db: Database) -> AttributionPipeline:
    auth_service = LocalAuthService(db)
    return AttributionPipeline(
        auth_service=auth_service,
        code_generator=ReferralCodeGenerator(
            auth_service.referral_code_exists,
            length=settings.referral_code_length,
            max_attempts=settings.referral_code_max_attempts,
        ),
        referral_ledger=ReferralLedger(db, strict=settings.strict_referral_transitions),
        reward_ledger=RewardLedger(db),
        cache=ResponseCache(default_ttl=settings.cache_ttl_seconds),
        notifier=EmailService(),
        reward_amount=settings.referral_reward_amount,
    )


@app.command("init")
def init_database() -> None:
    """Initialize the database and create tables."""
    console.print("[bold blue]Initializing database...[/bold blue]")
    Database().create_tables()
    console.print("[bold green]✓[/bold green] Database initialized successfully")


@app.command("serve")
def serve(
    host: Annotated[str, typer.Option("--host", help="Bind address")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port", "-p", help="Port")] = 5000,
    reload: Annotated[bool, typer.Option("--reload", help="Reload on code changes")] = False,
) -> None:
    """Run the API server."""
    console.print(f"[bold blue]Starting RefHub API on {host}:{port}[/bold blue]")
    uvicorn.run("refhub.api.main:app", host=host, port=port, reload=reload)


@app.command("referrals")
def show_referrals(
    user_id: Annotated[int, typer.Argument(help="Referrer user ID")],
) -> None:
    """Show the referrals and rewards of one user."""
    db = Database()
    referrals = ReferralLedger(db).list_for_referrer(user_id)
    summary = RewardLedger(db).list_for_user(user_id)

    if not referrals:
        console.print(f"[yellow]User {user_id} has no referrals[/yellow]")
    else:
        table = Table(title=f"Referrals of user {user_id}")
        table.add_column("Username", style="cyan")
        table.add_column("Email")
        table.add_column("Referred", style="dim")
        table.add_column("Status", style="green")

        for entry in referrals:
            table.add_row(
                entry.username,
                entry.email,
                entry.date_referred.strftime("%Y-%m-%d %H:%M"),
                entry.status.value,
            )

        console.print(table)

    console.print(f"[bold]Total rewards:[/bold] {summary.total} ({len(summary.rewards)} grants)")


@app.command("reconcile")
def reconcile() -> None:
    """Settle referrals left pending or unrewarded by an interrupted registration."""
    console.print("[bold blue]Reconciling referrals...[/bold blue]")
    granted = _build_pipeline(Database()).reconcile()
    console.print(f"[bold green]✓[/bold green] Rewards granted: {granted}")


if __name__ == "__main__":
    app()
