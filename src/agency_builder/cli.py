"""Command-line interface for the agency builder."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.tree import Tree

app = typer.Typer(
    name="agency-builder",
    help="Agency Builder - workspace provisioning for agency hierarchies",
    add_completion=False,
)

console = Console()


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
        force=True,
    )


def _pool_config(url: Optional[str]):
    from database.connection import PoolConfig
    from agency_builder.config import get_settings

    if url:
        return PoolConfig(dsn=url)
    return get_settings().database.pool_config()


@app.command()
def version():
    """Show version information."""
    from agency_builder import __version__

    console.print(Panel.fit(
        f"[bold blue]Agency Builder[/bold blue]\n"
        f"Version: [green]{__version__}[/green]",
        title="Version Info"
    ))


@app.command()
def test_db(
    url: Optional[str] = typer.Option(
        None,
        "--url",
        "-u",
        help="Database URL (defaults to DATABASE_URL env var)"
    )
):
    """Test database connectivity."""
    from database.connection import DatabasePool, PersistenceError

    console.print("[yellow]Testing database connection...[/yellow]")

    async def check() -> bool:
        pool = DatabasePool(_pool_config(url))
        try:
            await pool.initialize()
            return await pool.health_check()
        finally:
            await pool.close()

    try:
        healthy = asyncio.run(check())
    except (PersistenceError, ValueError) as e:
        console.print(f"[red]❌ Database connection failed: {e}[/red]")
        raise typer.Exit(code=1)

    if healthy:
        console.print("[green]✅ Database connection successful![/green]")
    else:
        console.print("[red]❌ Database health check failed[/red]")
        raise typer.Exit(code=1)


@app.command()
def init_db(
    url: Optional[str] = typer.Option(None, "--url", "-u", help="Database URL (defaults to DATABASE_URL env var)")
):
    """Create the agency builder tables."""
    from database.connection import DatabasePool, PersistenceError
    from database.schema import apply_schema

    async def create() -> None:
        pool = DatabasePool(_pool_config(url))
        try:
            await pool.initialize()
            await apply_schema(pool)
        finally:
            await pool.close()

    try:
        asyncio.run(create())
    except (PersistenceError, ValueError) as e:
        console.print(f"[red]❌ Schema setup failed: {e}[/red]")
        raise typer.Exit(code=1)
    console.print("[green]✅ Schema is up to date[/green]")


@app.command()
def run():
    """Start the bot and the badge sync API."""
    import uvicorn

    from agency_builder.config import get_settings
    from agents.extraction import ExtractionAgent
    from api.server import create_app
    from bot.client import AgencyBuilderBot
    from database.connection import close_database_pool, get_database_pool
    from database.queries import PostgresAgencyStore
    from orchestration.badges import BadgeSyncService
    from utils.llm import create_llm_client

    settings = get_settings()
    setup_logging(settings.app.log_level)
    logger = logging.getLogger("agency_builder")

    if not settings.discord.token:
        console.print("[red]❌ DISCORD_TOKEN is not set[/red]")
        raise typer.Exit(code=1)

    async def serve() -> None:
        store = PostgresAgencyStore(await get_database_pool(settings.database.pool_config()))

        llm_options = {
            "max_retries": settings.llm.llm_max_retries,
            "retry_delay": settings.llm.llm_retry_delay,
            "timeout": settings.llm.llm_request_timeout,
        }
        if settings.llm.llm_model:
            llm_options["model"] = settings.llm.llm_model
        extractor = ExtractionAgent(
            llm_client=create_llm_client(settings.llm.provider, settings.llm.api_key, **llm_options)
        )

        bot = AgencyBuilderBot(store, extractor, settings)
        badges = BadgeSyncService(store, bot.resolve_workspace, settings.provisioning.nickname_max_length)
        server = uvicorn.Server(uvicorn.Config(
            create_app(badges, settings.app.version),
            host=settings.api.host,
            port=settings.api.port,
            log_config=None,
        ))

        logger.info(f"Badge sync API listening on port {settings.api.port}")
        try:
            await asyncio.gather(bot.start(settings.discord.token), server.serve())
        finally:
            await bot.close()
            await close_database_pool()
            logger.info(f"Extraction metrics: {extractor.metrics_dict()}")

    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        console.print("[yellow]Shutting down[/yellow]")


def render_tree(workspace) -> Tree:
    """Category/channel tree of an in-memory workspace."""
    tree = Tree(f"[bold]{workspace.organization_name}[/bold]")
    for category in workspace.categories():
        branch = tree.add(f"[cyan]{category.name}[/cyan]")
        for channel in workspace.children_of(category.id):
            icon = "🔊" if channel.kind.value == "voice" else "#"
            branch.add(f"{icon} {channel.name}")
    return tree


@app.command()
def dry_run(
    instruction: Optional[str] = typer.Argument(None, help="Plain-language build instruction"),
    actions: Optional[Path] = typer.Option(
        None, "--actions", "-a", help="JSON file holding an action list; skips the language model"
    ),
):
    """Execute a build against an in-memory workspace and show the result."""
    from agency_builder.config import get_settings
    from agents.extraction import ExtractionAgent
    from database.store import InMemoryAgencyStore
    from models import ActionList
    from orchestration.interpreter import ActionInterpreter
    from utils.llm import create_llm_client
    from workspace.memory import InMemoryWorkspace

    settings = get_settings()
    setup_logging(settings.app.log_level)

    if actions is None and not instruction:
        console.print("[red]❌ Give an instruction or --actions[/red]")
        raise typer.Exit(code=1)

    async def execute():
        if actions is not None:
            action_list = ActionList.model_validate(json.loads(actions.read_text(encoding="utf-8")))
        else:
            extractor = ExtractionAgent(llm_client=create_llm_client(settings.llm.provider, settings.llm.api_key))
            action_list = await extractor.parse_command(instruction)
            if action_list is None:
                return None, None

        workspace = InMemoryWorkspace()
        interpreter = ActionInterpreter(workspace, InMemoryAgencyStore(), channel_delay=0)
        return await interpreter.execute(action_list), workspace

    try:
        report, workspace = asyncio.run(execute())
    except ValueError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(code=1)

    if report is None:
        console.print("[red]Could not parse instructions.[/red]")
        raise typer.Exit(code=1)

    console.print(report.render())
    console.print(render_tree(workspace))


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
