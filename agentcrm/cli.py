"""AgentCRM CLI - Main entry point."""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

import typer
from rich.console import Console
from rich.table import Table

from .config import settings

app = typer.Typer(
    name="agentcrm",
    help="AgentCRM: AI lead and pipeline agents for native, Salesforce and HubSpot CRMs",
    no_args_is_help=True,
)
console = Console()

tokens_app = typer.Typer(help="OAuth token commands")
sync_app = typer.Typer(help="CRM sync commands")
test_data_app = typer.Typer(help="Sample data commands")

app.add_typer(tokens_app, name="tokens")
app.add_typer(sync_app, name="sync")
app.add_typer(test_data_app, name="test-data")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _output_result(result: dict[str, Any]) -> None:
    console.print_json(json.dumps(result, default=str, indent=2))


@asynccontextmanager
async def _session():
    """Session on the configured database, creating SQLite tables on first use."""
    from .database import async_session_factory, create_schema

    if "sqlite" in settings.database_url:
        await create_schema()
    async with async_session_factory() as session:
        yield session


# ============================================================================
# Agent Commands
# ============================================================================


@app.command("run")
def run_agent(
    agent_type: str = typer.Argument(..., help="Agent type, e.g. lead-intelligence"),
    platform: str = typer.Option("native", "--platform", "-p", help="native, salesforce or hubspot"),
    actions: bool = typer.Option(False, "--actions", help="Write results back to the CRM"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Max records to analyze"),
    record_id: Optional[list[str]] = typer.Option(None, "--record-id", help="Analyze only these records"),
    user_id: Optional[str] = typer.Option(None, "--user", help="User whose CRM connection to use"),
    simulate: bool = typer.Option(False, "--simulate", help="Fall back to sample records"),
    json_output: bool = typer.Option(False, "--json", help="Print the raw envelope"),
):
    """Run one agent over a batch of records."""
    from pydantic import ValidationError

    from .agents.runner import AgentRunner
    from .integrations.base import CRMAPIError
    from .integrations.llm import LLMError
    from .oauth.lifecycle import TokenInvalidError
    from .schemas.agent import AgentRunRequest

    try:
        request = AgentRunRequest(
            agent_type=agent_type,
            platform=platform,
            enable_actions=actions,
            limit=limit,
            record_ids=record_id or None,
            user_id=user_id,
            simulate=simulate,
        )
    except ValidationError as e:
        console.print(f"[red]Invalid arguments: {e.errors()[0]['msg']}[/red]")
        raise typer.Exit(2)

    async def _run():
        async with _session() as db:
            return await AgentRunner(db).run(request)

    try:
        response = asyncio.run(_run())
    except TokenInvalidError as e:
        console.print(f"[red]{e.reason}[/red]")
        console.print(f"[dim]Connect with: POST /api/oauth/{e.platform}/authorize[/dim]")
        raise typer.Exit(1)
    except (CRMAPIError, LLMError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    envelope = response.model_dump(mode="json", by_alias=True)
    if json_output:
        _output_result(envelope)
        return

    if response.status == "empty":
        console.print(f"[yellow]{response.message}[/yellow]")
        return

    table = Table(title=f"{agent_type} on {platform} ({response.status})")
    table.add_column("Record", style="cyan")
    table.add_column("Status")
    table.add_column("Confidence", justify="right")
    table.add_column("Summary")
    table.add_column("Actions", justify="right")
    status_style = {"ok": "green", "degraded": "yellow", "failed": "red"}
    for item in response.analysis:
        table.add_row(
            item.name,
            f"[{status_style[item.status]}]{item.status}[/{status_style[item.status]}]",
            f"{item.confidence:.2f}",
            (item.analysis.reasoning or "")[:60],
            str(item.actions_executed),
        )
    console.print(table)
    console.print(
        f"Records: {response.records_analyzed}  Confidence: {response.confidence:.2f}  "
        f"Actions: {response.actions_executed}  Time: {response.execution_time_ms}ms"
    )
    if response.summary:
        _output_result(response.summary)


@app.command("agents")
def list_agents():
    """List the available agent types."""
    from .agents.registry import AGENTS

    table = Table(title="Agents")
    table.add_column("Type", style="cyan")
    table.add_column("Label")
    table.add_column("Records")
    table.add_column("Default limit", justify="right")
    table.add_column("Confidence", justify="right")
    for agent in AGENTS.values():
        table.add_row(
            agent.agent_type, agent.label, agent.record_kind,
            str(agent.default_limit), f"{agent.confidence:.2f}",
        )
    console.print(table)


@app.command("executions")
def list_executions(
    limit: int = typer.Option(20, "--limit", "-n", help="Number of executions"),
    agent_type: Optional[str] = typer.Option(None, "--agent", help="Filter by agent type"),
):
    """Show recent agent executions."""
    from .services import agent_svc

    async def _list():
        async with _session() as db:
            return await agent_svc.list_executions(db, limit=limit, agent_type=agent_type)

    rows = asyncio.run(_list())
    if not rows:
        console.print("[yellow]No executions recorded[/yellow]")
        return

    table = Table(title="Executions")
    table.add_column("When", style="dim")
    table.add_column("Agent", style="cyan")
    table.add_column("Platform")
    table.add_column("Status")
    table.add_column("Confidence", justify="right")
    table.add_column("Time", justify="right")
    for ex in rows:
        table.add_row(
            str(ex.created_at)[:19],
            ex.agent_type,
            ex.platform,
            ex.status,
            f"{ex.confidence_score:.2f}" if ex.confidence_score is not None else "-",
            f"{ex.execution_time_ms}ms" if ex.execution_time_ms is not None else "-",
        )
    console.print(table)


# ============================================================================
# Token Commands
# ============================================================================


@tokens_app.command("status")
def tokens_status(
    user_id: str = typer.Option("default", "--user", help="User id"),
):
    """Show the connection state for Salesforce and HubSpot."""
    from .oauth.lifecycle import TokenLifecycle

    async def _status():
        async with _session() as db:
            lifecycle = TokenLifecycle(db)
            return [await lifecycle.status(p, user_id) for p in ("salesforce", "hubspot")]

    table = Table(title=f"Connections for {user_id}")
    table.add_column("Platform", style="cyan")
    table.add_column("State")
    table.add_column("Expires")
    for status in asyncio.run(_status()):
        table.add_row(
            status.platform,
            status.state.value,
            status.expires_at.isoformat() if status.expires_at else "-",
        )
    console.print(table)


# ============================================================================
# Sync Commands
# ============================================================================


@sync_app.command("salesforce")
def sync_salesforce_cmd(
    user_id: str = typer.Option("default", "--user", help="User id"),
    limit: int = typer.Option(50, "--limit", "-n", help="Max records per object type"),
):
    """Import accounts, contacts and opportunities from Salesforce."""
    from .integrations.base import CRMAPIError
    from .oauth.lifecycle import TokenInvalidError, TokenLifecycle
    from .sync.salesforce_sync import sync_salesforce

    async def _sync():
        async with _session() as db:
            client = await TokenLifecycle(db).open_client("salesforce", user_id)
            async with client:
                return await sync_salesforce(db, client, limit=limit)

    try:
        results = asyncio.run(_sync())
    except (TokenInvalidError, CRMAPIError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title="Salesforce sync")
    table.add_column("Object", style="cyan")
    table.add_column("Created", justify="right")
    table.add_column("Updated", justify="right")
    table.add_column("Failed", justify="right")
    for object_type, result in results.items():
        table.add_row(object_type, str(result.created), str(result.updated), str(result.failed))
    console.print(table)


# ============================================================================
# Test Data Commands
# ============================================================================


@test_data_app.command("generate")
def test_data_generate(
    companies: int = typer.Option(5, "--companies", help="Companies to create"),
    contacts: int = typer.Option(10, "--contacts", help="Contacts to create"),
    opportunities: int = typer.Option(8, "--opportunities", help="Opportunities to create"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Random seed"),
):
    """Create flagged sample companies, contacts and opportunities."""
    from .services.test_data_svc import generate_test_data

    async def _generate():
        async with _session() as db:
            return await generate_test_data(
                db, companies=companies, contacts=contacts, opportunities=opportunities, seed=seed
            )

    created = asyncio.run(_generate())
    console.print(f"[green]Created {created}[/green]")


@test_data_app.command("clear")
def test_data_clear():
    """Delete every row created by the sample data generator."""
    from .services.test_data_svc import clear_test_data

    async def _clear():
        async with _session() as db:
            return await clear_test_data(db)

    deleted = asyncio.run(_clear())
    console.print(f"[green]Deleted {deleted}[/green]")


# ============================================================================
# Server
# ============================================================================


@app.command("serve")
def serve(
    port: int = typer.Option(8030, "--port", "-p", help="Port to run on"),
    host: str = typer.Option("127.0.0.1", "--host", help="Host to bind to"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Launch the AgentCRM API."""
    import uvicorn

    console.print(f"[bold cyan]Starting AgentCRM at http://{host}:{port}[/bold cyan]")
    uvicorn.run("agentcrm.app:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
