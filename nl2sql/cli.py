"""
Command Line Interface for nl2sql.
"""

import logging
from typing import Any, Dict, List

import click
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from .config import settings
from .core.exceptions import InputValidationError, NL2SQLError
from .core.models import QueryResult
from .generation import get_example_queries
from .orchestrator import QueryOrchestrator


# Set up logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Rich console
console = Console()


def _build_orchestrator(ctx: click.Context, **kwargs) -> QueryOrchestrator:
    return QueryOrchestrator(database_url=ctx.obj['db_url'], **kwargs)


def _rows_table(rows: List[Dict[str, Any]]) -> Table:
    table = Table(show_header=True, header_style="bold magenta")
    for col in rows[0].keys():
        table.add_column(str(col))
    for row in rows:
        table.add_row(*[str(val) for val in row.values()])
    return table


def _print_result(result: QueryResult, sql_only: bool = False) -> None:
    console.print(f"\n[bold green]✓[/bold green] Generated SQL [dim]({result.source})[/dim]:")
    console.print(Syntax(result.sql, "sql", theme="monokai", line_numbers=False))
    console.print(f"[cyan]{result.explanation}[/cyan]")

    if sql_only:
        return

    if result.error:
        console.print(f"\n[bold red]✗[/bold red] {result.error}")
    elif result.data:
        console.print(f"\n[bold green]✓[/bold green] {len(result.data)} row(s):")
        console.print(_rows_table(result.data))
    else:
        console.print("\n[yellow]Query returned no rows[/yellow]")


@click.group()
@click.option('--db-url', envvar='DATABASE_URL', help='Database connection URL')
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
@click.pass_context
def cli(ctx, db_url, verbose):
    """nl2sql: ask your database questions in plain English."""
    ctx.ensure_object(dict)
    ctx.obj['db_url'] = db_url
    ctx.obj['verbose'] = verbose

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


@cli.command()
@click.argument('query')
@click.option('--model', help='Ollama model name')
@click.option('--no-llm', is_flag=True, help='Use rule-based generation only')
@click.option('--table', 'tables', multiple=True, help='Table to focus generation on (repeatable)')
@click.option('--sql-only', is_flag=True, help='Show the SQL without the result rows')
@click.pass_context
def query(ctx, query, model, no_llm, tables, sql_only):
    """Convert natural language query to SQL and run it."""
    console.print(f"[bold blue]Query:[/bold blue] {query}")

    orchestrator = _build_orchestrator(ctx, llm_enabled=False if no_llm else None)

    try:
        result = orchestrator.generate_and_execute(query, model=model, tables=list(tables) or None)
    except InputValidationError as e:
        raise click.BadParameter(e.message, param_hint="QUERY")
    except NL2SQLError as e:
        console.print(f"[bold red]✗[/bold red] Error processing query: {e}")
        raise click.ClickException(str(e))

    _print_result(result, sql_only=sql_only)
    if result.error:
        ctx.exit(1)


@cli.command()
@click.pass_context
def tables(ctx):
    """List database tables."""
    orchestrator = _build_orchestrator(ctx)

    try:
        table_infos = orchestrator.list_tables()
    except NL2SQLError as e:
        console.print(f"[bold red]✗[/bold red] Error listing tables: {e}")
        raise click.ClickException(str(e))

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Schema")
    table.add_column("Table Name")
    table.add_column("Row Count", justify="right")

    for t in table_infos:
        table.add_row(t.schema_name, t.name, str(t.row_count))

    console.print(table)


@cli.command()
@click.argument('table_name')
@click.pass_context
def schema(ctx, table_name):
    """Show the columns of a table."""
    orchestrator = _build_orchestrator(ctx)

    try:
        columns = orchestrator.get_table_schema(table_name)
    except InputValidationError:
        console.print(f"[yellow]Table '{table_name}' not found[/yellow]")
        ctx.exit(1)
    except NL2SQLError as e:
        console.print(f"[bold red]✗[/bold red] Error getting schema: {e}")
        raise click.ClickException(str(e))

    table = Table(show_header=True, header_style="bold magenta", title=f"Table: {table_name}")
    table.add_column("Column")
    table.add_column("Type")
    table.add_column("Max Length", justify="right")
    table.add_column("Nullable")
    table.add_column("PK")

    for col in columns:
        table.add_row(
            col.name,
            col.sql_type,
            str(col.max_length) if col.max_length >= 0 else "-",
            "yes" if col.nullable else "no",
            "✓" if col.is_primary_key else "",
        )

    console.print(table)


@cli.command()
@click.argument('table_name')
@click.option('--limit', type=int, default=10, show_default=True, help='Number of rows')
@click.pass_context
def sample(ctx, table_name, limit):
    """Show the first rows of a table."""
    orchestrator = _build_orchestrator(ctx)

    try:
        rows = orchestrator.fetch_sample_data(table_name, limit=limit)
    except InputValidationError as e:
        raise click.BadParameter(e.message, param_hint="TABLE_NAME")
    except NL2SQLError as e:
        console.print(f"[bold red]✗[/bold red] Error fetching sample data: {e}")
        raise click.ClickException(str(e))

    if rows:
        console.print(_rows_table(rows))
    else:
        console.print(f"[yellow]Table '{table_name}' is empty[/yellow]")


@cli.command()
@click.pass_context
def relationships(ctx):
    """Show foreign key relationships."""
    orchestrator = _build_orchestrator(ctx)

    try:
        fks = orchestrator.get_relationships()
    except NL2SQLError as e:
        console.print(f"[bold red]✗[/bold red] Error getting relationships: {e}")
        raise click.ClickException(str(e))

    if not fks:
        console.print("[yellow]No foreign key relationships found[/yellow]")
        return

    for fk in fks:
        console.print(
            f"{fk.table_name}.{fk.column_name} -> "
            f"{fk.referenced_table_name}.{fk.referenced_column_name} [dim]({fk.constraint_name})[/dim]"
        )


@cli.command()
@click.pass_context
def models(ctx):
    """Check Ollama and list installed models."""
    orchestrator = _build_orchestrator(ctx)
    status = orchestrator.check_model_status()

    if not status.running:
        console.print(
            "[yellow]Ollama is not available. Queries will use the rule-based fallback approach.[/yellow]"
        )
        return

    console.print(f"[bold green]✓[/bold green] Ollama is running at {orchestrator.llm_manager.base_url}")
    for name in status.models:
        marker = " [green](default)[/green]" if name.split(":")[0] == settings.llm_model_name.split(":")[0] else ""
        console.print(f"  - {name}{marker}")


@cli.command('test-connection')
@click.pass_context
def test_connection(ctx):
    """Test the database connection."""
    orchestrator = _build_orchestrator(ctx)
    outcome = orchestrator.test_connection()

    if outcome["success"]:
        console.print(
            f"[bold green]✓[/bold green] Connected. {settings.default_table} has {outcome['count']} rows"
        )
    else:
        console.print(f"[bold red]✗[/bold red] Connection failed: {outcome['error']}")
        ctx.exit(1)


@cli.command()
def examples():
    """Show example questions."""
    console.print(Panel("\n".join(f"• {q}" for q in get_example_queries()), title="Try these examples"))


@cli.command()
@click.option('--host', default=None, help='Bind host (default from settings)')
@click.option('--port', type=int, default=None, help='Bind port (default from settings)')
def serve(host, port):
    """Start the HTTP API."""
    import uvicorn

    uvicorn.run(
        "nl2sql.api.main:app",
        host=host or settings.app_host,
        port=port or settings.app_port,
        reload=settings.debug,
    )


@cli.command()
@click.option('--no-llm', is_flag=True, help='Use rule-based generation only')
@click.pass_context
def interactive(ctx, no_llm):
    """Start interactive mode."""
    console.print("[bold green]Welcome to nl2sql Interactive Mode![/bold green]")
    console.print("Type 'exit' or 'quit' to exit\n")

    orchestrator = _build_orchestrator(ctx, llm_enabled=False if no_llm else None)

    while True:
        try:
            text = click.prompt("\nEnter your query", type=str)

            if text.lower() in ['exit', 'quit']:
                console.print("[bold green]Goodbye![/bold green]")
                break

            if not text.strip():
                continue

            _print_result(orchestrator.generate_and_execute(text))

        except (KeyboardInterrupt, click.Abort):
            console.print("\n[bold green]Goodbye![/bold green]")
            break
        except NL2SQLError as e:
            console.print(f"\n[bold red]Error: {e}[/bold red]")


def main():
    """Entry point for the CLI."""
    cli()
