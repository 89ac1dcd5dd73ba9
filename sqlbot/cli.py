#!/usr/bin/env python3
"""
Command Line Interface for SQLBot.

USAGE:
  sqlbot setup sakila                 # download Sakila, write profile + config
  sqlbot download sakila              # download the Sakila database only
  sqlbot                              # interactive session (default profile)
  sqlbot --profile Sakila "How many films are rated PG?"
  sqlbot --no-repl "SELECT COUNT(*) FROM film;"

Inside a session, questions go to the LLM and anything that looks like
SQL (ends with ';' or opens like a statement, e.g. "SELECT title FROM")
runs directly. Slash commands are listed by /help.
"""
import sys
import argparse
from pathlib import Path
from typing import Dict, Any, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.syntax import Syntax
from rich.prompt import Confirm
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich import box
from rich.markup import escape

from sqlbot import __version__
from sqlbot.adapters import create_adapter, DatabaseError
from sqlbot.configs import (
    SQLBotConfig,
    ConfigurationError,
    load_config,
    setup_logging,
    validate_configuration,
)
from sqlbot.knowledge import load_knowledge
from sqlbot.models import ExecutionStatus, QueryResponse
from sqlbot.orchestrator import QueryEngine, create_llm_client
from sqlbot.profiles import (
    DownloadError,
    ProfileError,
    ResolvedProfile,
    download_sakila,
    resolve_profile,
    setup_sakila,
)
from sqlbot.tools import describe_table

console = Console()

COMMANDS = ("setup", "download")
SUPPORTED_DATASETS = ("sakila",)
MAX_DISPLAY_ROWS = 50

STATUS_STYLES = {
    ExecutionStatus.SUCCESS: ("✅", "green"),
    ExecutionStatus.EMPTY: ("📭", "yellow"),
    ExecutionStatus.ERROR: ("❌", "red"),
    ExecutionStatus.BLOCKED: ("🚫", "red"),
    ExecutionStatus.CANCELLED: ("⏹", "yellow"),
}

HELP_TEXT = """[bold]Slash commands[/bold]
  /help             Show this help
  /tables           List tables with row counts
  /schema <table>   Show the columns of a table
  /dangerous        Toggle dangerous mode (allows writes)
  /preview          Toggle preview mode (confirm before executing)
  /history          Show earlier questions in this session
  /clear            Forget the session history
  /exit             Leave SQLBot

Type a question in plain English, or SQL ending with ';'."""


# ============================================================
# ARGUMENT PARSING
# ============================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sqlbot",
        description="SQLBot - ask your database questions in natural language",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  sqlbot setup sakila [--force]      Download Sakila and create profile + config
  sqlbot download sakila [--force]   Download the Sakila database only

Examples:
  sqlbot --profile Sakila                              # Interactive session
  sqlbot --profile Sakila "Top 5 customers by spend"   # Ask, then stay interactive
  sqlbot --no-repl "SELECT COUNT(*) FROM film;"        # Run and exit
        """
    )
    parser.add_argument("query", nargs="*", help="Questions or SQL statements to run")
    parser.add_argument("--profile", help="dbt profile name (default from config: Sakila)")
    parser.add_argument("--target", help="Profile target/output (default: the profile's target)")
    parser.add_argument("--profiles-dir", dest="profiles_dir", help="Directory containing profiles.yml")
    parser.add_argument("--config", type=Path, help="Path to config.yml (default: .sqlbot/config.yml)")
    parser.add_argument("--model", help="LLM model, any LiteLLM model string")
    parser.add_argument("--dangerous", action="store_true", help="Disable read-only safety checks")
    parser.add_argument("--preview", action="store_true", help="Confirm each statement before it runs")
    parser.add_argument("--no-repl", action="store_true", dest="no_repl", help="Exit after running the given queries")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--version", action="version", version=f"sqlbot {__version__}")
    return parser


def build_command_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sqlbot", description="SQLBot dataset commands")
    parser.add_argument("command", choices=COMMANDS)
    parser.add_argument("dataset", choices=SUPPORTED_DATASETS)
    parser.add_argument("--force", action="store_true", help="Re-download and overwrite existing files")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def config_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Nested config overrides for the flags that were given."""
    overrides: Dict[str, Any] = {}
    for key in ("profile", "target", "profiles_dir"):
        value = getattr(args, key)
        if value:
            overrides[key] = value
    if args.model:
        overrides["llm"] = {"model": args.model}
    database: Dict[str, Any] = {}
    if args.dangerous:
        database["read_only"] = False
    if args.preview:
        database["preview_mode"] = True
    if database:
        overrides["database"] = database
    if args.verbose:
        overrides["log_level"] = "DEBUG"
    return overrides


# ============================================================
# RENDERING
# ============================================================

def print_banner(config: SQLBotConfig, profile: ResolvedProfile, llm_enabled: bool) -> None:
    info = Table.grid(padding=(0, 2))
    info.add_column(style="cyan", justify="right")
    info.add_column(style="white")
    info.add_row("Profile:", f"[bold]{profile.name}[/bold] ({profile.target})")
    info.add_row("Database:", profile.connection.describe())
    info.add_row("LLM:", f"[green]{config.llm.model}[/green]" if llm_enabled else "[yellow]disabled (SQL only)[/yellow]")
    mode = "[red]DANGEROUS (writes allowed)[/red]" if not config.database.read_only else "[green]read-only[/green]"
    if config.database.preview_mode:
        mode += " + preview"
    info.add_row("Mode:", mode)
    console.print(Panel(info, title=f"[bold blue]SQLBot {__version__}[/bold blue]", border_style="blue"))


def print_response(response: QueryResponse) -> None:
    """Render SQL, results and status for one query."""
    if response.sql:
        title = "Generated SQL" if response.generated else "SQL"
        console.print(Panel(Syntax(response.sql, "sql", theme="monokai", word_wrap=True),
                            title=title, title_align="left", border_style="cyan"))

    result = response.result
    if result and result.column_names and result.data:
        table = Table(box=box.SIMPLE_HEAVY, show_header=True, header_style="bold magenta")
        for column in result.column_names:
            table.add_column(str(column))
        for row in result.data[:MAX_DISPLAY_ROWS]:
            table.add_row(*["NULL" if row.get(c) is None else str(row.get(c)) for c in result.column_names])
        console.print(table)
        if result.row_count > MAX_DISPLAY_ROWS:
            console.print(f"[dim]… {result.row_count - MAX_DISPLAY_ROWS} more rows not shown[/dim]")

    icon, color = STATUS_STYLES.get(response.status, ("•", "white"))
    status_line = f"[{color}]{icon} {response.status.value.upper()}[/{color}]  {escape(response.answer)}"
    if response.correction_attempts:
        status_line += f"  [yellow](self-corrected {response.correction_attempts}x)[/yellow]"
    if response.total_time_ms is not None:
        status_line += f"  [dim]{response.total_time_ms:.0f} ms[/dim]"
    console.print(status_line)

    for warning in response.warnings:
        console.print(f"  [yellow]⚠️  {escape(warning)}[/yellow]")
    console.print()


def confirm_sql(sql: str) -> bool:
    console.print(Panel(Syntax(sql, "sql", theme="monokai", word_wrap=True),
                        title="Preview", title_align="left", border_style="yellow"))
    return Confirm.ask("Execute this query?", default=True, console=console)


# ============================================================
# SESSION
# ============================================================

def run_query(engine: QueryEngine, text: str) -> QueryResponse:
    if engine.preview_mode:
        # Preview prompts need the terminal, no spinner
        response = engine.process(text, confirm=confirm_sql)
    else:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True
        ) as progress:
            progress.add_task(description="Thinking...", total=None)
            response = engine.process(text, confirm=confirm_sql)
    print_response(response)
    return response


def handle_slash_command(engine: QueryEngine, line: str) -> bool:
    """Run a slash command. Returns False when the session should end."""
    parts = line[1:].split(maxsplit=1)
    command = parts[0].lower() if parts else ""
    argument = parts[1].strip() if len(parts) > 1 else ""

    if command in ("exit", "quit", "q"):
        return False
    if command == "help":
        console.print(HELP_TEXT)
    elif command == "tables":
        table = Table(box=box.SIMPLE, show_header=True, header_style="bold magenta")
        table.add_column("Table")
        table.add_column("Rows", justify="right")
        for info in engine.schema.tables:
            table.add_row(info.name, "" if info.row_count is None else str(info.row_count))
        console.print(table)
        console.print(f"[dim]{engine.schema.summary}[/dim]")
    elif command == "schema":
        if not argument:
            console.print("[yellow]Usage: /schema <table>[/yellow]")
            return True
        rows = describe_table(engine.schema, argument)
        if rows is None:
            console.print(f"[red]Unknown table: {escape(argument)}[/red]")
            return True
        table = Table(title=argument, box=box.SIMPLE, show_header=True, header_style="bold magenta")
        for header in ("Column", "Type", "Flags", "References"):
            table.add_column(header)
        for row in rows:
            table.add_row(*row)
        console.print(table)
        related = engine.schema.get_related_tables(argument)
        if related:
            console.print(f"[dim]Related tables: {', '.join(related)}[/dim]")
    elif command == "dangerous":
        engine.set_dangerous(engine.read_only)
        state = "[red]ON - writes allowed[/red]" if not engine.read_only else "[green]OFF - read-only[/green]"
        console.print(f"Dangerous mode {state}")
    elif command == "preview":
        engine.set_preview(not engine.preview_mode)
        console.print(f"Preview mode {'ON' if engine.preview_mode else 'OFF'}")
    elif command == "history":
        if not engine.history:
            console.print("[dim]No history yet.[/dim]")
        for i, turn in enumerate(engine.history, 1):
            console.print(f"{i}. [bold]{escape(turn.question)}[/bold] [dim]({turn.row_count} rows)[/dim]")
    elif command == "clear":
        engine.reset_history()
        console.print("[dim]History cleared.[/dim]")
    else:
        console.print(f"[red]Unknown command: /{escape(command)}[/red]  (try /help)")
    return True


def interactive_mode(engine: QueryEngine) -> None:
    """Read questions until /exit, EOF or Ctrl-C."""
    console.print("[dim]Ask a question, enter SQL ending with ';', or /help. /exit to quit.[/dim]\n")
    while True:
        try:
            line = console.input("[bold yellow]sqlbot> [/bold yellow]").strip()
        except (KeyboardInterrupt, EOFError):
            console.print("\n[bold green]Goodbye! 👋[/bold green]")
            break

        if not line:
            continue
        if line.lower() in ("exit", "quit"):
            break
        if line.startswith("/"):
            try:
                if not handle_slash_command(engine, line):
                    break
            except DatabaseError as e:
                console.print(f"[bold red]Error: {escape(str(e))}[/bold red]")
            continue

        try:
            run_query(engine, line)
        except KeyboardInterrupt:
            console.print("\n[yellow]Cancelled.[/yellow]")
        except DatabaseError as e:
            console.print(f"[bold red]Error: {escape(str(e))}[/bold red]")


# ============================================================
# ENTRY POINTS
# ============================================================

def run_dataset_command(argv: List[str]) -> int:
    args = build_command_parser().parse_args(argv)
    setup_logging("DEBUG" if args.verbose else "INFO")

    try:
        if args.command == "download":
            console.print("Downloading Sakila database...")
            downloaded = download_sakila(force=args.force)
            message = "downloaded" if downloaded else "already present (use --force to re-download)"
            console.print(f"[green]✓ Sakila database {message}[/green]")
            return 0

        report = setup_sakila(force=args.force)
    except (DownloadError, ProfileError, ConfigurationError) as e:
        console.print(f"[bold red]{escape(str(e))}[/bold red]")
        return 1

    summary = Table.grid(padding=(0, 2))
    summary.add_column(style="cyan", justify="right")
    summary.add_column()
    summary.add_row("Database:", f"{report.database_path} ({'downloaded' if report.database_downloaded else 'kept'})")
    summary.add_row("Profile:", f"{report.profiles_path}")
    summary.add_row("Knowledge:", f"{report.knowledge_path} ({'written' if report.knowledge_written else 'kept'})")
    summary.add_row("Config:", f"{report.config_path} ({'written' if report.config_written else 'kept'})")
    console.print(Panel(summary, title="[bold green]✅ Sakila setup complete[/bold green]", border_style="green"))
    console.print("Next: [bold]sqlbot --profile Sakila[/bold]")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    argv = sys.argv[1:] if argv is None else list(argv)

    if argv and argv[0] in COMMANDS:
        return run_dataset_command(argv)

    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config, overrides=config_overrides(args))
        setup_logging(config.log_level)
        profile = resolve_profile(config.profile, config.target, config.profiles_dir)
    except (ConfigurationError, ProfileError) as e:
        console.print(f"[bold red]{escape(str(e))}[/bold red]")
        return 1

    llm = None
    try:
        validate_configuration(config)
        llm = create_llm_client(config)
    except ConfigurationError as e:
        console.print(f"[yellow]⚠️  LLM disabled - only SQL input will work.{escape(str(e))}[/yellow]")

    try:
        adapter = create_adapter(
            profile.connection,
            read_only=config.database.read_only,
            timeout_seconds=config.database.query_timeout_seconds,
        )
    except DatabaseError as e:
        console.print(f"[bold red]{escape(str(e))}[/bold red]")
        return 1

    try:
        knowledge = load_knowledge(profile.name, max_chars=config.knowledge_max_chars)
        engine = QueryEngine(config, adapter, llm=llm, knowledge=knowledge)
        print_banner(config, profile, llm is not None)

        failed = False
        for text in args.query:
            response = run_query(engine, text)
            failed = failed or response.status in (ExecutionStatus.ERROR, ExecutionStatus.BLOCKED)

        if args.no_repl:
            return 1 if failed else 0
        interactive_mode(engine)
    except DatabaseError as e:
        console.print(f"[bold red]Fatal error: {escape(str(e))}[/bold red]")
        return 1
    finally:
        adapter.disconnect()
    return 0


if __name__ == "__main__":
    sys.exit(main())
