#!/usr/bin/env python3
"""CLI for reviewing stored grading sessions and rubrics."""

import getpass
import logging

import click
from rich.console import Console
from rich.table import Table

from fairgrade.libs.config_loader import load_all_configs
from fairgrade.tools.grading.batch_grader import improvement_suggestions, summarize
from .store import RubricStore, SessionAccessError, SessionNotFoundError, SessionStore

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
LOG = logging.getLogger(__name__)

console = Console()


def _score_style(score: float) -> str:
    if score >= 80:
        return "green"
    if score >= 60:
        return "yellow"
    return "red"


@click.group()
@click.option('--user', '-u', default=None, help='Session owner (default: current OS user)')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.pass_context
def main(ctx, user, verbose):
    """Review, search and delete saved grading sessions."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    configs = load_all_configs()
    ctx.obj = {
        'user': user or getpass.getuser(),
        'sessions': SessionStore.from_config(configs),
        'rubrics': RubricStore.from_config(configs),
    }


@main.command('list')
@click.option('--search', '-s', default=None, help='Filter by session name')
@click.option('--subject', default=None, help='Filter by subject')
@click.pass_obj
def list_sessions(obj, search, subject):
    """List past grading sessions, newest first."""
    sessions = obj['sessions'].list(obj['user'], search=search, subject=subject)
    if not sessions:
        console.print("[yellow]No grading sessions found.[/yellow]")
        return

    table = Table(title="Past Grading Sessions")
    table.add_column("Id", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Subject")
    table.add_column("Created")
    table.add_column("Students", justify="right")
    table.add_column("Average", justify="right")

    for session in sessions:
        average = session.average_score
        table.add_row(
            session.id,
            session.session_name or "-",
            session.subject or "-",
            session.created_at[:19].replace("T", " "),
            str(len(session.results)),
            f"[{_score_style(average)}]{average:.1f}%[/]",
        )
    console.print(table)


@main.command('show')
@click.argument('session_id')
@click.pass_obj
def show_session(obj, session_id):
    """Show per-student results and improvement suggestions for one session."""
    try:
        session = obj['sessions'].get(session_id, obj['user'])
    except (SessionNotFoundError, SessionAccessError):
        raise click.ClickException(f"No session {session_id} for user {obj['user']}")

    stats = summarize(session.results)
    console.print(f"\n[bold cyan]{session.session_name or session.id}[/bold cyan] ({session.subject})")
    console.print(
        f"Average {stats['average']:.1f}% | Highest {stats['highest']}% | "
        f"Lowest {stats['lowest']}% | Needs review {stats['needs_review']}"
    )

    for result in session.results:
        table = Table(title=f"{result.name}: {result.score}% ({result.feedback})")
        table.add_column("Criterion", style="cyan")
        table.add_column("Score", justify="right")
        table.add_column("Status")
        for criterion in result.criteria:
            pct = criterion.percentage
            table.add_row(
                criterion.name,
                f"[{_score_style(pct)}]{criterion.score}/{criterion.max_score}[/]",
                "[red]review manually[/red]" if criterion.status == "fallback" else "ok",
            )
        console.print(table)

        suggestions = improvement_suggestions(result)
        if suggestions:
            console.print("[bold]Suggestions for Improvement[/bold]")
            for name, items in suggestions.items():
                for item in items or ["No specific suggestions given."]:
                    console.print(f"  • [cyan]{name}:[/cyan] {item}")


@main.command('delete')
@click.argument('session_id')
@click.option('--yes', is_flag=True, help='Delete without asking')
@click.pass_obj
def delete_session(obj, session_id, yes):
    """Delete a grading session."""
    if not yes and not click.confirm(f"Delete session {session_id}?", default=False):
        console.print("[red]Session not deleted.[/red]")
        return
    try:
        obj['sessions'].delete(session_id, obj['user'])
    except (SessionNotFoundError, SessionAccessError):
        raise click.ClickException(f"No session {session_id} for user {obj['user']}")
    console.print(f"[green]✓ Deleted session {session_id}[/green]")


@main.command('rubrics')
@click.option('--subject', default=None, help='Filter by subject')
@click.option('--search', '-s', default=None, help='Filter by name or content')
@click.pass_obj
def list_rubrics(obj, subject, search):
    """List rubric templates and your saved rubrics."""
    store = obj['rubrics']
    store.initialize_defaults()
    rubrics = store.list(obj['user'], subject=subject, search=search)

    table = Table(title="Rubrics")
    table.add_column("Id", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Subject")
    table.add_column("Criteria")
    for rubric in rubrics:
        name = f"{rubric.name} [dim](template)[/dim]" if rubric.is_template else rubric.name
        table.add_row(rubric.id, name, rubric.subject, rubric.content)
    console.print(table)


if __name__ == '__main__':
    main()
