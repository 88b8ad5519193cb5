"""CLI commands for InterpretReflect.

Commands:
- init-db: Create the SQLite schema
- glossary-add / glossary-list / review: Terminology glossary with spaced repetition
- cert-add / ceus: Certifications and CEU tracking
- techniques / breathe: Guided reset techniques
- insights: Reflection stats and pattern nudges
- audit: Accessibility/SEO/security audit of a page
- serve: Run the web API
"""

import time
from datetime import date
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from reflect.config.app_config import load_app_config
from reflect.config.techniques import (
    DURATION_SECONDS,
    PACE_TIMINGS,
    Question,
    UnknownTechniqueError,
    list_techniques,
    require_technique,
)
from reflect.core.ceu_tracker import ceu_summary, certification_view
from reflect.core.insights import reflection_stats, reset_effectiveness, streak_days
from reflect.core.pattern_detection import build_user_data, load_engine, save_engine
from reflect.core.preferences import get_technique_preference
from reflect.core.site_audit import (
    AuditFetchError,
    fetch_html,
    render_text_summary,
    run_audit,
    write_reports,
)
from reflect.core.spaced_repetition import (
    add_term,
    compute_stats,
    due_terms,
    filter_terms,
    proficiency_label,
    review_term,
)
from reflect.core.technique_timer import (
    FlowPhase,
    TechniqueFlow,
    TechniqueStateError,
    format_time,
    save_completed_reset,
)
from reflect.db import activity_repository
from reflect.db.certifications_repository import add_certification, list_certifications, list_completions
from reflect.db.database import init_db
from reflect.db.glossary_repository import list_terms
from reflect.db.reflections_repository import list_reflections
from reflect.utils.validators import ValidationError

app = typer.Typer(
    name="reflect",
    help="Reflection, reset and growth tools for professional interpreters.",
    no_args_is_help=True,
)

console = Console()

USER_OPTION = typer.Option("local", "--user", "-u", envvar="REFLECT_USER", help="User ID")


def _fail(message: str) -> None:
    console.print(f"[red]✗ {message}[/red]")
    raise typer.Exit(code=1)


def _truncate(text: str, max_len: int = 40) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


@app.command(name="init-db")
def init_db_command() -> None:
    """Create the database schema (safe to run repeatedly)."""
    init_db()
    console.print(f"[green]✓ Database ready:[/green] {load_app_config().storage.db_path}")


# =============================================================================
# GLOSSARY
# =============================================================================


@app.command(name="glossary-add")
def glossary_add(
    term: str = typer.Argument(..., help="Term to learn"),
    definition: str = typer.Argument(..., help="Definition"),
    context: str | None = typer.Option(None, "--context", "-c", help="Usage example"),
    domain: str | None = typer.Option(None, "--domain", "-d", help="Domain (medical, legal, ...)"),
    user_id: str = USER_OPTION,
) -> None:
    """Add a term to the glossary."""
    init_db()
    try:
        record = add_term(user_id, term, definition, context=context, domain=domain)
    except ValidationError as e:
        _fail(str(e))

    console.print(f"[green]✓ Added:[/green] {record.term}")
    console.print(f"  Next review: {record.next_review_date}")


@app.command(name="glossary-list")
def glossary_list(
    query: str | None = typer.Option(None, "--query", "-q", help="Search text"),
    domain: str | None = typer.Option(None, "--domain", "-d", help="Filter by domain"),
    due: bool = typer.Option(False, "--due", help="Only terms due for review"),
    user_id: str = USER_OPTION,
) -> None:
    """List glossary terms."""
    init_db()
    today = date.today()
    all_terms = list_terms(user_id)
    terms = filter_terms(all_terms, query=query, domain=domain)
    if due:
        terms = due_terms(terms, today)

    if not terms:
        console.print("[yellow]No terms found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Term", style="cyan", no_wrap=True)
    table.add_column("Definition", max_width=40)
    table.add_column("Domain")
    table.add_column("Level", justify="center")
    table.add_column("Next review")

    for t in terms:
        table.add_row(
            t.term,
            _truncate(t.definition),
            t.domain or "-",
            proficiency_label(t.proficiency_level),
            t.next_review_date or "-",
        )

    console.print(table)
    stats = compute_stats(all_terms, today)
    console.print(
        f"[dim]{stats.total} terms | {stats.due_for_review} due | {stats.mastered} mastered[/dim]"
    )


@app.command()
def review(user_id: str = USER_OPTION) -> None:
    """Review due terms interactively."""
    init_db()
    terms = due_terms(list_terms(user_id), date.today())
    if not terms:
        console.print("[green]✓ Nothing due today.[/green]")
        return

    correct_count = 0
    for num, term in enumerate(terms, 1):
        console.print(f"\n[blue]Term {num}/{len(terms)}[/blue]")
        console.print(f"[bold]{term.term}[/bold]")
        typer.prompt("Press Enter to reveal", default="", show_default=False)
        console.print(f"  {term.definition}")
        if term.context:
            console.print(f"  [dim]{term.context}[/dim]")

        correct = typer.confirm("Did you know it?", default=True)
        outcome = review_term(user_id, term.id, correct)
        correct_count += int(correct)
        console.print(f"  Next review in {outcome.days_until_next} day(s)")

    console.print(f"\n[bold]Done:[/bold] {correct_count}/{len(terms)} correct")


# =============================================================================
# CERTIFICATIONS
# =============================================================================


@app.command(name="cert-add")
def cert_add(
    cert_type: str = typer.Argument(..., help="Certification type (e.g., NIC)"),
    expires: str | None = typer.Option(None, "--expires", "-e", help="Expiration date YYYY-MM-DD"),
    number: str | None = typer.Option(None, "--number", "-n", help="Certification number"),
    required: float = typer.Option(8.0, "--required", help="CEU hours required per cycle"),
    user_id: str = USER_OPTION,
) -> None:
    """Add a certification."""
    if not cert_type.strip():
        _fail("Certification type is required")
    if expires is not None:
        try:
            date.fromisoformat(expires)
        except ValueError:
            _fail(f"Invalid date '{expires}' (expected YYYY-MM-DD)")

    init_db()
    cert = add_certification(
        user_id,
        cert_type,
        cert_number=number,
        expiration_date=expires,
        ceu_hours_required=required,
    )
    console.print(f"[green]✓ Added certification:[/green] {cert.cert_type} ({cert.id[:8]})")


@app.command()
def ceus(user_id: str = USER_OPTION) -> None:
    """Show certifications, expiration status and CEU totals."""
    init_db()
    today = date.today()
    certs = list_certifications(user_id)
    completions = list_completions(user_id)

    if certs:
        colors = {"expired": "red", "urgent": "red", "warning": "yellow", "ok": "green"}
        table = Table(show_header=True, header_style="bold")
        table.add_column("Certification", style="cyan")
        table.add_column("Expires")
        table.add_column("Status")
        table.add_column("CEUs", justify="right")

        for cert in certs:
            view = certification_view(cert, today)
            status = view["status"]
            color = colors.get(status["level"], "dim")
            table.add_row(
                cert.cert_type,
                cert.expiration_date or "-",
                f"[{color}]{status['label']}[/{color}]",
                f"{cert.ceu_hours_completed:g}/{cert.ceu_hours_required:g}",
            )
        console.print(table)
    else:
        console.print("[yellow]No certifications yet.[/yellow]")

    summary = ceu_summary(certs, completions, today)
    console.print(
        f"Total CEUs: [bold]{summary.total_ceus:g}[/bold] from {summary.completions} completion(s)"
        f" | Active certifications: {summary.active_certifications}"
        f" | Required per cycle: {summary.required_per_cycle:g}"
    )


# =============================================================================
# RESET TECHNIQUES
# =============================================================================


@app.command()
def techniques() -> None:
    """List available reset techniques."""
    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Category")
    table.add_column("Durations")
    table.add_column("Paces")

    for t in list_techniques():
        table.add_row(t.id, t.name, t.category, ", ".join(t.durations), ", ".join(t.paces))

    console.print(table)


def _ask_option(question: Question) -> str | None:
    """Ask a multiple-choice question; Enter skips it."""
    console.print(f"\n[bold]{question.prompt}[/bold]")
    for idx, opt in enumerate(question.options, 1):
        console.print(f"  {idx}. {opt}")

    while True:
        raw = typer.prompt(
            f"Choose (1-{len(question.options)}, Enter to skip)",
            default="",
            show_default=False,
        ).strip()
        if not raw:
            return None
        try:
            choice = int(raw)
            if 1 <= choice <= len(question.options):
                return question.options[choice - 1]
        except ValueError:
            pass
        console.print(f"[yellow]⚠ Enter a number 1-{len(question.options)}[/yellow]")


@app.command()
def breathe(
    technique_id: str = typer.Argument("breathing-practice", help="Technique ID"),
    duration: str | None = typer.Option(
        None, "--duration", "-d", help=f"Duration: {', '.join(DURATION_SECONDS)}"
    ),
    pace: str | None = typer.Option(None, "--pace", "-p", help=f"Pace: {', '.join(PACE_TIMINGS)}"),
    tick_seconds: float | None = typer.Option(
        None, "--tick-seconds", help="Wall-clock seconds per tick (0 runs instantly)"
    ),
    effectiveness: int | None = typer.Option(None, "--effectiveness", help="How well it worked (1-5)"),
    user_id: str = USER_OPTION,
) -> None:
    """Run a guided breathing reset with a live countdown."""
    try:
        technique = require_technique(technique_id)
    except UnknownTechniqueError as e:
        _fail(str(e))

    init_db()
    saved = get_technique_preference(user_id, technique.id)
    if saved is not None:
        duration = duration or saved.duration_key
        pace = pace or saved.pace

    try:
        flow = TechniqueFlow(technique, duration_key=duration, pace=pace)
    except TechniqueStateError as e:
        _fail(str(e))

    if tick_seconds is None:
        tick_seconds = load_app_config().timer.tick_interval_seconds

    console.print(
        Panel(
            f"{technique.description}\n\n"
            f"Duration: {format_time(flow.duration_seconds)} | Pace: {flow.pace}",
            title=f"[bold]{technique.name}[/bold]",
            expand=False,
        )
    )

    flow.start()
    console.print(f"[cyan]{flow.breath_message}[/cyan]  {format_time(flow.remaining_seconds)}")
    try:
        while flow.phase is FlowPhase.PRACTICE:
            if tick_seconds > 0:
                time.sleep(tick_seconds)
            for event in flow.tick():
                if event.event_type == "breath_phase":
                    console.print(
                        f"[cyan]{flow.breath_message}[/cyan]  {format_time(flow.remaining_seconds)}"
                    )
    except KeyboardInterrupt:
        flow.finish_early()
        console.print("\n[yellow]Finished early.[/yellow]")

    console.print("\n[green bold]Practice complete.[/green bold]")

    answers: dict[str, str] = {}
    for question in technique.questions:
        answer = _ask_option(question)
        if answer is not None:
            answers[question.id] = answer

    try:
        record = flow.build_record(answers)
        stored = save_completed_reset(user_id, record, effectiveness=effectiveness)
        flow.complete(record)
    except (TechniqueStateError, ValidationError) as e:
        _fail(str(e))

    console.print(f"\n[green]✓ Reset saved[/green] ({stored['reset_log_id'][:8]})")


# =============================================================================
# INSIGHTS
# =============================================================================


@app.command()
def insights(user_id: str = USER_OPTION) -> None:
    """Show reflection stats, reset effectiveness and nudges."""
    init_db()
    today = date.today()
    stats = reflection_stats(list_reflections(user_id))
    resets = reset_effectiveness(activity_repository.list_reset_logs(user_id))
    activity_dates = activity_repository.list_activity_dates(user_id)

    console.print(
        Panel(
            f"Reflections: [bold]{stats.total}[/bold] "
            f"(week {stats.weekly}, month {stats.monthly})\n"
            f"Reflection streak: {stats.streak_days} day(s) | "
            f"Activity streak: {streak_days(activity_dates, today)} day(s)\n"
            f"Resets completed: {resets['completed']} | skipped: {resets['skipped']}",
            title="[bold]Growth insights[/bold]",
            expand=False,
        )
    )

    data = build_user_data(
        activity_repository.list_emotion_logs(user_id),
        activity_repository.list_assignments(user_id),
        activity_repository.list_reset_logs(user_id),
        current_streak=streak_days(activity_dates, today),
    )
    engine = load_engine(user_id)
    engine.analyze(data)
    nudges = engine.active_nudges()
    save_engine(user_id, engine)

    if not nudges:
        console.print("[dim]No patterns detected yet.[/dim]")
        return

    colors = {"high": "red", "medium": "yellow", "low": "green"}
    for nudge in nudges:
        color = colors.get(nudge.priority, "white")
        console.print(f"[{color}]● {nudge.title}[/{color}]")
        console.print(f"  {nudge.message}")

    for rec in engine.recommendations():
        console.print(f"[dim]→ {rec}[/dim]")


# =============================================================================
# DEVELOPER TOOLS
# =============================================================================


@app.command()
def audit(
    url: str | None = typer.Argument(None, help="Page URL (default from config)"),
    out_dir: Path | None = typer.Option(None, "--out", "-o", help="Reports directory"),
    retries: int | None = typer.Option(None, "--retries", help="Extra fetch attempts"),
) -> None:
    """Audit a page for accessibility, SEO and security basics."""
    url = url or load_app_config().audit.default_url
    console.print(f"[blue]Auditing {url}...[/blue]")

    try:
        html = fetch_html(url, retries=retries)
    except AuditFetchError as e:
        _fail(str(e))

    report = run_audit(html, url)
    console.print(render_text_summary(report), markup=False, highlight=False)

    target = write_reports(report, out_dir)
    console.print(f"\n[dim]Reports:[/dim] {target}")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", help="Port"),
) -> None:
    """Run the web API with uvicorn."""
    import uvicorn

    uvicorn.run("reflect.web.api:app", host=host, port=port)


if __name__ == "__main__":
    app()
