"""CLI entry point for the agentforge tool."""

from __future__ import annotations

import logging
import sys
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

import click
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from agentforge.config import Backend, Settings, get_settings
from agentforge.exceptions import AgentForgeError, ServerError
from agentforge.llm import LLMClient, create_client, preflight_check
from agentforge.pacing import pacer_from_interval
from agentforge.retry import RetryPolicy
from agentforge.session import ProjectSession
from agentforge.state import new_project
from agentforge.store import ProjectStore
from agentforge.types import (
    ROLE_LABELS,
    ArtifactKind,
    Language,
    ProjectMode,
    ProjectState,
    QuestionKind,
    StateUpdate,
    Status,
)

console = Console()

_STATUS_STYLES = {
    Status.IDLE: "dim",
    Status.CLARIFYING: "yellow",
    Status.GENERATING: "cyan",
    Status.READY: "green",
    Status.ERROR: "red",
}


# ── Custom help formatter ─────────────────────────────────────────────


class AgentForgeGroup(click.Group):
    """Command group with an examples section under the command list."""

    def format_epilog(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        formatter.write("\n")
        formatter.write("  EXAMPLES\n")
        formatter.write("    agentforge new \"recipe sharing app\"\n")
        formatter.write("    agentforge --backend ollama new \"habit tracker\" --mode lite\n")
        formatter.write("    agentforge list\n")
        formatter.write("    agentforge show 3f2a --artifact market\n")
        formatter.write("    agentforge refine 3f2a market \"Focus on the European market\"\n")
        formatter.write("\n")
        formatter.write("  CONFIGURATION\n")
        formatter.write("    Environment variables prefixed with AGENTFORGE_ (or a .env file),\n")
        formatter.write("    e.g. AGENTFORGE_API_KEY, AGENTFORGE_PACING_INTERVAL, AGENTFORGE_DATA_DIR.\n")


@dataclass
class CliContext:
    settings: Settings
    store: ProjectStore
    verbose: bool = False

    def client(self) -> LLMClient:
        client = create_client(self.settings)
        if not preflight_check(self.settings.resolve_url(), self.settings.api_key):
            click.echo(
                "Warning: Pre-flight check failed. The API may not be reachable. "
                "Proceeding anyway...",
                err=True,
            )
        return client

    def session(self, state: ProjectState) -> ProjectSession:
        return ProjectSession(
            state,
            store=self.store,
            listeners=[_print_progress],
            retry=RetryPolicy.from_settings(self.settings),
        )


pass_cli = click.make_pass_decorator(CliContext)


# ── Main group ────────────────────────────────────────────────────────


@click.group(cls=AgentForgeGroup)
@click.option("--backend", type=click.Choice([b.value for b in Backend]), default=None,
              help="LLM API backend (default: gemini).")
@click.option("-m", "--model", default=None, help="Expert model ID.")
@click.option("--prototype-model", default=None, help="Prototype model ID.")
@click.option("--server-url", default=None, help="Override the API base URL.")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose debug logging.")
@click.version_option(package_name="agentforge")
@click.pass_context
def main(
    ctx: click.Context,
    backend: str | None,
    model: str | None,
    prototype_model: str | None,
    server_url: str | None,
    verbose: bool,
) -> None:
    """agentforge: turn a product idea into an expert project dossier."""
    try:
        settings = get_settings()
    except AgentForgeError as e:
        console.print(f"[red]Configuration error:[/red] {escape(e.message)}")
        sys.exit(1)

    overrides = {
        "backend": Backend(backend) if backend else None,
        "model": model,
        "prototype_model": prototype_model,
        "base_url": server_url,
    }
    settings = settings.model_copy(update={k: v for k, v in overrides.items() if v is not None})

    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level,
        format="%(levelname)s: %(message)s",
    )
    ctx.obj = CliContext(
        settings=settings, store=ProjectStore(settings.data_dir), verbose=verbose
    )


# ── Commands ──────────────────────────────────────────────────────────


@main.command()
@click.argument("idea", required=False)
@click.option("--mode", type=click.Choice([m.value for m in ProjectMode]), default=None,
              help="Expert roster size (default from settings).")
@click.option("--language", type=click.Choice([lang.value for lang in Language]), default=None,
              help="Output language (default from settings).")
@click.option("--no-forge", is_flag=True, help="Stop after the clarification answers.")
@pass_cli
def new(
    cli: CliContext,
    idea: str | None,
    mode: str | None,
    language: str | None,
    no_forge: bool,
) -> None:
    """Start a project: clarify the IDEA, answer the questions, forge."""
    if not idea:
        idea = click.prompt("What's your product idea?", type=str)
    if not idea.strip():
        click.echo("No idea provided. Exiting.", err=True)
        return

    state = new_project(
        idea,
        mode=ProjectMode(mode) if mode else cli.settings.mode,
        language=Language(language) if language else cli.settings.language,
    )
    session = cli.session(state)

    with _handle_errors():
        client = cli.client()
        session.clarify(client)
        console.print(f"  Project [bold]{state.id[:8]}[/bold] created\n")
        _ask_questions(session)
        if no_forge:
            console.print(f"\n  Answers saved. Run [bold]agentforge forge {state.id[:8]}[/bold] to continue.")
            return
        _run_forge(cli, session, client)


@main.command()
@click.argument("project_id")
@pass_cli
def forge(cli: CliContext, project_id: str) -> None:
    """Run the expert forge on a clarified project."""
    with _handle_errors():
        session = cli.session(cli.store.find(project_id))
        if session.state.status != Status.CLARIFYING:
            raise click.ClickException(
                f"Project is '{session.state.status.value}'. "
                f"Use 'agentforge reset {project_id} --keep-answers' to forge it again."
            )
        client = cli.client()
        _ask_questions(session)
        _run_forge(cli, session, client)


@main.command()
@click.argument("project_id")
@click.argument("artifact_id")
@click.argument("instruction")
@pass_cli
def refine(cli: CliContext, project_id: str, artifact_id: str, instruction: str) -> None:
    """Rewrite one artifact following an INSTRUCTION."""
    with _handle_errors():
        session = cli.session(cli.store.find(project_id))
        artifact = session.get_artifact(artifact_id)
        updated = session.refine(cli.client(), artifact.id, instruction)
        console.print(Panel(escape(updated.summary), title=escape(updated.title), border_style="green"))


@main.command(name="list")
@pass_cli
def list_projects(cli: CliContext) -> None:
    """List the projects in the library, newest first."""
    projects = cli.store.list()
    if not projects:
        console.print("No projects yet. Start one with [bold]agentforge new[/bold].")
        return

    table = Table(title="Projects")
    table.add_column("ID", style="bold")
    table.add_column("Idea")
    table.add_column("Mode")
    table.add_column("Status")
    table.add_column("Artifacts", justify="right")
    table.add_column("Created")
    for p in projects:
        style = _STATUS_STYLES[p.status]
        table.add_row(
            p.id[:8],
            escape(_truncate(p.idea, 50)),
            p.mode.value,
            f"[{style}]{p.status.value}[/{style}]",
            str(len(p.artifacts)),
            p.created_at[:16].replace("T", " "),
        )
    console.print(table)


@main.command()
@click.argument("project_id")
@click.option("-a", "--artifact", "artifact_id", default=None,
              help="Print one artifact's full content.")
@click.option("-o", "--output", "output_path", type=click.Path(dir_okay=False, path_type=Path),
              default=None, help="Write the artifact content to a file instead.")
@pass_cli
def show(cli: CliContext, project_id: str, artifact_id: str | None, output_path: Path | None) -> None:
    """Show a project, or one of its artifacts."""
    with _handle_errors():
        session = cli.session(cli.store.find(project_id))
        if artifact_id:
            artifact = session.get_artifact(artifact_id)
            if output_path:
                output_path.write_text(artifact.content, encoding="utf-8")
                console.print(f"  Saved {escape(artifact.title)} to {output_path}")
            elif artifact.kind == ArtifactKind.PROTOTYPE:
                console.print(artifact.content, markup=False, highlight=False)
            else:
                console.print(Panel(Markdown(artifact.content), title=escape(artifact.title)))
            return
        _print_project(session.state)


@main.command()
@click.argument("project_id")
@click.option("--keep-answers", is_flag=True, help="Keep questions and answers for a new forge.")
@pass_cli
def reset(cli: CliContext, project_id: str, keep_answers: bool) -> None:
    """Reset a project to idle, discarding generated artifacts."""
    with _handle_errors():
        session = ProjectSession(cli.store.find(project_id), store=cli.store)
        session.reset(keep_clarification=keep_answers)
        console.print(f"  Project {session.state.id[:8]} is now [bold]{session.state.status.value}[/bold]")


@main.command()
@click.argument("project_id")
@click.confirmation_option(prompt="Delete this project?")
@pass_cli
def delete(cli: CliContext, project_id: str) -> None:
    """Delete a project from the library."""
    with _handle_errors():
        state = cli.store.find(project_id)
        cli.store.delete(state.id)
        console.print(f"  Deleted project {state.id[:8]}")


# ── Helpers ───────────────────────────────────────────────────────────


@contextmanager
def _handle_errors() -> Iterator[None]:
    """Map agentforge errors to a red message and a non-zero exit."""
    try:
        yield
    except ServerError as e:
        console.print(f"[red]Server error:[/red] {escape(e.message)}")
        if e.details:
            for k, v in e.details.items():
                console.print(f"  {k}: {escape(str(v))}")
        sys.exit(1)
    except AgentForgeError as e:
        console.print(f"[red]Error:[/red] {escape(e.message)}")
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\n\nInterrupted.")
        sys.exit(130)


def _ask_questions(session: ProjectSession) -> None:
    """Prompt for every unanswered clarification question."""
    for q in session.unanswered():
        console.print(f"\n[bold]{escape(q.text)}[/bold]")
        if q.kind == QuestionKind.CHOICE and q.options:
            for i, option in enumerate(q.options, start=1):
                console.print(f"  {i}. {escape(option)}")
            reply = click.prompt("Your choice (number or text)", type=str)
            if reply.isdigit() and 1 <= int(reply) <= len(q.options):
                reply = q.options[int(reply) - 1]
        else:
            reply = click.prompt("Your answer", type=str, default="", show_default=False)
        session.answer(q.id, reply)


def _run_forge(cli: CliContext, session: ProjectSession, client: LLMClient) -> None:
    """Run the forge in a worker thread so Ctrl-C can cancel it between experts."""
    cancel = threading.Event()
    outcome: dict[str, object] = {}

    def _work() -> None:
        try:
            outcome["status"] = session.forge(
                client,
                pacer=pacer_from_interval(cli.settings.pacing_interval),
                cancel=cancel,
                prototype_model=cli.settings.resolve_prototype_model(),
            )
        except BaseException as e:  # re-raised on the main thread
            outcome["error"] = e

    worker = threading.Thread(target=_work, name="agentforge-forge", daemon=True)
    worker.start()
    while worker.is_alive():
        try:
            worker.join(timeout=0.2)
        except KeyboardInterrupt:
            if cancel.is_set():
                raise
            cancel.set()
            console.print("\n  [yellow]Cancelling after the current expert... (Ctrl-C again to abort)[/yellow]")

    if "error" in outcome:
        raise outcome["error"]  # type: ignore[misc]

    console.print()
    _print_project(session.state)
    if outcome.get("status") != Status.READY:
        sys.exit(1)


def _print_progress(update: StateUpdate, state: ProjectState) -> None:
    """Session listener: echo progress labels as they change."""
    if update.current_step:
        style = _STATUS_STYLES[state.status]
        console.print(f"  [{style}]→[/{style}] {escape(update.current_step)}")


def _print_project(state: ProjectState) -> None:
    style = _STATUS_STYLES[state.status]
    console.print(
        Panel(
            escape(state.idea),
            title=f"Project {state.id[:8]} · {state.mode.value} · {state.language.value}",
            subtitle=f"[{style}]{state.status.value}[/{style}] · {escape(state.current_step)}",
        )
    )

    if state.intent:
        console.print(f"  [bold]Goal:[/bold] {escape(state.intent.goal)}")
        console.print(f"  [bold]Target:[/bold] {escape(state.intent.target)}")
        if state.intent.constraints:
            console.print(f"  [bold]Constraints:[/bold] {escape(', '.join(state.intent.constraints))}")

    if state.app_map and state.app_map.modules:
        console.print("  [bold]Modules:[/bold]")
        for module in state.app_map.modules:
            console.print(f"    • {escape(module.name)}: {escape(_truncate(module.description, 70))}")

    if state.artifacts:
        table = Table(title="Artifacts")
        table.add_column("ID")
        table.add_column("Expert")
        table.add_column("Title", style="bold")
        table.add_column("Kind")
        table.add_column("Confidence", justify="right")
        for a in state.artifacts:
            table.add_row(
                a.id.rsplit("_", 1)[0],
                ROLE_LABELS[a.role],
                escape(_truncate(a.title, 40)),
                a.kind.value,
                f"{a.confidence:.2f}",
            )
        console.print(table)


def _truncate(text: str, width: int) -> str:
    return text[:width] + "..." if len(text) > width else text
