"""
skill-kit - one canonical set of skills, linked into every AI coding agent.

Usage:
    skill-kit scan
    skill-kit install anthropics/skills --skill pdf --agents claude-code,codex
    skill-kit unlink pdf cursor
    skill-kit delete pdf
"""

import json
import logging
import sys
import tempfile
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple

import typer
import readchar
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.live import Live

from . import __version__
from . import config as config_store
from .agents import AgentApp, AgentRegistry
from .engine import Provenance, delete, install, set_agent_link, unify
from .errors import NotFoundError, SkillKitError
from .lock import (
    DriftStatus,
    GlobalSkillLock,
    ProjectSkillLock,
    SourceType,
    check_skill_update,
    compute_skill_folder_hash,
    verify_project_skills,
)
from .paths import Scope, canonical_root, config_dir
from .scanner import ManagedStatus, scan_local_skills
from .staging import (
    StagedSkill,
    fetch_github_folder_sha,
    get_github_token,
    parse_github_url,
    stage_folder,
    stage_github,
    stage_zip,
)
from .store import check_canonical, list_canonical

logger = logging.getLogger(__name__)

BANNER = """
███████╗██╗  ██╗██╗██╗     ██╗         ██╗  ██╗██╗████████╗
██╔════╝██║ ██╔╝██║██║     ██║         ██║ ██╔╝██║╚══██╔══╝
███████╗█████╔╝ ██║██║     ██║         █████╔╝ ██║   ██║
╚════██║██╔═██╗ ██║██║     ██║         ██╔═██╗ ██║   ██║
███████║██║  ██╗██║███████╗███████╗    ██║  ██╗██║   ██║
╚══════╝╚═╝  ╚═╝╚═╝╚══════╝╚══════╝    ╚═╝  ╚═╝╚═╝   ╚═╝
"""

STATUS_STYLES = {
    ManagedStatus.MANAGED: "green",
    ManagedStatus.UNMANAGED: "yellow",
    ManagedStatus.MIXED: "red",
}

console = Console()
app = typer.Typer(
    name="skill-kit",
    help="Keep one canonical set of skills linked into every AI coding agent",
    add_completion=False,
)


class InstallScope(str, Enum):
    GLOBAL = "global"
    PROJECT = "project"


class Prefer(str, Enum):
    CANONICAL = "canonical"
    CURRENT = "current"


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """
    Keep one canonical set of skills linked into every AI coding agent.
    """
    setup_logging(verbose)
    if ctx.invoked_subcommand is None:
        show_banner()
        console.print(ctx.get_help())


# Sub-app for agent app registry commands
agents_app = typer.Typer(
    help="Manage the agent apps skills are linked into",
    no_args_is_help=True,
)
app.add_typer(agents_app, name="agents")

config_app = typer.Typer(
    help="Show and change skill-kit settings",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")

lock_app = typer.Typer(
    help="Inspect skill provenance lock files",
    no_args_is_help=True,
)
app.add_typer(lock_app, name="lock")


# =============================================================================
# Utility Functions
# =============================================================================

def setup_logging(verbose: bool = False):
    """Route library logging through rich; quiet unless --verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=verbose,
            show_path=False,
        )],
        force=True,
    )


def show_banner():
    """Display the ASCII art banner."""
    console.print(f"[cyan]{BANNER}[/cyan]")
    console.print("[dim]One canonical set of skills for every AI coding agent[/dim]\n")


def fail(message) -> typer.Exit:
    console.print(f"[red]Error:[/red] {message}")
    return typer.Exit(1)


def resolve_scope(scope: InstallScope, project_root: Optional[Path]) -> Tuple[Scope, Optional[Path]]:
    """Project scope defaults the project root to the current directory."""
    if scope == InstallScope.PROJECT:
        return Scope.PROJECT, (project_root or Path.cwd()).resolve()
    return Scope.GLOBAL, project_root


def parse_agent_list(value: str) -> List[str]:
    return [a.strip() for a in value.split(",") if a.strip()]


# =============================================================================
# Interactive Selection Helpers
# =============================================================================

def get_key() -> str:
    """Get a single keypress in a cross-platform way using readchar."""
    key = readchar.readkey()

    if key == readchar.key.UP or key == readchar.key.CTRL_P:
        return 'up'
    if key == readchar.key.DOWN or key == readchar.key.CTRL_N:
        return 'down'
    if key == readchar.key.ENTER:
        return 'enter'
    if key == readchar.key.ESC:
        return 'esc'
    if key == readchar.key.CTRL_C:
        raise KeyboardInterrupt
    if key == ' ':
        return 'space'
    if key.lower() == 'a':
        return 'a'
    return key


def select_agents_interactive(
    agents: List[AgentApp],
    installed: List[str],
    prompt_text: str = "Select agents to link",
    preselected: List[str] = None
) -> List[str]:
    """
    Interactive multi-select for agents using arrow keys and space.

    Controls:
    - ↑/↓: Navigate
    - Space: Toggle selection
    - A: Select/deselect all
    - Enter: Confirm
    - Esc: Cancel

    Returns list of selected agent ids.
    """
    option_keys = [agent.id for agent in agents]
    names = {agent.id: agent.display_name for agent in agents}
    selected = set(k for k in (preselected or []) if k in names)
    cursor_index = 0

    # Non-interactive: return preselected or installed agents
    if not sys.stdin.isatty() or not option_keys:
        return [k for k in option_keys if k in selected] if selected else list(installed)

    def create_selection_panel():
        """Create the selection panel with current selections."""
        lines = []
        for i, key in enumerate(option_keys):
            cursor = "→" if i == cursor_index else " "
            check = "✓" if key in selected else " "
            mark = "✓" if key in installed else " "

            if i == cursor_index:
                line = f"[bold cyan]{cursor} [{check}] {names[key]}[/bold cyan] [dim](installed: {mark})[/dim]"
            else:
                line = f"[white]{cursor} [{check}] {names[key]}[/white] [dim](installed: {mark})[/dim]"
            lines.append(line)

        lines.append("")
        lines.append("[dim]↑/↓: navigate  Space: toggle  A: all  Enter: confirm  Esc: cancel[/dim]")

        return Panel(
            "\n".join(lines),
            title=f"[bold cyan]{prompt_text}[/bold cyan]",
            border_style="cyan"
        )

    with Live(create_selection_panel(), console=console, transient=True, refresh_per_second=10) as live:
        while True:
            try:
                key = get_key()
            except KeyboardInterrupt:
                console.print("\n[yellow]Selection cancelled[/yellow]")
                raise typer.Exit(1)

            if key == 'up':
                cursor_index = (cursor_index - 1) % len(option_keys)
            elif key == 'down':
                cursor_index = (cursor_index + 1) % len(option_keys)
            elif key == 'space':
                current_key = option_keys[cursor_index]
                if current_key in selected:
                    selected.remove(current_key)
                else:
                    selected.add(current_key)
            elif key == 'a':
                # Toggle all
                if len(selected) == len(option_keys):
                    selected.clear()
                else:
                    selected = set(option_keys)
            elif key == 'enter':
                break
            elif key == 'esc':
                console.print("\n[yellow]Selection cancelled[/yellow]")
                raise typer.Exit(1)

            live.update(create_selection_panel())

    return [k for k in option_keys if k in selected]


# =============================================================================
# Skill Commands
# =============================================================================

@app.command()
def scan(
    project_root: Optional[Path] = typer.Option(
        None, "--project-root", "-p",
        help="Also scan this project's .agents/skills and agent project folders"
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    List every skill found on disk and whether it is managed.

    Examples:
        skill-kit scan
        skill-kit scan -p .          # include the current project
        skill-kit scan --json
    """
    try:
        settings = config_store.load_config()
        result = scan_local_skills(
            AgentRegistry(),
            project_root=project_root.resolve() if project_root else None,
            scan_roots=settings["scan_roots"],
        )
    except SkillKitError as e:
        raise fail(e)

    skills = sorted(result.all_skills(), key=lambda s: (s.name.lower(), s.scope.value))

    if json_output:
        typer.echo(json.dumps([s.to_dict() for s in skills], indent=2))
        return

    if not skills:
        console.print("[dim]No skills found[/dim]")
        return

    table = Table(title="Skills", show_header=True, header_style="bold cyan")
    table.add_column("Name", style="cyan")
    table.add_column("Scope")
    table.add_column("Status")
    table.add_column("Agents")
    table.add_column("Source", style="dim")

    for skill in skills:
        style = STATUS_STYLES[skill.managed_status]
        status_text = f"[{style}]{skill.managed_status.value}[/{style}]"
        if skill.name_conflict:
            status_text += " [red]⚠ duplicate[/red]"
        table.add_row(
            skill.name,
            skill.scope.value,
            status_text,
            ", ".join(skill.agents) or "-",
            skill.source or "",
        )

    console.print(table)
    mixed = [s for s in skills if s.conflict_with_managed]
    if mixed:
        console.print(
            f"\n[yellow]{len(mixed)} standalone folder(s) shadow a managed skill.[/yellow] "
            "[dim]Use 'skill-kit unify NAME PATH' to link them.[/dim]"
        )


def _stage(source: str, workdir: Path, github_token: Optional[str]) -> Tuple[List[StagedSkill], str]:
    """Stage ``source`` and return the detected skills plus the source kind."""
    path = Path(source).expanduser()
    if path.is_dir():
        return stage_folder(path), "folder"
    if path.suffix.lower() == ".zip":
        return stage_zip(path, workdir / "zip"), "zip"
    if source.startswith((".", "/", "~", "\\")) or path.is_absolute():
        raise NotFoundError(f"No such folder or ZIP file: {source}")

    parse_github_url(source)
    console.print(f"[cyan]Downloading {source}...[/cyan]")
    if get_github_token(github_token):
        console.print("[dim]  (using authenticated request)[/dim]")
    return stage_github(source, workdir / "repo", token=github_token), "github"


def _provenance(source: str, kind: str, staged: StagedSkill, github_token: Optional[str]) -> Provenance:
    if kind != "github":
        return Provenance.from_source(str(Path(source).expanduser().resolve()))

    owner, repo = parse_github_url(source)
    try:
        folder_hash = fetch_github_folder_sha(source, staged.skill_path, token=github_token)
    except SkillKitError as e:
        logger.warning("No remote hash for %s: %s", staged.name, e)
        folder_hash = None
    return Provenance(
        source=f"{owner}/{repo}",
        source_type=SourceType.GITHUB,
        source_url=f"https://github.com/{owner}/{repo}",
        skill_path=staged.skill_path,
        skill_folder_hash=folder_hash,
    )


@app.command(name="install")
def install_cmd(
    source: str = typer.Argument(..., help="Skill folder, ZIP file, or GitHub repo (owner/repo or URL)"),
    skill: Optional[List[str]] = typer.Option(
        None, "--skill", "-s",
        help="Only install skills with this name (repeatable)"
    ),
    agents: Optional[str] = typer.Option(
        None, "--agents", "-a",
        help="Comma-separated agent ids to link (default: choose interactively)"
    ),
    all_agents: bool = typer.Option(False, "--all", help="Link every installed agent"),
    scope: InstallScope = typer.Option(InstallScope.GLOBAL, "--scope", help="Install globally or into a project"),
    project_root: Optional[Path] = typer.Option(None, "--project-root", "-p", help="Project root for --scope project"),
    mode: Optional[str] = typer.Option(None, "--mode", "-m", help="Override sync mode: symlink or copy"),
    github_token: Optional[str] = typer.Option(
        None, "--github-token", "-t",
        help="GitHub token for private repos (or set GH_TOKEN/GITHUB_TOKEN env)"
    ),
):
    """
    Install skills into the canonical store and link them into agents.

    Examples:
        skill-kit install ./my-skill --agents claude-code
        skill-kit install skills.zip --all
        skill-kit install anthropics/skills --skill pdf --skill docx
    """
    skill_scope, root = resolve_scope(scope, project_root)
    registry = AgentRegistry()
    global_lock = GlobalSkillLock()

    with tempfile.TemporaryDirectory(prefix="skill-kit-") as tmp:
        try:
            staged, kind = _stage(source, Path(tmp), github_token)
        except SkillKitError as e:
            raise fail(e)

        if skill:
            wanted = {s.lower() for s in skill}
            staged = [s for s in staged if s.name.lower() in wanted]
        if not staged:
            raise fail(f"No skills found in {source}")

        installed_ids = [a.id for a in registry.installed_agents()]
        if all_agents:
            selected = installed_ids
        elif agents is not None:
            selected = parse_agent_list(agents)
        else:
            try:
                last = global_lock.last_selected_agents()
            except SkillKitError:
                last = []
            selected = select_agents_interactive(
                registry.all_agents(), installed_ids, preselected=last
            )

        for item in staged:
            try:
                result = install(
                    item.path,
                    name=item.name,
                    agents=selected,
                    scope=skill_scope,
                    project_root=root,
                    sync_mode=mode,
                    provenance=_provenance(source, kind, item, github_token),
                    registry=registry,
                    lock=global_lock,
                )
            except SkillKitError as e:
                raise fail(e)

            console.print(f"[green]✓[/green] Installed [cyan]{result.name}[/cyan] → {result.canonical_path}")
            if result.linked:
                console.print(f"  [dim]Linked: {', '.join(result.linked)}[/dim]")
            for warning in result.warnings:
                console.print(f"  [yellow]Warning:[/yellow] {warning}")

    try:
        global_lock.set_last_selected_agents(selected)
    except SkillKitError as e:
        logger.warning("Could not remember agent selection: %s", e)


@app.command()
def link(
    name: str = typer.Argument(..., help="Skill name"),
    agent: str = typer.Argument(..., help="Agent id (see 'skill-kit agents list')"),
    scope: InstallScope = typer.Option(InstallScope.GLOBAL, "--scope"),
    project_root: Optional[Path] = typer.Option(None, "--project-root", "-p"),
    mode: Optional[str] = typer.Option(None, "--mode", "-m", help="Override sync mode: symlink or copy"),
):
    """Link a canonical skill into one agent."""
    skill_scope, root = resolve_scope(scope, project_root)
    try:
        set_agent_link(name, agent, skill_scope, True, project_root=root, sync_mode=mode)
    except SkillKitError as e:
        raise fail(e)
    console.print(f"[green]✓[/green] Linked {name} → {agent}")


@app.command()
def unlink(
    name: str = typer.Argument(..., help="Skill name"),
    agent: str = typer.Argument(..., help="Agent id"),
    scope: InstallScope = typer.Option(InstallScope.GLOBAL, "--scope"),
    project_root: Optional[Path] = typer.Option(None, "--project-root", "-p"),
):
    """Remove one agent's link to a canonical skill (refuses foreign folders)."""
    skill_scope, root = resolve_scope(scope, project_root)
    try:
        set_agent_link(name, agent, skill_scope, False, project_root=root)
    except SkillKitError as e:
        raise fail(e)
    console.print(f"[green]✓[/green] Unlinked {name} from {agent}")


@app.command(name="unify")
def unify_cmd(
    name: str = typer.Argument(..., help="Skill name"),
    path: Path = typer.Argument(..., help="Standalone skill folder to replace with a link"),
    prefer: Prefer = typer.Option(Prefer.CANONICAL, "--prefer", help="Which content wins"),
    scope: InstallScope = typer.Option(InstallScope.GLOBAL, "--scope"),
    project_root: Optional[Path] = typer.Option(None, "--project-root", "-p"),
    mode: Optional[str] = typer.Option(None, "--mode", "-m", help="Override sync mode: symlink or copy"),
):
    """Replace a standalone copy of a skill with a link to the canonical one."""
    skill_scope, root = resolve_scope(scope, project_root)
    try:
        result = unify(name, skill_scope, path, prefer.value, project_root=root, sync_mode=mode)
    except SkillKitError as e:
        raise fail(e)
    console.print(f"[green]✓[/green] {result.message}")


@app.command(name="delete")
def delete_cmd(
    name: str = typer.Argument(..., help="Skill name"),
    scope: InstallScope = typer.Option(InstallScope.GLOBAL, "--scope"),
    project_root: Optional[Path] = typer.Option(None, "--project-root", "-p"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Delete a skill from the canonical store and every agent."""
    skill_scope, root = resolve_scope(scope, project_root)
    if not yes:
        typer.confirm(f"Delete '{name}' and all of its agent links?", abort=True)
    try:
        result = delete(name, skill_scope, project_root=root)
    except SkillKitError as e:
        raise fail(e)

    if not (result.canonical_removed or result.removed_links or result.lock_removed):
        console.print(f"[dim]Nothing to delete for {name}[/dim]")
        return
    console.print(f"[green]✓[/green] Deleted {name}")
    if result.removed_links:
        console.print(f"  [dim]Unlinked: {', '.join(result.removed_links)}[/dim]")


@app.command()
def canonical(
    name: str = typer.Argument(..., help="Skill name"),
    scope: InstallScope = typer.Option(InstallScope.GLOBAL, "--scope"),
    project_root: Optional[Path] = typer.Option(None, "--project-root", "-p"),
):
    """Show where a skill lives in the canonical store."""
    skill_scope, root = resolve_scope(scope, project_root)
    check = check_canonical(name, skill_scope, root)
    mark = "[green]✓[/green]" if check.exists else "[red]✗[/red]"
    console.print(f"{mark} {check.canonical_path}")
    if not check.exists:
        raise typer.Exit(1)


@app.command()
def status():
    """Show agents, sync mode and canonical store status."""
    show_banner()

    try:
        settings = config_store.load_config()
        registry = AgentRegistry()
        installed = {a.id for a in registry.installed_agents()}
        agents = registry.all_agents()
    except SkillKitError as e:
        raise fail(e)

    table = Table(title="Agent Status")
    table.add_column("Agent", style="cyan")
    table.add_column("Installed", style="green")
    table.add_column("Skills", justify="right", style="yellow")
    table.add_column("Skills Directory")

    for agent in agents:
        global_dir = agent.global_dir()
        count = "-"
        if agent.id in installed and global_dir is not None:
            count = str(len(list(global_dir.glob("*/SKILL.md"))))
        table.add_row(
            agent.display_name,
            "✓" if agent.id in installed else "✗",
            count,
            agent.global_path or "",
        )

    console.print(table)

    store = canonical_root(Scope.GLOBAL)
    skills = list_canonical(Scope.GLOBAL)
    console.print(f"\n[cyan]Canonical store:[/cyan] {store}")
    console.print(f"[cyan]Skills:[/cyan] {len(skills)}")
    console.print(f"[cyan]Sync mode:[/cyan] {settings['sync_mode']}")


@app.command(name="hash")
def hash_cmd(path: Path = typer.Argument(..., help="Skill folder")):
    """Print the content hash of a skill folder."""
    try:
        typer.echo(compute_skill_folder_hash(path))
    except SkillKitError as e:
        raise fail(e)


@app.command(name="check-updates")
def check_updates(
    github_token: Optional[str] = typer.Option(
        None, "--github-token", "-t",
        help="GitHub token (or set GH_TOKEN/GITHUB_TOKEN env)"
    ),
):
    """Compare GitHub-installed skills with their upstream folders."""
    try:
        entries = GlobalSkillLock().all_skills()
    except SkillKitError as e:
        raise fail(e)

    tracked = {
        name: entry for name, entry in entries.items()
        if entry.source_type == SourceType.GITHUB and entry.skill_path and entry.skill_folder_hash
    }
    if not tracked:
        console.print("[dim]No GitHub skills with a recorded hash[/dim]")
        return

    table = Table(title="Skill Updates")
    table.add_column("Skill", style="cyan")
    table.add_column("Source", style="dim")
    table.add_column("Status")

    for name, entry in sorted(tracked.items()):
        try:
            remote = fetch_github_folder_sha(entry.source_url or entry.source, entry.skill_path, token=github_token)
        except SkillKitError as e:
            table.add_row(name, entry.source, f"[red]{e}[/red]")
            continue
        if check_skill_update(name, remote):
            table.add_row(name, entry.source, "[yellow]Update available![/yellow]")
        else:
            table.add_row(name, entry.source, "[green]up to date[/green]")

    console.print(table)


@app.command()
def verify(
    project_root: Path = typer.Option(Path("."), "--project-root", "-p", help="Project root"),
):
    """Check project skills against the hashes in skills-lock.json."""
    try:
        results = verify_project_skills(project_root.resolve())
    except SkillKitError as e:
        raise fail(e)
    if not results:
        console.print("[dim]No skills recorded in skills-lock.json[/dim]")
        return

    styles = {DriftStatus.OK: "green", DriftStatus.MODIFIED: "yellow", DriftStatus.MISSING: "red"}
    for name, drift in sorted(results.items()):
        style = styles[drift]
        console.print(f"  [{style}]{drift.value:8}[/{style}] {name}")

    if any(drift != DriftStatus.OK for drift in results.values()):
        raise typer.Exit(1)


# =============================================================================
# Agent Commands
# =============================================================================

@agents_app.command("list")
def agents_list(
    show_all: bool = typer.Option(False, "--all", "-a", help="Include agents that are not installed"),
):
    """List known agent apps."""
    try:
        registry = AgentRegistry()
        installed = {a.id for a in registry.installed_agents()}
        agents = registry.all_agents()
    except SkillKitError as e:
        raise fail(e)

    table = Table(title="Agent Apps", show_header=True, header_style="bold cyan")
    table.add_column("Id", style="cyan")
    table.add_column("Name")
    table.add_column("Installed", style="green")
    table.add_column("Global Path", style="dim")
    table.add_column("Project Path", style="dim")

    for agent in agents:
        if not show_all and agent.id not in installed:
            continue
        name = agent.display_name + (" [dim](custom)[/dim]" if agent.is_user_custom else "")
        table.add_row(
            agent.id,
            name,
            "✓" if agent.id in installed else "✗",
            agent.global_path or "",
            agent.project_path or "",
        )

    console.print(table)


@agents_app.command("add")
def agents_add(
    display_name: str = typer.Argument(..., help="Display name"),
    global_path: str = typer.Argument(..., help="Global skills folder (must exist, may start with ~/)"),
    project_path: Optional[str] = typer.Option(None, "--project-path", help="Skills folder relative to a project root"),
):
    """Register a custom agent app."""
    try:
        agent = AgentRegistry().add(display_name, global_path, project_path)
    except SkillKitError as e:
        raise fail(e)
    console.print(f"[green]✓[/green] Added agent: {agent.display_name} ({agent.id})")


@agents_app.command("update")
def agents_update(
    agent_id: str = typer.Argument(..., help="Agent id"),
    display_name: Optional[str] = typer.Option(None, "--name", help="New display name"),
    global_path: Optional[str] = typer.Option(None, "--global-path", help="New global skills folder"),
    project_path: Optional[str] = typer.Option(None, "--project-path", help="New project skills folder"),
):
    """Change a custom agent app."""
    try:
        registry = AgentRegistry()
        current = registry.get(agent_id)
        agent = registry.update(
            agent_id,
            display_name or current.display_name,
            global_path or current.global_path or "",
            project_path if project_path is not None else current.project_path,
        )
    except SkillKitError as e:
        raise fail(e)
    console.print(f"[green]✓[/green] Updated agent: {agent.display_name} ({agent.id})")


@agents_app.command("remove")
def agents_remove(agent_id: str = typer.Argument(..., help="Agent id")):
    """Remove a custom agent app (skill folders are left alone)."""
    try:
        AgentRegistry().remove(agent_id)
    except SkillKitError as e:
        raise fail(e)
    console.print(f"[green]✓[/green] Removed agent: {agent_id}")


# =============================================================================
# Config Commands
# =============================================================================

@config_app.command("show")
def config_show():
    """Show current settings."""
    try:
        settings = config_store.load_config()
    except SkillKitError as e:
        raise fail(e)

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="cyan", justify="right")
    table.add_column("Value", style="white")
    table.add_row("Config", str(config_store.get_config_path()))
    table.add_row("Sync mode", settings["sync_mode"])
    table.add_row("Scan roots", "\n".join(settings["scan_roots"]) or "[dim]none[/dim]")
    console.print(table)


@config_app.command("sync-mode")
def config_sync_mode(mode: str = typer.Argument(..., help="symlink or copy")):
    """Choose how new links are created. Existing links are not converted."""
    try:
        config_store.set_sync_mode(mode)
    except SkillKitError as e:
        raise fail(e)
    console.print(f"[green]✓[/green] Sync mode: {mode}")


@config_app.command("add-root")
def config_add_root(path: str = typer.Argument(..., help="Folder to search for standalone skills")):
    """Add an extra folder for 'scan' to search."""
    try:
        roots = config_store.add_scan_root(path)
    except SkillKitError as e:
        raise fail(e)
    console.print(f"[green]✓[/green] Scan roots: {', '.join(roots)}")


@config_app.command("remove-root")
def config_remove_root(path: str = typer.Argument(..., help="Folder to stop searching")):
    """Remove an extra scan folder."""
    try:
        roots = config_store.remove_scan_root(path)
    except SkillKitError as e:
        raise fail(e)
    console.print(f"[green]✓[/green] Scan roots: {', '.join(roots) or 'none'}")


# =============================================================================
# Lock Commands
# =============================================================================

@lock_app.command("list")
def lock_list(
    project_root: Optional[Path] = typer.Option(
        None, "--project-root", "-p",
        help="Show this project's skills-lock.json instead of the global lock"
    ),
):
    """List recorded skill sources."""
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Skill", style="cyan")
    table.add_column("Source")
    table.add_column("Type", style="dim")

    if project_root is not None:
        lock = ProjectSkillLock(project_root.resolve())
        table.title = str(lock.path)
        table.add_column("Hash", style="dim")
        for name, entry in sorted(lock.all_skills().items()):
            table.add_row(name, entry.source, entry.source_type.value, entry.computed_hash[:12])
    else:
        lock = GlobalSkillLock()
        table.title = str(lock.path)
        table.add_column("Updated", style="dim")
        try:
            entries = lock.all_skills()
        except SkillKitError as e:
            raise fail(e)
        for name, entry in sorted(entries.items()):
            table.add_row(name, entry.source, entry.source_type.value, entry.updated_at)

    console.print(table)


# =============================================================================
# Version
# =============================================================================

def get_installed_version() -> str:
    """Get the currently installed version."""
    import importlib.metadata
    try:
        return importlib.metadata.version("skill-kit")
    except importlib.metadata.PackageNotFoundError:
        return __version__


@app.command()
def version():
    """Display version information."""
    import platform

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="cyan", justify="right")
    table.add_column("Value", style="white")

    table.add_row("Version", get_installed_version())
    table.add_row("Python", platform.python_version())
    table.add_row("Platform", platform.system())
    table.add_row("Config", str(config_dir()))

    panel = Panel(
        table,
        title="[bold cyan]skill-kit[/bold cyan]",
        border_style="cyan",
        padding=(1, 2)
    )
    console.print(panel)


def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
